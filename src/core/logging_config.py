"""Logging setup for the API process."""

import logging
import sys

from config import LOG_LEVEL


def setup_logging() -> None:
    """Configure the root logger once for the whole process."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=getattr(logging, LOG_LEVEL, logging.INFO),
    )

    # Route uvicorn records through the root handler
    for name in ["uvicorn", "uvicorn.error", "fastapi"]:
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = True
