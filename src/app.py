"""Main FastAPI application module.

This module initializes the FastAPI application and registers all route handlers.
"""

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from core.logging_config import setup_logging
from config import (
    CORS_ALLOWED_ORIGINS,
    API_HOST,
    API_PORT,
)
from api.routes import approval, auth, class_route, sync_route, task_route
from core.database import init_db
from core.exceptions import (
    TaskPlannerError,
    task_planner_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from utils import background

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

APP_TITLE = "Task Planner API"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Backend API for class-based task planning with per-user task status."

# Initialize FastAPI application
app = FastAPI(
    title=APP_TITLE,
    description=APP_DESCRIPTION,
    version=APP_VERSION,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(TaskPlannerError, task_planner_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Register route handlers
app.include_router(auth.router)
app.include_router(class_route.router)
app.include_router(approval.router)
app.include_router(task_route.router)
app.include_router(sync_route.router)


@app.on_event("startup")
def startup_tasks() -> None:
    """Create missing tables."""
    init_db()
    logger.info("Database initialized")


@app.on_event("shutdown")
def shutdown_tasks() -> None:
    """Let queued audit and mail jobs finish."""
    background.shutdown(wait=True)


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """API root, returns API information and documentation links.

    Returns:
        Dictionary with API information and documentation links.
    """
    return {
        "name": APP_TITLE,
        "version": APP_VERSION,
        "description": APP_DESCRIPTION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": "/api/health",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok".
    """
    return {"status": "ok"}


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    server_url = f"http://{API_HOST}:{API_PORT}"
    print(f"Task Planner API: {server_url}")
    print(f"API docs: {server_url}/docs")

    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
