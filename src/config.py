"""Configuration module for the Task Planner backend.

This module provides centralized configuration management, including directory
paths, database location, API server settings, authentication, invite codes,
mail delivery, and pagination defaults. All configuration values can be
overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / DATA_DIR_NAME)))

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/task_planner.db"
)

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,"
    "http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))  # 7 days
)

# Lifetime of the link sent in the verification email
VERIFICATION_TOKEN_EXPIRE_HOURS: int = int(
    os.getenv("VERIFICATION_TOKEN_EXPIRE_HOURS", "24")
)

# --- Class Invite Code Configuration ---

INVITE_CODE_LENGTH: int = 8
INVITE_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# --- Pagination Configuration ---

DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

# --- Mail Configuration ---

# Mail delivery is disabled (notifications are only logged) when SMTP_HOST is unset
SMTP_HOST: Optional[str] = os.getenv("SMTP_HOST")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: Optional[str] = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD: Optional[str] = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
MAIL_FROM: str = os.getenv("MAIL_FROM", "no-reply@task-planner.local")

# Base URL used to build links inside emails
FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:8000")

# --- Background Dispatch Configuration ---

# Worker threads shared by the audit logger and the notifier
BACKGROUND_WORKERS: int = int(os.getenv("BACKGROUND_WORKERS", "4"))
