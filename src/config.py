"""Configuration module for the Classroom Join service.

This module provides centralized configuration management, including directory
paths, API server settings, invitation defaults and enrollment policy.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List

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

# Async SQLAlchemy URL. Defaults to a SQLite file under DATA_DIR.
DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite+aiosqlite:///{DATA_DIR}/classroom_join.db"
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
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))
)

# --- Invitation Configuration ---

# Tokens are drawn from A-Z/0-9 minus look-alikes (0/O, 1/I/L).
INVITE_TOKEN_ALPHABET: str = os.getenv(
    "INVITE_TOKEN_ALPHABET", "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
)
INVITE_TOKEN_LENGTH: int = int(os.getenv("INVITE_TOKEN_LENGTH", "6"))

# Two-letter family marker carried by general class codes, e.g. UK5CRH.
CLASS_CODE_PREFIX: str = os.getenv("CLASS_CODE_PREFIX", "UK").upper()

CLASS_CODE_EXPIRY_DAYS: int = int(os.getenv("CLASS_CODE_EXPIRY_DAYS", "30"))
EMAIL_INVITE_EXPIRY_DAYS: int = int(os.getenv("EMAIL_INVITE_EXPIRY_DAYS", "7"))

# Marker email for reusable, multi-student class codes
GENERAL_INVITATION_EMAIL: str = os.getenv(
    "GENERAL_INVITATION_EMAIL", "general_invitation@blockward.app"
).lower()

# How many times issuance regenerates a token that collides with a live one
TOKEN_ALLOCATION_ATTEMPTS: int = int(os.getenv("TOKEN_ALLOCATION_ATTEMPTS", "20"))

# Base URL used for shareable join links and QR codes
JOIN_BASE_URL: str = os.getenv("JOIN_BASE_URL", "http://localhost:5173").rstrip("/")

# --- Enrollment Configuration ---

# "open": students may insert their own enrollment rows directly.
# "restricted": direct inserts are refused and every join goes through the
# atomic enroll_student procedure.
ENROLLMENT_DIRECT_INSERT_POLICY: str = os.getenv(
    "ENROLLMENT_DIRECT_INSERT_POLICY", "open"
).lower()
