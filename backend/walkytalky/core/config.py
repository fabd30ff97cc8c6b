"""
Runtime configuration.

Values come from the process environment, seeded from the project-root
``.env`` file when one exists. Variables already set in the environment win.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# backend/walkytalky/core/config.py -> backend -> project root
BACKEND_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(BACKEND_ROOT.parent / ".env")

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Join codes
CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
JOIN_CODE_LENGTH = int(os.environ.get("JOIN_CODE_LENGTH", "6"))
SINGLE_USE_CODE_COUNT = int(os.environ.get("SINGLE_USE_CODE_COUNT", "5"))

# Storage
TRANSACTION_MAX_ATTEMPTS = int(os.environ.get("TRANSACTION_MAX_ATTEMPTS", "5"))


def get_storage_backend() -> str:
    """Return the configured storage backend name ("local" or "firestore")."""
    return os.environ.get("STORAGE_BACKEND", "local").lower()


def get_data_dir() -> Path:
    """Root directory for the local JSON backend."""
    configured = os.environ.get("DATA_DIR")
    return Path(configured) if configured else BACKEND_ROOT / "data"
