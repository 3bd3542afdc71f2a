"""
config.py — Environment-driven settings for the EduGrade backend.

Values come from the process environment, optionally seeded from a local .env
file. Everything here is read once at import time.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

# Record store adapter. Only "memory" ships with the backend.
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory").strip().lower()
SEED_DEMO_DATA = _env_flag("SEED_DEMO_DATA")

# Student import
IMPORT_TRAILER_SENTINEL = os.getenv("IMPORT_TRAILER_SENTINEL", "DESPEDIDA")
IMPORT_FALLBACK_ENCODING = os.getenv("IMPORT_FALLBACK_ENCODING", "cp1252")
IMPORT_UNRESOLVED_EXAMPLES = int(os.getenv("IMPORT_UNRESOLVED_EXAMPLES", "3"))

# Used when the store holds no academic settings yet
DEFAULT_PERIOD_COUNT = int(os.getenv("DEFAULT_PERIOD_COUNT", "3"))
