"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Database ─────────────────────────────────────────────────────────
DB_URI = os.getenv("DB_URI", "sqlite:///prescriptions.db")

PRESCRIPTIONS_COLLECTION = "prescriptions"
USERS_COLLECTION = "users"

# ── Sessions ─────────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
SESSION_COOKIE_NAME = "username"
SESSION_EXPIRY_HOURS = 1
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

# Paths reachable without a session cookie.
PUBLIC_PATHS = frozenset({"/register", "/login"})

# ── API server ───────────────────────────────────────────────────────
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8081"))
GRACEFUL_TIMEOUT_SECONDS = 15.0


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
