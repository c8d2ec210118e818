# backend/strenx/config.py
from __future__ import annotations

"""
Environment-driven settings.

.env is loaded ONCE here, before any module reads os.getenv, so every
module should import its settings from this file instead of calling
load_dotenv itself.
"""

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv

_env_path = find_dotenv(usecwd=True)
if _env_path:
    # real environment wins over .env (tests set env vars before import)
    load_dotenv(_env_path, override=False)


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    return v or default


def env_int(name: str, default: int) -> int:
    try:
        return int(env_str(name) or default)
    except ValueError:
        return default


def env_bool(name: str, default: bool = False) -> bool:
    v = env_str(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


# -------------------------------------------------
# Store
# -------------------------------------------------
DATABASE_URL = env_str("DATABASE_URL", "sqlite:///./strenx.db")
DB_TIMEOUT_SECONDS = env_int("DB_TIMEOUT_SECONDS", 10)

# -------------------------------------------------
# Sessions
# -------------------------------------------------
SECRET_KEY = env_str("SECRET_KEY", "CHANGE_ME_TO_SOMETHING_RANDOM_AND_LONG")
ACCESS_TOKEN_EXPIRE_MINUTES = env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 1440)
SESSION_COOKIE_NAME = env_str("SESSION_COOKIE_NAME", "strenx_session")
COOKIE_SECURE = env_bool("COOKIE_SECURE", False)

# -------------------------------------------------
# Super admin seed (only when explicitly enabled)
# -------------------------------------------------
SEED_SUPERADMIN = env_bool("SEED_SUPERADMIN", False)
SEED_SUPERADMIN_EMAIL = env_str("SEED_SUPERADMIN_EMAIL", "admin@example.com")
SEED_SUPERADMIN_PASSWORD = env_str("SEED_SUPERADMIN_PASSWORD", "AdminPassword123!")

LOG_LEVEL = (env_str("LOG_LEVEL", "INFO") or "INFO").upper()
