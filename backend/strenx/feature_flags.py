# backend/strenx/feature_flags.py
from __future__ import annotations

"""
Central place to define access rules.

We support:
- A 24-hour owner trial, unlocked by a single-use trial key
- After the trial ends, the owner dashboard is locked behind the renewal page
  (the gym's data is kept)
- Paid gyms are never locked; a lapsed subscription only surfaces a renew link
"""

from strenx.config import env_int

# Not configurable: a trial key always buys exactly 24 hours.
TRIAL_HOURS = 24
TRIAL_KEY_MIN_LENGTH = 8
TRIAL_KEY_LENGTH = 8

# Trial accounts can try everything, but only a little of it.
TRIAL_LIMITS: dict[str, int] = {
    "members": env_int("TRIAL_MAX_MEMBERS", 5),
    "trainers": env_int("TRIAL_MAX_TRAINERS", 1),
    "branches": env_int("TRIAL_MAX_BRANCHES", 1),
}

LOGIN_PATH = "/login"
CHANGE_PASSWORD_PATH = "/change-password"
RENEW_PATH = "/renew"

# Everything under this prefix goes through the access gate.
PROTECTED_PREFIX = "/dashboard"

# Members whose plan ends within this window get a payment reminder.
PAYMENT_REMINDER_DAYS = 7


def is_protected(path: str) -> bool:
    return path == PROTECTED_PREFIX or path.startswith(PROTECTED_PREFIX + "/")


def renew_url(gym_id: int) -> str:
    return f"{RENEW_PATH}/{gym_id}"


# A second scan inside this window is treated as the same visit.
ATTENDANCE_DEDUPE_MINUTES = 10
