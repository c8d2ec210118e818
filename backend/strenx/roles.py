# backend/strenx/roles.py
from __future__ import annotations

from enum import Enum
from typing import Optional

DASHBOARD_ROOT = "/dashboard"


class Role(str, Enum):
    OWNER = "owner"
    TRAINER = "trainer"
    MEMBER = "member"
    SUPERADMIN = "superadmin"

    @property
    def dashboard_path(self) -> str:
        return f"{DASHBOARD_ROOT}/{self.value}"


def parse_role(value) -> Optional[Role]:
    """
    Stored role strings -> Role. Anything outside the closed set is None,
    which callers must treat the same as "no session".
    """
    if isinstance(value, Role):
        return value
    r = (value or "").strip().lower() if isinstance(value, str) else ""
    try:
        return Role(r)
    except ValueError:
        return None
