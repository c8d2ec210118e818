# backend/strenx/renewal_gate.py
from __future__ import annotations

"""
Renewal decisions for paying gyms and for gym members.

"Expired" is always derived from the stored end date at read time and never
written back, so renewing (a new payment / plan) clears it automatically.
Nothing here blocks reads: payment history stays visible whatever the status.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from strenx import models
from strenx.feature_flags import PAYMENT_REMINDER_DAYS, renew_url
from strenx.models import utcnow

ACTIVE = "Active"
EXPIRED = "Expired"
PENDING = "Pending"
FROZEN = "Frozen"
STOPPED = "Stopped"

STORED_MEMBER_STATUSES = (ACTIVE, PENDING, FROZEN, STOPPED)


def is_lapsed(end: Optional[datetime], now: datetime) -> bool:
    # Same boundary as the trial check: the end instant itself is lapsed.
    return end is not None and now >= end


@dataclass(frozen=True)
class RenewalStatus:
    status: str
    ends_at: Optional[datetime] = None
    renew_url: Optional[str] = None

    @property
    def expired(self) -> bool:
        return self.status == EXPIRED

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "expired": self.expired,
            "renew_url": self.renew_url,
        }


def gym_subscription_status(gym: models.Gym, now: Optional[datetime] = None) -> RenewalStatus:
    """
    Paid gyms only; trial gyms report their trial through trial_guard.
    A gym with no end date is treated as active.
    """
    now = now or utcnow()
    end = gym.subscription_ends_at
    if gym.is_trial:
        return RenewalStatus(ACTIVE, end)
    if is_lapsed(end, now):
        return RenewalStatus(EXPIRED, end, renew_url(gym.id))
    return RenewalStatus(ACTIVE, end)


def member_status(member: models.Member, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    stored = member.status if member.status in STORED_MEMBER_STATUSES else PENDING
    if stored == ACTIVE and is_lapsed(member.end_date, now):
        return EXPIRED
    return stored


def member_renewal(member: models.Member, now: Optional[datetime] = None) -> RenewalStatus:
    status = member_status(member, now)
    return RenewalStatus(
        status,
        member.end_date,
        "/dashboard/member/renew" if status == EXPIRED else None,
    )


def lapsed(members: Iterable[models.Member], now: Optional[datetime] = None) -> list[models.Member]:
    """Renewal alerts: plans that already ended (or end right now)."""
    now = now or utcnow()
    return [m for m in members if is_lapsed(m.end_date, now)]


def due_soon(
    members: Iterable[models.Member],
    now: Optional[datetime] = None,
    days: int = PAYMENT_REMINDER_DAYS,
) -> list[models.Member]:
    """Payment reminders: plans ending within the next `days`."""
    now = now or utcnow()
    horizon = now + timedelta(days=days)
    return [m for m in members if m.end_date is not None and now < m.end_date <= horizon]


def count_by_status(members: Iterable[models.Member], now: Optional[datetime] = None) -> dict[str, int]:
    now = now or utcnow()
    out: dict[str, int] = {}
    for m in members:
        s = member_status(m, now)
        out[s] = out.get(s, 0) + 1
    return out
