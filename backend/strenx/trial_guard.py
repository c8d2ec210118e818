# backend/strenx/trial_guard.py
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from strenx import auth, models
from strenx.database import get_db
from strenx.errors import (
    SessionMissing,
    TrialExpired,
    TrialKeyAlreadyUsed,
    TrialKeyNotFound,
    TrialLimitReached,
)
from strenx.feature_flags import (
    TRIAL_HOURS,
    TRIAL_KEY_LENGTH,
    TRIAL_KEY_MIN_LENGTH,
    TRIAL_LIMITS,
    renew_url,
)
from strenx.models import utcnow

logger = logging.getLogger("strenx")

TRIAL_ACTIVE = "active"
TRIAL_EXPIRED = "expired"
NOT_TRIAL = "not_trial"

KEY_UNISSUED = "unissued"
KEY_ACTIVATED = "activated"
KEY_EXPIRED = "expired"

_KEY_ALPHABET = string.ascii_uppercase + string.digits


def trial_length() -> timedelta:
    return timedelta(hours=TRIAL_HOURS)


def normalize_trial_key(key: str) -> str:
    return (key or "").strip().upper()


# -------------------------------------------------
# Expiry
# -------------------------------------------------
@dataclass(frozen=True)
class TrialStatus:
    state: str
    gym_id: int
    expires_at: Optional[datetime] = None
    hours_left: int = 0

    @property
    def expired(self) -> bool:
        return self.state == TRIAL_EXPIRED

    def as_dict(self) -> dict:
        return {
            "state": self.state,
            "gym_id": self.gym_id,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "hours_left": self.hours_left,
            "expired": self.expired,
            "renew_url": renew_url(self.gym_id) if self.expired else None,
        }


def trial_expires_at(gym: models.Gym) -> Optional[datetime]:
    if gym.expires_at:
        return gym.expires_at
    if gym.created_at:
        return gym.created_at + trial_length()
    return None


def check_trial_expiry(gym: models.Gym, now: Optional[datetime] = None) -> TrialStatus:
    """
    Trial gyms are expired from the instant `now` reaches expires_at
    (now == expires_at already counts as expired). Paid gyms are never
    trial-expired; their renewals are handled by the renewal gate.
    """
    if not gym.is_trial:
        return TrialStatus(NOT_TRIAL, gym.id)

    now = now or utcnow()
    expires = trial_expires_at(gym)

    if expires is None or now >= expires:
        return TrialStatus(TRIAL_EXPIRED, gym.id, expires)

    remaining = expires - now
    hours_left = max(0, int((remaining.total_seconds() + 3599) // 3600))
    return TrialStatus(TRIAL_ACTIVE, gym.id, expires, hours_left)


def trial_key_state(key: models.TrialKey, now: Optional[datetime] = None) -> str:
    if key.activated_at is None:
        return KEY_UNISSUED
    now = now or utcnow()
    if key.expires_at is not None and now >= key.expires_at:
        return KEY_EXPIRED
    return KEY_ACTIVATED


# -------------------------------------------------
# Activation
# -------------------------------------------------
def activate_trial_key(
    db: Session,
    key: str,
    *,
    gym_name: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[models.Gym, models.TrialKey]:
    """
    Consumes a trial key and provisions the trial gym in ONE transaction:
      - gyms:       new row, is_trial=True, role=owner, expires_at = now + trial length
      - trial_keys: activated_at/expires_at/gym_id stamped, only if still unactivated

    Either both rows change or neither does. Rejections never write.
    """
    key_n = normalize_trial_key(key)
    if len(key_n) < TRIAL_KEY_MIN_LENGTH:
        raise TrialKeyNotFound(f"Trial key must be at least {TRIAL_KEY_MIN_LENGTH} characters long.")

    record = db.scalar(select(models.TrialKey).where(models.TrialKey.key == key_n))
    if record is None:
        logger.warning("trial activation rejected: unknown key")
        raise TrialKeyNotFound()
    if record.activated_at is not None:
        logger.warning("trial activation rejected: key %s already used", record.id)
        raise TrialKeyAlreadyUsed()

    email_n = (email or "").strip().lower() or None
    if email_n and db.scalar(select(models.Gym.id).where(models.Gym.email == email_n)):
        raise HTTPException(status_code=409, detail="Email already registered")

    now = now or utcnow()
    expires = now + trial_length()

    try:
        gym = models.Gym(
            name=(gym_name or "").strip() or "Trial Gym",
            email=email_n,
            hashed_password=auth.hash_password(password) if password else None,
            role="owner",
            is_trial=True,
            trial_key=key_n,
            created_at=now,
            expires_at=expires,
        )
        db.add(gym)
        db.flush()

        # Conditional write: a concurrent activation that got here first leaves 0 rows.
        result = db.execute(
            update(models.TrialKey)
            .where(models.TrialKey.id == record.id, models.TrialKey.activated_at.is_(None))
            .values(activated_at=now, expires_at=expires, gym_id=gym.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.warning("trial activation lost race for key %s", record.id)
            raise TrialKeyAlreadyUsed()

        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(gym)
    db.refresh(record)
    logger.info("trial activated: key=%s gym=%s expires_at=%s", record.id, gym.id, expires.isoformat())
    return gym, record


def issue_trial_keys(db: Session, count: int) -> list[models.TrialKey]:
    """
    Creates `count` fresh unissued keys (8 chars, A-Z0-9).
    """
    existing = set(db.scalars(select(models.TrialKey.key)).all())
    keys: list[models.TrialKey] = []
    while len(keys) < count:
        value = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(TRIAL_KEY_LENGTH))
        if value in existing:
            continue
        existing.add(value)
        keys.append(models.TrialKey(key=value))

    db.add_all(keys)
    db.commit()
    for k in keys:
        db.refresh(k)
    logger.info("issued %d trial keys", len(keys))
    return keys


# -------------------------------------------------
# Trial usage caps
# -------------------------------------------------
_LIMITED = {
    "members": models.Member,
    "trainers": models.Trainer,
    "branches": models.Branch,
}


def enforce_trial_limit(db: Session, gym: models.Gym, resource: str) -> None:
    if not gym.is_trial:
        return
    cap = TRIAL_LIMITS.get(resource)
    model = _LIMITED.get(resource)
    if cap is None or model is None:
        return

    used = db.scalar(select(func.count()).select_from(model).where(model.gym_id == gym.id)) or 0
    if used >= cap:
        raise TrialLimitReached(resource=resource, limit=cap, used=int(used))


# -------------------------------------------------
# Guard
# -------------------------------------------------
def require_active_trial(
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
) -> models.Gym:
    """
    Runs on every owner dashboard load. An expired trial denies the
    dashboard and points at the renewal page; nothing is deleted.
    """
    if principal.gym_id is None:
        raise SessionMissing()

    gym = db.get(models.Gym, principal.gym_id)
    if gym is None:
        raise HTTPException(status_code=404, detail="Gym not found")

    status = check_trial_expiry(gym)
    if status.expired:
        raise TrialExpired(
            gym.id,
            expires_at=status.expires_at.isoformat() if status.expires_at else None,
        )
    return gym
