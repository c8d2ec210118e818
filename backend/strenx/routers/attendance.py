# backend/strenx/routers/attendance.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import auth, models, schemas
from strenx.database import get_db
from strenx.feature_flags import ATTENDANCE_DEDUPE_MINUTES
from strenx.models import utcnow
from strenx.roles import Role
from strenx.trial_guard import require_active_trial

logger = logging.getLogger("strenx")

# Members and trainers scan from their own dashboards, so check-in lives outside /dashboard.
router = APIRouter(prefix="/attendance", tags=["attendance"])

owner_router = APIRouter(
    prefix="/dashboard/owner/attendance",
    tags=["owner"],
    dependencies=[
        Depends(auth.require_role(Role.OWNER)),
        Depends(require_active_trial),
    ],
)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)


# -------------------------------------------------
# CHECK-IN (member / trainer)
# -------------------------------------------------
@router.post("/check-in", status_code=201)
def check_in(
    payload: schemas.AttendanceCheckInIn,
    response: Response,
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
):
    """
    Records a QR scan. A second scan by the same person at the same branch
    within ATTENDANCE_DEDUPE_MINUTES returns the earlier record (200) and
    writes nothing.
    """
    if principal.role == Role.MEMBER:
        user_id = principal.member_id
    elif principal.role == Role.TRAINER:
        user_id = principal.trainer_id
    else:
        raise HTTPException(status_code=403, detail="Only members and trainers check in")

    branch = db.get(models.Branch, payload.branch_id)
    if payload.gym_id != principal.gym_id or branch is None or branch.gym_id != principal.gym_id:
        raise HTTPException(status_code=400, detail="This QR code is not valid for this gym.")

    now = utcnow()
    since = now - timedelta(minutes=ATTENDANCE_DEDUPE_MINUTES)
    recent = db.scalar(
        select(models.Attendance)
        .where(
            models.Attendance.gym_id == branch.gym_id,
            models.Attendance.branch_id == branch.id,
            models.Attendance.user_id == user_id,
            models.Attendance.user_role == principal.role.value,
            models.Attendance.scan_time >= since,
        )
        .order_by(models.Attendance.scan_time.desc())
        .limit(1)
    )
    if recent is not None:
        response.status_code = 200
        return {
            "ok": True,
            "already_checked_in": True,
            "attendance": schemas.AttendanceOut.model_validate(recent).model_dump(mode="json"),
        }

    record = models.Attendance(
        gym_id=branch.gym_id,
        branch_id=branch.id,
        user_id=user_id,
        user_role=principal.role.value,
        user_name=principal.display_name or "N/A",
        method="QR",
        scan_time=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info("check-in %s %s at branch %s", record.user_role, record.user_id, record.branch_id)
    return {
        "ok": True,
        "already_checked_in": False,
        "attendance": schemas.AttendanceOut.model_validate(record).model_dump(mode="json"),
    }


# -------------------------------------------------
# OWNER VIEWS
# -------------------------------------------------
def _branch_or_404(db: Session, gym: models.Gym, branch_id: int) -> models.Branch:
    branch = db.get(models.Branch, branch_id)
    if branch is None or branch.gym_id != gym.id:
        raise HTTPException(status_code=404, detail="Branch not found")
    return branch


def _log_since(db: Session, gym: models.Gym, since: datetime, branch_id: Optional[int]) -> dict:
    stmt = select(models.Attendance).where(
        models.Attendance.gym_id == gym.id,
        models.Attendance.scan_time >= since,
    )
    if branch_id is not None:
        stmt = stmt.where(models.Attendance.branch_id == branch_id)
    rows = db.scalars(stmt.order_by(models.Attendance.scan_time.desc())).all()

    out = [schemas.AttendanceOut.model_validate(r) for r in rows]
    return {
        "since": since.isoformat(),
        "members": [a for a in out if a.user_role == Role.MEMBER.value],
        "trainers": [a for a in out if a.user_role == Role.TRAINER.value],
    }


@owner_router.get("/qr")
def owner_attendance_qr(
    branch_id: int = Query(...),
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    # The QR code encodes exactly this payload; check-in posts it back.
    branch = _branch_or_404(db, gym, branch_id)
    return {"gym_id": gym.id, "branch_id": branch.id}


@owner_router.get("/today")
def owner_attendance_today(
    branch_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    return _log_since(db, gym, start_of_day(utcnow()), branch_id)


@owner_router.get("/log")
def owner_attendance_month(
    branch_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    return _log_since(db, gym, start_of_month(utcnow()), branch_id)
