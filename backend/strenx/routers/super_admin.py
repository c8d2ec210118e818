# backend/strenx/routers/super_admin.py
from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import auth, models, renewal_gate, schemas
from strenx.database import get_db
from strenx.models import utcnow
from strenx.roles import Role
from strenx.trial_guard import check_trial_expiry, issue_trial_keys, trial_key_state

logger = logging.getLogger("strenx")

router = APIRouter(
    prefix="/dashboard/superadmin",
    tags=["superadmin"],
    dependencies=[Depends(auth.require_role(Role.SUPERADMIN))],
)


def _trial_key_out(k: models.TrialKey, now) -> schemas.TrialKeyOut:
    out = schemas.TrialKeyOut.model_validate(k)
    out.state = trial_key_state(k, now)
    return out


@router.get("")
def super_dashboard(db: Session = Depends(get_db)):
    now = utcnow()
    gyms = db.scalars(select(models.Gym).order_by(models.Gym.id.asc())).all()

    rows = []
    for g in gyms:
        rows.append(
            {
                "id": g.id,
                "name": g.name,
                "is_trial": g.is_trial,
                "trial": check_trial_expiry(g, now).as_dict(),
                "renewal": renewal_gate.gym_subscription_status(g, now).as_dict(),
            }
        )

    return {
        "ok": True,
        "count": len(rows),
        "gyms": rows,
        "trial_gyms": sum(1 for g in gyms if g.is_trial),
    }


# -------------------------------------------------
# TRIAL KEYS
# -------------------------------------------------
@router.get("/trial-keys", response_model=list[schemas.TrialKeyOut])
def super_list_trial_keys(db: Session = Depends(get_db)):
    now = utcnow()
    keys = db.scalars(select(models.TrialKey).order_by(models.TrialKey.id.desc())).all()
    return [_trial_key_out(k, now) for k in keys]


@router.post("/trial-keys", response_model=list[schemas.TrialKeyOut], status_code=201)
def super_issue_trial_keys(payload: schemas.TrialKeyIssueIn, db: Session = Depends(get_db)):
    now = utcnow()
    return [_trial_key_out(k, now) for k in issue_trial_keys(db, payload.count)]


# -------------------------------------------------
# SUBSCRIPTION PLANS
# -------------------------------------------------
@router.get("/plans", response_model=list[schemas.SubscriptionPlanOut])
def super_list_plans(db: Session = Depends(get_db)):
    return db.scalars(select(models.SubscriptionPlan).order_by(models.SubscriptionPlan.price.asc())).all()


@router.post("/plans", response_model=schemas.SubscriptionPlanOut, status_code=201)
def super_create_plan(payload: schemas.SubscriptionPlanIn, db: Session = Depends(get_db)):
    name = payload.name.strip()
    if db.scalar(select(models.SubscriptionPlan.id).where(models.SubscriptionPlan.name == name)):
        raise HTTPException(status_code=409, detail="Plan name already exists")

    plan = models.SubscriptionPlan(
        name=name,
        duration_label=payload.duration_label.strip(),
        duration_days=payload.duration_days,
        price=payload.price,
        benefits=[b.strip() for b in payload.benefits if b.strip()],
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


@router.post("/gyms/{gym_id}/subscription", response_model=schemas.GymOut)
def super_apply_plan(
    gym_id: int,
    payload: schemas.ApplyPlanIn,
    db: Session = Depends(get_db),
):
    """
    Finalizes a renewal arranged with support: the gym stops being a trial
    and its subscription runs for the plan's duration from now, or from the
    current end date if that is still in the future.
    """
    gym = db.get(models.Gym, gym_id)
    if gym is None:
        raise HTTPException(status_code=404, detail="Gym not found")
    plan = db.get(models.SubscriptionPlan, payload.plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")

    now = utcnow()
    start = gym.subscription_ends_at if (gym.subscription_ends_at and gym.subscription_ends_at > now) else now

    gym.is_trial = False
    gym.plan_id = plan.id
    gym.subscription_ends_at = start + timedelta(days=plan.duration_days)
    db.commit()
    db.refresh(gym)

    logger.info("plan %s applied to gym %s until %s", plan.id, gym.id, gym.subscription_ends_at.isoformat())
    return gym
