# backend/strenx/routers/public.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import models, renewal_gate, schemas
from strenx.database import get_db
from strenx.models import utcnow
from strenx.trial_guard import check_trial_expiry

router = APIRouter(tags=["public"])

SUPPORT_CONTACT = {"email": "strenxfit@gmail.com", "phone": "+91 79884 87892"}


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/plans", response_model=list[schemas.SubscriptionPlanOut])
def list_plans(db: Session = Depends(get_db)):
    return db.scalars(select(models.SubscriptionPlan).order_by(models.SubscriptionPlan.price.asc())).all()


@router.get("/renew/{gym_id}")
def renew_gym(gym_id: int, db: Session = Depends(get_db)):
    """
    Renewal entry point the expired-trial flow sends owners to.
    Deliberately outside /dashboard so a locked owner can always reach it.
    """
    gym = db.get(models.Gym, gym_id)
    if gym is None:
        raise HTTPException(status_code=404, detail="Gym not found")

    now = utcnow()
    plans = db.scalars(select(models.SubscriptionPlan).order_by(models.SubscriptionPlan.price.asc())).all()

    return {
        "ok": True,
        "gym": {"id": gym.id, "name": gym.name, "is_trial": gym.is_trial},
        "trial": check_trial_expiry(gym, now).as_dict(),
        "renewal": renewal_gate.gym_subscription_status(gym, now).as_dict(),
        "plans": [schemas.SubscriptionPlanOut.model_validate(p).model_dump() for p in plans],
        "contact": SUPPORT_CONTACT,
    }
