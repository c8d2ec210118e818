# backend/strenx/routers/member.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import auth, models, renewal_gate, schemas
from strenx.database import get_db
from strenx.models import utcnow
from strenx.roles import Role
from strenx.routers.owner import member_out

router = APIRouter(
    prefix="/dashboard/member",
    tags=["member"],
    dependencies=[Depends(auth.require_role(Role.MEMBER))],
)


def _me(
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
) -> models.Member:
    m = db.get(models.Member, principal.member_id)
    if m is None or m.gym_id != principal.gym_id:
        raise HTTPException(status_code=404, detail="Member not found")
    return m


@router.get("")
def member_dashboard(member: models.Member = Depends(_me)):
    """
    An expired plan does not lock the member out; it only adds the renew link.
    """
    now = utcnow()
    gym = member.gym
    return {
        "ok": True,
        "member": member_out(member, now).model_dump(mode="json"),
        "renewal": renewal_gate.member_renewal(member, now).as_dict(),
        "gym": {"id": gym.id, "name": gym.name},
    }


@router.get("/payments", response_model=list[schemas.PaymentOut])
def member_payment_history(
    db: Session = Depends(get_db),
    member: models.Member = Depends(_me),
):
    # Always visible, whatever the membership status.
    stmt = (
        select(models.Payment)
        .where(models.Payment.member_id == member.id)
        .order_by(models.Payment.paid_at.desc())
    )
    return db.scalars(stmt).all()


@router.get("/renew")
def member_renew(
    db: Session = Depends(get_db),
    member: models.Member = Depends(_me),
):
    """
    Renewal is finalized with the gym directly; this hands out who to contact.
    """
    gym = member.gym
    plans = db.scalars(select(models.SubscriptionPlan).order_by(models.SubscriptionPlan.price.asc())).all()
    return {
        "ok": True,
        "renewal": renewal_gate.member_renewal(member).as_dict(),
        "plans": [schemas.SubscriptionPlanOut.model_validate(p).model_dump() for p in plans],
        "contact": {"email": gym.email, "phone": gym.contact_number},
        "gym": {"id": gym.id, "name": gym.name},
    }
