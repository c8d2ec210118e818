# backend/strenx/routers/trainer.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import auth, models, schemas
from strenx.database import get_db
from strenx.models import utcnow
from strenx.roles import Role
from strenx.routers.owner import member_out

router = APIRouter(
    prefix="/dashboard/trainer",
    tags=["trainer"],
    dependencies=[Depends(auth.require_role(Role.TRAINER))],
)


@router.get("")
def trainer_dashboard(
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
):
    trainer = db.get(models.Trainer, principal.trainer_id)
    if trainer is None or trainer.gym_id != principal.gym_id:
        raise HTTPException(status_code=404, detail="Trainer not found")

    now = utcnow()
    stmt = (
        select(models.Member)
        .where(models.Member.assigned_trainer_id == trainer.id)
        .order_by(models.Member.full_name.asc())
    )
    assigned = [member_out(m, now).model_dump(mode="json") for m in db.scalars(stmt).all()]

    return {
        "ok": True,
        "trainer": schemas.TrainerOut.model_validate(trainer).model_dump(),
        "assigned_members": assigned,
    }
