# backend/strenx/routers/owner.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import auth, models, renewal_gate, schemas
from strenx.database import get_db
from strenx.models import utcnow
from strenx.roles import Role
from strenx.trial_guard import check_trial_expiry, enforce_trial_limit, require_active_trial

router = APIRouter(
    prefix="/dashboard/owner",
    tags=["owner"],
    dependencies=[
        Depends(auth.require_role(Role.OWNER)),  # owner required
        Depends(require_active_trial),           # expired trial -> renewal prompt
    ],
)


def member_out(m: models.Member, now=None, temp_password: Optional[str] = None) -> schemas.MemberOut:
    return schemas.MemberOut(
        id=m.id,
        gym_id=m.gym_id,
        branch_id=m.branch_id,
        login_id=m.login_id,
        full_name=m.full_name,
        phone=m.phone,
        start_date=m.start_date,
        end_date=m.end_date,
        assigned_trainer_id=m.assigned_trainer_id,
        status=renewal_gate.member_status(m, now),
        temp_password=temp_password,
    )


def _must_be_same_gym(gym: models.Gym, obj, label: str):
    if obj is None or obj.gym_id != gym.id:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj


def _gym_members(db: Session, gym: models.Gym, branch_id: Optional[int] = None) -> list[models.Member]:
    stmt = select(models.Member).where(models.Member.gym_id == gym.id)
    if branch_id is not None:
        stmt = stmt.where(models.Member.branch_id == branch_id)
    return list(db.scalars(stmt.order_by(models.Member.full_name.asc())).all())


def _login_id_taken(db: Session, login_id: str) -> bool:
    return bool(
        db.scalar(select(models.Member.id).where(models.Member.login_id == login_id))
        or db.scalar(select(models.Trainer.id).where(models.Trainer.login_id == login_id))
    )


# -------------------------------------------------
# OVERVIEW
# -------------------------------------------------
@router.get("")
def owner_dashboard(
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    now = utcnow()
    members = _gym_members(db, gym)

    return {
        "ok": True,
        "gym": schemas.GymOut.model_validate(gym).model_dump(mode="json"),
        "trial": check_trial_expiry(gym, now).as_dict(),
        "renewal": renewal_gate.gym_subscription_status(gym, now).as_dict(),
        "members": {
            "total": len(members),
            "by_status": renewal_gate.count_by_status(members, now),
            "payment_reminders": len(renewal_gate.due_soon(members, now)),
            "renewal_alerts": len(renewal_gate.lapsed(members, now)),
        },
        "branches": len(gym.branches),
    }


@router.patch("/gym", response_model=schemas.GymOut)
def owner_update_gym(
    payload: schemas.GymUpdateIn,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    if payload.name is not None:
        gym.name = payload.name.strip() or gym.name
    if payload.contact_number is not None:
        gym.contact_number = payload.contact_number.strip() or None
    if payload.email is not None:
        email = str(payload.email).strip().lower()
        taken = db.scalar(select(models.Gym.id).where(models.Gym.email == email, models.Gym.id != gym.id))
        if taken:
            raise HTTPException(status_code=409, detail="Email already registered")
        gym.email = email
    if payload.password:
        gym.hashed_password = auth.hash_password(payload.password)

    db.commit()
    db.refresh(gym)
    return gym


# -------------------------------------------------
# BRANCHES / TRAINERS
# -------------------------------------------------
@router.get("/branches", response_model=list[schemas.BranchOut])
def owner_list_branches(gym: models.Gym = Depends(require_active_trial)):
    return gym.branches


@router.post("/branches", response_model=schemas.BranchOut, status_code=201)
def owner_add_branch(
    payload: schemas.BranchCreateIn,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    enforce_trial_limit(db, gym, "branches")
    branch = models.Branch(gym_id=gym.id, name=payload.name.strip())
    db.add(branch)
    db.commit()
    db.refresh(branch)
    return branch


@router.get("/trainers", response_model=list[schemas.TrainerOut])
def owner_list_trainers(
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    stmt = select(models.Trainer).where(models.Trainer.gym_id == gym.id).order_by(models.Trainer.full_name.asc())
    return db.scalars(stmt).all()


@router.post("/trainers", response_model=dict, status_code=201)
def owner_add_trainer(
    payload: schemas.TrainerCreateIn,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    _must_be_same_gym(gym, db.get(models.Branch, payload.branch_id), "Branch")
    enforce_trial_limit(db, gym, "trainers")

    login_id = payload.login_id.strip()
    if _login_id_taken(db, login_id):
        raise HTTPException(status_code=409, detail="Login ID already in use")

    temp_password = payload.password or auth.make_temp_password()
    trainer = models.Trainer(
        gym_id=gym.id,
        branch_id=payload.branch_id,
        login_id=login_id,
        hashed_password=auth.hash_password(temp_password),
        full_name=payload.full_name.strip(),
        phone=payload.phone,
        password_changed=False,
    )
    db.add(trainer)
    db.commit()
    db.refresh(trainer)

    return {
        "ok": True,
        "trainer": schemas.TrainerOut.model_validate(trainer).model_dump(),
        "temp_password": temp_password,
    }


# -------------------------------------------------
# MEMBERS
# -------------------------------------------------
@router.get("/members", response_model=list[schemas.MemberOut])
def owner_list_members(
    branch_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    now = utcnow()
    return [member_out(m, now) for m in _gym_members(db, gym, branch_id)]


@router.post("/members", response_model=schemas.MemberOut, status_code=201)
def owner_add_member(
    payload: schemas.MemberCreateIn,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    _must_be_same_gym(gym, db.get(models.Branch, payload.branch_id), "Branch")
    if payload.assigned_trainer_id is not None:
        _must_be_same_gym(gym, db.get(models.Trainer, payload.assigned_trainer_id), "Trainer")

    enforce_trial_limit(db, gym, "members")

    login_id = payload.login_id.strip()
    if _login_id_taken(db, login_id):
        raise HTTPException(status_code=409, detail="Login ID already in use")

    temp_password = payload.password or auth.make_temp_password()
    member = models.Member(
        gym_id=gym.id,
        branch_id=payload.branch_id,
        login_id=login_id,
        hashed_password=auth.hash_password(temp_password),
        full_name=payload.full_name.strip(),
        phone=payload.phone,
        status=renewal_gate.ACTIVE if payload.end_date else renewal_gate.PENDING,
        start_date=payload.start_date,
        end_date=payload.end_date,
        assigned_trainer_id=payload.assigned_trainer_id,
        password_changed=False,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member_out(member, temp_password=temp_password)


@router.get("/members/{member_id}", response_model=schemas.MemberOut)
def owner_get_member(
    member_id: int,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    m = _must_be_same_gym(gym, db.get(models.Member, member_id), "Member")
    return member_out(m)


@router.patch("/members/{member_id}/status", response_model=schemas.MemberOut)
def owner_set_member_status(
    member_id: int,
    payload: schemas.MemberStatusIn,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    m = _must_be_same_gym(gym, db.get(models.Member, member_id), "Member")
    m.status = payload.status
    db.commit()
    db.refresh(m)
    return member_out(m)


# -------------------------------------------------
# PAYMENTS
# -------------------------------------------------
@router.post("/payments", response_model=schemas.PaymentOut, status_code=201)
def owner_add_payment(
    payload: schemas.PaymentCreateIn,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    """
    Records a payment. A next due date extends the member's plan, which
    is how a lapsed member becomes Active again.
    """
    m = _must_be_same_gym(gym, db.get(models.Member, payload.member_id), "Member")

    payment = models.Payment(
        member_id=m.id,
        amount=payload.amount,
        paid_at=utcnow(),
        next_due_date=payload.next_due_date,
        note=payload.note,
    )
    db.add(payment)

    if payload.next_due_date is not None:
        m.end_date = payload.next_due_date
        if m.status in (renewal_gate.PENDING, renewal_gate.ACTIVE):
            m.status = renewal_gate.ACTIVE

    db.commit()
    db.refresh(payment)
    return payment


@router.get("/members/{member_id}/payments", response_model=list[schemas.PaymentOut])
def owner_member_payments(
    member_id: int,
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    m = _must_be_same_gym(gym, db.get(models.Member, member_id), "Member")
    stmt = select(models.Payment).where(models.Payment.member_id == m.id).order_by(models.Payment.paid_at.desc())
    return db.scalars(stmt).all()


@router.get("/renewal-alerts")
def owner_renewal_alerts(
    db: Session = Depends(get_db),
    gym: models.Gym = Depends(require_active_trial),
):
    now = utcnow()
    members = _gym_members(db, gym)
    return {
        "payment_reminders": [member_out(m, now) for m in renewal_gate.due_soon(members, now)],
        "renewal_alerts": [member_out(m, now) for m in renewal_gate.lapsed(members, now)],
    }
