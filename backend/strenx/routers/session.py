# backend/strenx/routers/session.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import auth, models, schemas
from strenx.database import get_db
from strenx.feature_flags import CHANGE_PASSWORD_PATH
from strenx.roles import Role

logger = logging.getLogger("strenx")

router = APIRouter(tags=["session"])


def _community_handle(db: Session, role: Role, record) -> Optional[str]:
    if role == Role.MEMBER:
        cond = models.CommunityProfile.member_id == record.id
    elif role == Role.TRAINER:
        cond = models.CommunityProfile.trainer_id == record.id
    else:
        return None
    return db.scalar(select(models.CommunityProfile.handle).where(cond))


def _session_out(principal: auth.Principal, token: str, must_change_password: bool = False) -> schemas.SessionOut:
    return schemas.SessionOut(
        access_token=token,
        principal=schemas.PrincipalOut(**principal.as_dict()),
        redirect_to=CHANGE_PASSWORD_PATH if must_change_password else principal.dashboard_path,
        must_change_password=must_change_password,
    )


@router.post("/login", response_model=schemas.SessionOut)
def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    found = auth.authenticate(db, form_data.username, form_data.password)
    if not found:
        logger.info("login failed for %r", form_data.username)
        raise HTTPException(status_code=401, detail="Incorrect username or password.")

    role, record = found
    must_change = False

    if role == Role.SUPERADMIN:
        principal, token = auth.open_session(
            db, role=role, admin_id=record.id, display_name=record.full_name or "Super Admin"
        )
    elif role == Role.OWNER:
        principal, token = auth.open_session(db, role=role, gym_id=record.id, display_name=record.name)
    else:
        must_change = not bool(record.password_changed)
        principal, token = auth.open_session(
            db,
            role=role,
            gym_id=record.gym_id,
            branch_id=record.branch_id,
            member_id=record.id if role == Role.MEMBER else None,
            trainer_id=record.id if role == Role.TRAINER else None,
            display_name=record.full_name,
            community_handle=_community_handle(db, role, record),
        )

    auth.set_session_cookie(response, token)
    return _session_out(principal, token, must_change)


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Full clear: the session row goes away and the cookie is dropped.
    Calling it without a session is fine.
    """
    sid = None
    token = auth.token_from_request(request)
    if token:
        sid = auth.decode_session_token(token)

    closed = auth.close_session(db, sid)
    auth.clear_session_cookie(response)
    return {"ok": True, "closed": closed}


@router.get("/session", response_model=schemas.PrincipalOut)
def current_session(principal: auth.Principal = Depends(auth.get_current_principal)):
    return schemas.PrincipalOut(**principal.as_dict())


@router.post("/change-password")
def change_password(
    payload: schemas.ChangePasswordIn,
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
):
    if principal.role == Role.MEMBER:
        record = db.get(models.Member, principal.member_id)
    elif principal.role == Role.TRAINER:
        record = db.get(models.Trainer, principal.trainer_id)
    elif principal.role == Role.OWNER:
        record = db.get(models.Gym, principal.gym_id)
    else:
        record = db.get(models.PlatformAdmin, principal.admin_id)

    if record is None:
        raise HTTPException(status_code=404, detail="Account not found")
    if not auth.verify_password(payload.current_password, record.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    record.hashed_password = auth.hash_password(payload.new_password)
    if hasattr(record, "password_changed"):
        record.password_changed = True
    db.commit()
    return {"ok": True, "redirect_to": principal.dashboard_path}
