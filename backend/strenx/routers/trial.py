# backend/strenx/routers/trial.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from strenx import auth, schemas
from strenx.database import get_db
from strenx.roles import Role
from strenx.trial_guard import activate_trial_key, check_trial_expiry

router = APIRouter(tags=["trial"])


@router.post("/activate-trial", status_code=201)
def activate_trial(
    payload: schemas.TrialActivateIn,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Public: consume a trial key, create the trial gym, and log its owner in.
    Unknown key -> 404, used key -> 409; neither writes anything.
    """
    gym, key = activate_trial_key(
        db,
        payload.trial_key,
        gym_name=payload.gym_name,
        email=str(payload.email) if payload.email else None,
        password=payload.password,
    )

    principal, token = auth.open_session(db, role=Role.OWNER, gym_id=gym.id, display_name=gym.name)
    auth.set_session_cookie(response, token)

    return {
        "ok": True,
        "gym": schemas.GymOut.model_validate(gym).model_dump(mode="json"),
        "trial": check_trial_expiry(gym).as_dict(),
        "trial_key": {
            "key": key.key,
            "activated_at": key.activated_at.isoformat(),
            "expires_at": key.expires_at.isoformat(),
            "gym_id": key.gym_id,
        },
        "access_token": token,
        "token_type": "bearer",
        "redirect_to": principal.dashboard_path,
    }
