# backend/strenx/main.py
from __future__ import annotations

import logging

from fastapi import Depends, FastAPI
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from strenx import auth, errors, models
from strenx.access_gate import AccessGateMiddleware
from strenx.config import (
    LOG_LEVEL,
    SEED_SUPERADMIN,
    SEED_SUPERADMIN_EMAIL,
    SEED_SUPERADMIN_PASSWORD,
)
from strenx.database import SessionLocal, init_db
from strenx.feature_flags import LOGIN_PATH
from strenx.routers import attendance, community, member, owner, public, session, super_admin, trainer, trial

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("strenx")


# -------------------------------------------------
# APP SETUP
# -------------------------------------------------
app = FastAPI(title="Strenx Backend", version="0.1.0")

errors.register(app)

# Every /dashboard request is checked before its handler runs
app.add_middleware(AccessGateMiddleware)

# Routers
app.include_router(session.router)
app.include_router(trial.router)
app.include_router(public.router)
app.include_router(owner.router)
app.include_router(member.router)
app.include_router(trainer.router)
app.include_router(super_admin.router)
app.include_router(community.router)
app.include_router(attendance.router)
app.include_router(attendance.owner_router)


# -------------------------------------------------
# ROOT
# -------------------------------------------------
@app.get("/")
def root(principal=Depends(auth.get_optional_principal)):
    if principal is None:
        return {"ok": True, "service": app.title, "login": LOGIN_PATH}
    return RedirectResponse(url=principal.dashboard_path, status_code=303)


# -------------------------------------------------
# STARTUP: TABLES + OPTIONAL SUPER ADMIN SEED
# -------------------------------------------------
def seed_superadmin(db: Session) -> bool:
    email = (SEED_SUPERADMIN_EMAIL or "").strip().lower()
    if not email or db.scalar(select(models.PlatformAdmin.id).where(models.PlatformAdmin.email == email)):
        return False

    db.add(
        models.PlatformAdmin(
            email=email,
            hashed_password=auth.hash_password(SEED_SUPERADMIN_PASSWORD),
            full_name="Default Super Admin",
        )
    )
    db.commit()
    logger.info("seeded super admin %s", email)
    return True


@app.on_event("startup")
def bootstrap_startup():
    init_db()

    db = SessionLocal()
    try:
        auth.purge_expired_sessions(db)

        # seed ONLY when explicitly enabled
        if SEED_SUPERADMIN:
            seed_superadmin(db)
    finally:
        db.close()
