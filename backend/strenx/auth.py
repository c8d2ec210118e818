# backend/strenx/auth.py
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    COOKIE_SECURE,
    SECRET_KEY,
    SESSION_COOKIE_NAME,
)
from .database import get_db
from .errors import RoleMismatch, SessionMissing
from .models import Gym, LoginSession, Member, PlatformAdmin, Trainer, utcnow
from .roles import Role, parse_role

logger = logging.getLogger("strenx")

ALGORITHM = "HS256"

# -------------------------------------------------------------------
# Password hashing
# -------------------------------------------------------------------
pwd_context = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def make_temp_password(length: int = 12) -> str:
    return secrets.token_urlsafe(length)[:length]


# -------------------------------------------------------------------
# Principal
# -------------------------------------------------------------------
@dataclass(frozen=True)
class Principal:
    """
    The identity of the current session, passed explicitly to handlers.
    """

    sid: str
    role: Role
    gym_id: Optional[int] = None
    branch_id: Optional[int] = None
    member_id: Optional[int] = None
    trainer_id: Optional[int] = None
    admin_id: Optional[int] = None
    display_name: str = ""
    community_handle: Optional[str] = None

    @property
    def dashboard_path(self) -> str:
        return self.role.dashboard_path

    def as_dict(self) -> dict:
        return {
            "role": self.role.value,
            "gym_id": self.gym_id,
            "branch_id": self.branch_id,
            "member_id": self.member_id,
            "trainer_id": self.trainer_id,
            "display_name": self.display_name,
            "community_handle": self.community_handle,
            "dashboard": self.dashboard_path,
        }


def _principal_from_row(row: LoginSession) -> Optional[Principal]:
    role = parse_role(row.role)
    if role is None:
        # unknown role == no session
        return None
    return Principal(
        sid=row.sid,
        role=role,
        gym_id=row.gym_id,
        branch_id=row.branch_id,
        member_id=row.member_id,
        trainer_id=row.trainer_id,
        admin_id=row.admin_id,
        display_name=row.display_name or "",
        community_handle=row.community_handle,
    )


# -------------------------------------------------------------------
# JWT create/verify
# -------------------------------------------------------------------
def create_session_token(sid: str, expires_minutes: Optional[int] = None) -> str:
    """
    Token claims:
      sid: login_sessions primary key
      exp: expiry datetime
    """
    expire = utcnow() + timedelta(minutes=expires_minutes or ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode({"sid": sid, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def decode_session_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    return str(sid) if sid else None


# -------------------------------------------------------------------
# Session lifecycle
# -------------------------------------------------------------------
def open_session(
    db: Session,
    *,
    role: Role,
    display_name: str,
    gym_id: Optional[int] = None,
    branch_id: Optional[int] = None,
    member_id: Optional[int] = None,
    trainer_id: Optional[int] = None,
    admin_id: Optional[int] = None,
    community_handle: Optional[str] = None,
) -> tuple[Principal, str]:
    """
    Login: write the identity cache row and mint its token.
    Rows that have already expired are dropped in the same commit.
    """
    now = utcnow()
    purge_expired_sessions(db, now, commit=False)

    row = LoginSession(
        sid=secrets.token_urlsafe(24),
        role=role.value,
        gym_id=gym_id,
        branch_id=branch_id,
        member_id=member_id,
        trainer_id=trainer_id,
        admin_id=admin_id,
        display_name=display_name or "",
        community_handle=community_handle,
        created_at=now,
        expires_at=now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    principal = _principal_from_row(row)
    logger.info("session opened role=%s gym=%s", role.value, gym_id)
    return principal, create_session_token(row.sid)


def purge_expired_sessions(db: Session, now=None, commit: bool = True) -> int:
    now = now or utcnow()
    result = db.execute(
        delete(LoginSession)
        .where(LoginSession.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    if result.rowcount:
        logger.info("purged %d expired sessions", result.rowcount)
    return result.rowcount or 0


def close_session(db: Session, sid: Optional[str]) -> bool:
    """
    Logout: delete the identity cache row. Safe to call twice.
    """
    if not sid:
        return False
    row = db.get(LoginSession, sid)
    if not row:
        return False
    db.delete(row)
    db.commit()
    logger.info("session closed role=%s gym=%s", row.role, row.gym_id)
    return True


def set_community_handle(db: Session, sid: str, handle: Optional[str]) -> None:
    row = db.get(LoginSession, sid)
    if row:
        row.community_handle = handle
        db.commit()


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)


def token_from_request(request: Request) -> Optional[str]:
    """
    Cookie first (browser navigation), then "Authorization: Bearer <token>".
    """
    token = (request.cookies.get(SESSION_COOKIE_NAME) or "").strip()
    if token:
        return token

    auth_header = (request.headers.get("Authorization") or "").strip()
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
        return parts[1].strip()
    return None


def load_principal(db: Session, token: Optional[str]) -> Optional[Principal]:
    if not token:
        return None
    sid = decode_session_token(token)
    if not sid:
        return None
    row = db.get(LoginSession, sid)
    if not row:
        return None
    if row.expires_at and utcnow() >= row.expires_at:
        return None
    return _principal_from_row(row)


def principal_from_request(request: Request, db: Session) -> Optional[Principal]:
    cached = getattr(request.state, "principal", None)
    if cached is not None:
        return cached
    return load_principal(db, token_from_request(request))


# -------------------------------------------------------------------
# Credential lookup (login)
# -------------------------------------------------------------------
def authenticate(db: Session, username: str, password: str):
    """
    Lookup order: platform admin (email) -> gym owner (email) -> member/trainer (login id).

    Returns (Role, record) or None.
    """
    ident = (username or "").strip()
    if not ident or not password:
        return None
    email = ident.lower()

    admin = db.scalar(select(PlatformAdmin).where(PlatformAdmin.email == email))
    if admin:
        return (Role.SUPERADMIN, admin) if verify_password(password, admin.hashed_password) else None

    gym = db.scalar(select(Gym).where(Gym.email == email))
    if gym:
        return (Role.OWNER, gym) if verify_password(password, gym.hashed_password) else None

    member = db.scalar(select(Member).where(Member.login_id == ident))
    if member and verify_password(password, member.hashed_password):
        return Role.MEMBER, member

    trainer = db.scalar(select(Trainer).where(Trainer.login_id == ident))
    if trainer and verify_password(password, trainer.hashed_password):
        return Role.TRAINER, trainer

    return None


# -------------------------------------------------------------------
# Dependencies
# -------------------------------------------------------------------
def get_current_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    principal = principal_from_request(request, db)
    if principal is None:
        raise SessionMissing()
    return principal


def get_optional_principal(request: Request, db: Session = Depends(get_db)) -> Optional[Principal]:
    return principal_from_request(request, db)


def require_role(role: Role):
    """
    Hard role gate for routers mounted outside the /dashboard middleware,
    and a second line behind it for those inside.
    """

    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role != role:
            raise RoleMismatch(principal.dashboard_path)
        return principal

    return _dep
