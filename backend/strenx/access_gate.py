# backend/strenx/access_gate.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.exc import OperationalError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from strenx import auth
from strenx.database import SessionLocal
from strenx.errors import (
    RoleMismatch,
    SessionMissing,
    StoreUnavailable,
    StrenxError,
    error_response,
)
from strenx.feature_flags import LOGIN_PATH, is_protected
from strenx.roles import Role, parse_role

logger = logging.getLogger("strenx")

ALLOW = "allow"
REDIRECT = "redirect"


@dataclass(frozen=True)
class GateDecision:
    outcome: str
    location: Optional[str] = None
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == ALLOW


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def evaluate_access(path: str, principal: Optional[auth.Principal]) -> GateDecision:
    """
    Role/path consistency for one protected path.

    - no principal (or a role outside the closed set) -> login
    - path outside /dashboard/<role>                 -> /dashboard/<role>
    - otherwise                                      -> allow

    Pure: the same (path, principal) always gives the same answer, and the
    redirect target itself always evaluates to allow.
    """
    role: Optional[Role] = parse_role(principal.role) if principal is not None else None
    if role is None:
        return GateDecision(REDIRECT, LOGIN_PATH, SessionMissing.code)

    expected = role.dashboard_path
    if not _under(path, expected):
        return GateDecision(REDIRECT, expected, RoleMismatch.code)

    return GateDecision(ALLOW)


def decision_error(decision: GateDecision) -> Optional[StrenxError]:
    if decision.allowed:
        return None
    if decision.reason == RoleMismatch.code:
        return RoleMismatch(decision.location)
    return SessionMissing()


class AccessGateMiddleware(BaseHTTPMiddleware):
    """
    Runs before any /dashboard handler:
      - resolves the principal from cookie / bearer token
      - redirects (303) browsers, returns JSON with the redirect target to API clients
      - never writes to the store
    Allowed requests carry the principal on request.state.principal.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not is_protected(path):
            return await call_next(request)

        db = SessionLocal()
        try:
            principal = auth.load_principal(db, auth.token_from_request(request))
        except OperationalError:
            logger.warning("access gate could not reach the store for %s", path)
            return error_response(request, StoreUnavailable())
        finally:
            db.close()

        decision = evaluate_access(path, principal)
        if not decision.allowed:
            return error_response(request, decision_error(decision))

        request.state.principal = principal
        return await call_next(request)
