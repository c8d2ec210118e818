# backend/strenx/errors.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import OperationalError

from strenx.feature_flags import LOGIN_PATH, renew_url

logger = logging.getLogger("strenx")


class StrenxError(Exception):
    status_code = 400
    code = "ERROR"
    message = "Request failed."

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    # Browser navigations follow this instead of getting JSON
    def redirect_to(self) -> Optional[str]:
        return None

    def detail(self) -> dict:
        return {"code": self.code, "message": self.message, **self.extra}


class SessionMissing(StrenxError):
    status_code = 401
    code = "SESSION_MISSING"
    message = "Please log in to continue."

    def redirect_to(self) -> Optional[str]:
        return LOGIN_PATH


class RoleMismatch(StrenxError):
    status_code = 403
    code = "ROLE_MISMATCH"
    message = "This page belongs to a different role."

    def __init__(self, expected_path: str, message: Optional[str] = None):
        self.expected_path = expected_path
        super().__init__(message)

    def redirect_to(self) -> Optional[str]:
        return self.expected_path


class TrialKeyNotFound(StrenxError):
    status_code = 404
    code = "TRIAL_KEY_NOT_FOUND"
    message = "Invalid trial key."


class TrialKeyAlreadyUsed(StrenxError):
    status_code = 409
    code = "TRIAL_KEY_ALREADY_USED"
    message = "This trial key has already been used."


class TrialExpired(StrenxError):
    status_code = 403
    code = "TRIAL_EXPIRED"
    message = "Your free trial has ended. Please renew to continue."

    def __init__(self, gym_id: int, message: Optional[str] = None, **extra: Any):
        self.gym_id = gym_id
        super().__init__(message, gym_id=gym_id, renew_url=renew_url(gym_id), **extra)

    def redirect_to(self) -> Optional[str]:
        return renew_url(self.gym_id)


class TrialLimitReached(StrenxError):
    status_code = 403
    code = "TRIAL_LIMIT_REACHED"
    message = "You've reached the limit of your trial account."


class StoreUnavailable(StrenxError):
    status_code = 503
    code = "STORE_UNAVAILABLE"
    message = "The service is temporarily unavailable. Please try again."


def _wants_html(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    # browsers usually send text/html
    return "text/html" in accept


def error_response(request: Request, exc: StrenxError):
    target = exc.redirect_to()
    if target and _wants_html(request):
        return RedirectResponse(url=target, status_code=303)
    detail = exc.detail()
    if target:
        detail.setdefault("redirect", target)
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


async def strenx_exception_handler(request: Request, exc: StrenxError):
    return error_response(request, exc)


async def store_exception_handler(request: Request, exc: OperationalError):
    # The request's session is closed by get_db, which discards the open transaction.
    logger.warning("store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return error_response(request, StoreUnavailable())


def register(app) -> None:
    app.add_exception_handler(StrenxError, strenx_exception_handler)
    app.add_exception_handler(OperationalError, store_exception_handler)
