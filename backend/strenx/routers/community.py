# backend/strenx/routers/community.py
from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from strenx import auth, models, schemas
from strenx.config import SESSION_COOKIE_NAME
from strenx.database import SessionLocal, get_db
from strenx.live_updates import follow_feed
from strenx.roles import Role

router = APIRouter(prefix="/community", tags=["community"])


def pending_count(db: Session, handle: str) -> int:
    return int(
        db.scalar(
            select(func.count()).select_from(models.FollowRequest).where(models.FollowRequest.to_handle == handle)
        )
        or 0
    )


def _my_handle(principal: auth.Principal) -> str:
    if not principal.community_handle:
        raise HTTPException(status_code=400, detail="Create a community profile first")
    return principal.community_handle


@router.post("/profile", status_code=201)
def create_profile(
    payload: schemas.CommunityProfileIn,
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
):
    if principal.role == Role.SUPERADMIN:
        raise HTTPException(status_code=403, detail="Super admins have no community profile")
    if principal.community_handle:
        raise HTTPException(status_code=409, detail="You already have a community profile")
    if db.get(models.CommunityProfile, payload.handle):
        raise HTTPException(status_code=409, detail="Handle already taken")

    profile = models.CommunityProfile(
        handle=payload.handle,
        gym_id=principal.gym_id,
        member_id=principal.member_id,
        trainer_id=principal.trainer_id,
        display_name=(payload.display_name or "").strip() or principal.display_name,
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="You already have a community profile")

    auth.set_community_handle(db, principal.sid, profile.handle)
    return {"ok": True, "handle": profile.handle, "display_name": profile.display_name}


@router.get("/follow-requests", response_model=list[schemas.FollowRequestOut])
def list_follow_requests(
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
):
    me = _my_handle(principal)
    stmt = (
        select(models.FollowRequest)
        .where(models.FollowRequest.to_handle == me)
        .order_by(models.FollowRequest.created_at.desc())
    )
    return db.scalars(stmt).all()


@router.post("/follow-requests", response_model=schemas.FollowRequestOut, status_code=201)
def send_follow_request(
    payload: schemas.FollowRequestIn,
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
):
    me = _my_handle(principal)
    target = (payload.to_handle or "").strip().lower()

    if target == me:
        raise HTTPException(status_code=400, detail="You cannot follow yourself")
    if not db.get(models.CommunityProfile, target):
        raise HTTPException(status_code=404, detail="Profile not found")

    already = db.scalar(
        select(models.Follow.id).where(models.Follow.follower == me, models.Follow.followee == target)
    )
    if already:
        raise HTTPException(status_code=409, detail="Already following")

    req = models.FollowRequest(from_handle=me, to_handle=target)
    db.add(req)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Follow request already sent")
    db.refresh(req)

    follow_feed.publish(target, pending_count(db, target))
    return req


@router.post("/follow-requests/{request_id}/respond")
def respond_follow_request(
    request_id: int,
    payload: schemas.FollowResponseIn,
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.get_current_principal),
):
    me = _my_handle(principal)
    req = db.get(models.FollowRequest, request_id)
    if req is None or req.to_handle != me:
        raise HTTPException(status_code=404, detail="Follow request not found")

    follower = req.from_handle
    db.delete(req)
    if payload.accept:
        db.add(models.Follow(follower=follower, followee=me))
    db.commit()

    follow_feed.publish(me, pending_count(db, me))
    return {"ok": True, "accepted": payload.accept, "follower": follower}


# -------------------------------------------------
# LIVE: pending follow-request count
# -------------------------------------------------
def _ws_principal(token: Optional[str]) -> tuple[Optional[auth.Principal], int]:
    db = SessionLocal()
    try:
        principal = auth.load_principal(db, token)
        count = pending_count(db, principal.community_handle) if principal and principal.community_handle else 0
        return principal, count
    finally:
        db.close()


@router.websocket("/ws/follow-requests")
async def follow_requests_stream(websocket: WebSocket, token: Optional[str] = Query(default=None)):
    """
    Sends the current pending count, then one message per change.
    The feed subscription lives exactly as long as the socket.
    """
    cookie_token = websocket.cookies.get(SESSION_COOKIE_NAME)
    principal, initial = await run_in_threadpool(_ws_principal, token or cookie_token)
    if principal is None or not principal.community_handle:
        await websocket.close(code=4401)
        return

    await websocket.accept()
    handle = principal.community_handle

    async with follow_feed.subscribe(handle) as sub:
        await websocket.send_json({"type": "follow_requests", "handle": handle, "pending": initial})

        # one receive stays armed across rounds so no client frame is dropped
        receive = asyncio.ensure_future(websocket.receive_text())
        event = None
        try:
            while True:
                event = asyncio.ensure_future(sub.get())
                done, _ = await asyncio.wait({receive, event}, return_when=asyncio.FIRST_COMPLETED)

                if receive in done:
                    try:
                        receive.result()
                    except WebSocketDisconnect:
                        break
                    # client pings are ignored
                    receive = asyncio.ensure_future(websocket.receive_text())

                # both may finish in the same round; the event is still sent
                if event in done:
                    await websocket.send_json(event.result())
                else:
                    event.cancel()
        finally:
            for task in (receive, event):
                if task is not None and not task.done():
                    task.cancel()
