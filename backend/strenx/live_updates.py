# backend/strenx/live_updates.py
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger("strenx")


class Subscription:
    """
    One consumer's view of a handle's event stream. Only valid inside
    FollowRequestFeed.subscribe(); leaving that block releases it.
    """

    def __init__(self, handle: str, loop: asyncio.AbstractEventLoop):
        self.handle = handle
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def get(self, timeout: Optional[float] = None) -> dict:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

    def _deliver(self, event: dict) -> None:
        if not self.closed:
            self.queue.put_nowait(event)


class FollowRequestFeed:
    """
    Push channel for pending follow-request counts, keyed by community handle.

    publish() may be called from sync route handlers running in the
    threadpool; events are handed to each subscriber's own loop.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, set[Subscription]] = {}

    @asynccontextmanager
    async def subscribe(self, handle: str):
        sub = Subscription(handle, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.setdefault(handle, set()).add(sub)
        try:
            yield sub
        finally:
            self._release(sub)

    def _release(self, sub: Subscription) -> None:
        sub.closed = True
        with self._lock:
            subs = self._subscribers.get(sub.handle)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subscribers[sub.handle]

    def subscriber_count(self, handle: Optional[str] = None) -> int:
        with self._lock:
            if handle is not None:
                return len(self._subscribers.get(handle, ()))
            return sum(len(s) for s in self._subscribers.values())

    def publish(self, handle: str, pending: int) -> int:
        event = {"type": "follow_requests", "handle": handle, "pending": int(pending)}
        with self._lock:
            subs = list(self._subscribers.get(handle, ()))

        delivered = 0
        for sub in subs:
            try:
                sub.loop.call_soon_threadsafe(sub._deliver, event)
                delivered += 1
            except RuntimeError:
                # subscriber's loop already shut down
                self._release(sub)
        return delivered


# Global instance
follow_feed = FollowRequestFeed()
