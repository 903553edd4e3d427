"""In-memory session handling for signed-in visitors."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional

logger = logging.getLogger("newsroom.sessions")

DEFAULT_SESSION_TTL = timedelta(minutes=30)
DEFAULT_SWEEP_INTERVAL = timedelta(seconds=60)


@dataclass
class _SessionRecord:
    account_username: str
    last_used: float


class SessionStore:
    """Create, validate, extend and evict login sessions.

    Every operation takes the store lock only for the duration of the
    dictionary access, so the store may be shared between request
    handlers and the background sweeper.

    Idle time is measured with ``clock``, a monotonic seconds counter, so
    wall-clock adjustments never extend or cut short a session.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        self._ttl = ttl
        self._ttl_seconds = ttl.total_seconds()
        self._clock = clock
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, account_username: str) -> str:
        token = secrets.token_urlsafe(32)
        record = _SessionRecord(account_username=account_username, last_used=self._clock())
        with self._lock:
            self._sessions[token] = record
        logger.debug("Created session for %s", account_username)
        return token

    def touch_and_validate(self, session_id: Optional[str]) -> Optional[str]:
        """Return the owning username and refresh the session, if it is live."""

        if not session_id:
            return None
        now = self._clock()
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return None
            if now - record.last_used >= self._ttl_seconds:
                return None
            record.last_used = now
            return record.account_username

    def invalidate(self, session_id: Optional[str]) -> None:
        if not session_id:
            return
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.debug("Invalidated session for %s", removed.account_username)

    def invalidate_account(self, account_username: str) -> int:
        """Drop every session belonging to ``account_username``."""

        with self._lock:
            doomed = [
                token
                for token, record in self._sessions.items()
                if record.account_username == account_username
            ]
            for token in doomed:
                del self._sessions[token]
        if doomed:
            logger.info("Invalidated %d session(s) for %s", len(doomed), account_username)
        return len(doomed)

    def sweep(self) -> int:
        """Evict sessions idle for longer than the TTL and return how many went."""

        cutoff = self._clock() - self._ttl_seconds
        with self._lock:
            expired = [
                token
                for token, record in self._sessions.items()
                if record.last_used <= cutoff
            ]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.debug("Swept %d expired session(s)", len(expired))
        return len(expired)


class SessionSweeper:
    """Periodically prune a :class:`SessionStore` from an asyncio task."""

    def __init__(
        self,
        store: SessionStore,
        *,
        interval: timedelta = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError("Sweep interval must be positive")
        self._store = store
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        return self._store.sweep()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(
            "Session sweeper started (interval=%ss)", int(self._interval.total_seconds())
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Session sweeper stopped")

    async def _run(self) -> None:
        delay = self._interval.total_seconds()
        while True:
            await asyncio.sleep(delay)
            try:
                self.run_once()
            except Exception:  # pragma: no cover - keep the sweeper alive
                logger.exception("Session sweep failed")


__all__ = [
    "DEFAULT_SESSION_TTL",
    "DEFAULT_SWEEP_INTERVAL",
    "SessionStore",
    "SessionSweeper",
]
