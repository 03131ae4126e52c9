"""Deferred removal of disconnected users after a grace window."""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

DEFAULT_GRACE_SECONDS = 30.0

# Callback: (user_id) -> Awaitable[None]
ExpiryCallback = Callable[[str], Awaitable[None]]


class GraceTimerManager:
    """One cancellable timer task per offline user.

    A reconnect cancels the user's task. The expiry callback is still expected
    to re-check the user's status before acting, because a reconnect can land
    while the callback is already running.
    """

    def __init__(self, on_expire: ExpiryCallback, grace_seconds: float = DEFAULT_GRACE_SECONDS) -> None:
        self._on_expire = on_expire
        self._grace_seconds = grace_seconds
        self._tasks: dict[str, asyncio.Task[None]] = {}  # user_id -> task

    @property
    def grace_seconds(self) -> float:
        return self._grace_seconds

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def is_pending(self, user_id: str) -> bool:
        return user_id in self._tasks

    def schedule(self, user_id: str) -> None:
        """Start (or restart) the grace timer for a user."""
        self.cancel(user_id)
        self._tasks[user_id] = asyncio.create_task(self._run(user_id))

    def cancel(self, user_id: str) -> bool:
        """Cancel a pending timer. Returns True if one was pending."""
        task = self._tasks.pop(user_id, None)
        if task is None:
            return False
        if not task.done() and task is not asyncio.current_task():
            task.cancel()
        return True

    def cancel_all(self) -> None:
        for user_id in list(self._tasks):
            self.cancel(user_id)

    async def _run(self, user_id: str) -> None:
        await asyncio.sleep(self._grace_seconds)
        # drop our own entry first so the callback may freely schedule/cancel
        if self._tasks.get(user_id) is asyncio.current_task():
            self._tasks.pop(user_id, None)
        try:
            await self._on_expire(user_id)
        except Exception:
            logger.exception("grace expiry handler failed", user_id=user_id)
