"""Round Timer: one automatic-resolution countdown per group.

Invariants:
    - At most one pending countdown per group key
    - A countdown removes itself from the table BEFORE invoking its callback,
      so cancel() from inside the callback never cancels the running task
    - cancel() is idempotent; cancelling a fired or unknown countdown is a no-op
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TimerCallback = Callable[[str, str], Awaitable[object]]


class RoundTimer:
    """asyncio-task countdowns keyed by group."""

    def __init__(self, delay_seconds: float):
        self.delay_seconds = delay_seconds
        self._pending: dict[str, tuple[str, asyncio.Task]] = {}

    def schedule(
        self, group_key: str, round_id: str, callback: TimerCallback,
    ) -> asyncio.Task:
        """Start the countdown for a freshly opened round."""
        self.cancel(group_key)
        task = asyncio.create_task(
            self._countdown(group_key, round_id, callback),
            name=f"round-timer:{group_key}",
        )
        self._pending[group_key] = (round_id, task)
        logger.info(
            f"Round timer scheduled ({self.delay_seconds}s)",
            extra={"group_key": group_key, "round_id": round_id},
        )
        return task

    def cancel(self, group_key: str) -> bool:
        """Cancel a pending countdown. Returns True if one was pending."""
        entry = self._pending.pop(group_key, None)
        if entry is None:
            return False
        round_id, task = entry
        task.cancel()
        logger.info(
            "Round timer cancelled",
            extra={"group_key": group_key, "round_id": round_id},
        )
        return True

    def is_pending(self, group_key: str) -> bool:
        return group_key in self._pending

    async def shutdown(self) -> None:
        """Cancel every countdown (application shutdown)."""
        tasks = [task for _, task in self._pending.values()]
        self._pending.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _countdown(
        self, group_key: str, round_id: str, callback: TimerCallback,
    ) -> None:
        await asyncio.sleep(self.delay_seconds)
        entry = self._pending.get(group_key)
        if entry is None or entry[0] != round_id:
            return
        del self._pending[group_key]
        logger.info(
            "Round timer fired",
            extra={"group_key": group_key, "round_id": round_id},
        )
        try:
            await callback(group_key, round_id)
        except Exception as e:
            logger.error(
                f"Timer-driven resolution failed: {e}",
                extra={"group_key": group_key, "round_id": round_id},
                exc_info=True,
            )
