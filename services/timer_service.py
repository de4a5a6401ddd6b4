"""
TimerService: cancellable one-shot delayed callbacks.

Each timer is an asyncio task that sleeps until its fire time and then awaits
its callback. The owner keeps the returned ScheduledTimer handle and calls
cancel() when the thing the timer belongs to goes away.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

logger = logging.getLogger("scrim_bot.services.timer")

TimerCallback = Callable[[], Awaitable[None]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScheduledTimer:
    """Handle for one pending callback."""

    def __init__(self, name: str, fire_at: datetime):
        self.name = name
        self.fire_at = fire_at
        self.task: asyncio.Task | None = None
        self._cancelled = False
        self._fired = False

    def __repr__(self) -> str:
        state = "fired" if self._fired else "cancelled" if self._cancelled else "pending"
        return f"ScheduledTimer({self.name!r}, {self.fire_at.isoformat()}, {state})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def pending(self) -> bool:
        return not self._cancelled and not self._fired

    def cancel(self) -> bool:
        """
        Cancel the timer if it has not fired yet.

        Takes effect immediately: a timer whose sleep already elapsed but whose
        callback has not started will not run it.

        Returns:
            True if the timer was pending and is now cancelled
        """
        if not self.pending:
            return False
        self._cancelled = True
        if self.task is not None:
            self.task.cancel()
        logger.debug(f"Cancelled timer {self.name}")
        return True


class TimerService:
    """Schedules ScheduledTimers on the running event loop."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or utc_now
        self._timers: set[ScheduledTimer] = set()

    def now(self) -> datetime:
        return self._clock()

    def schedule_at(
        self, when: datetime, callback: TimerCallback, name: str
    ) -> ScheduledTimer | None:
        """
        Run callback at the given wall-clock time.

        Args:
            when: Timezone-aware fire time
            callback: Coroutine function taking no arguments
            name: Label used in logs

        Returns:
            The timer handle, or None if `when` is not in the future
        """
        delay = (when - self.now()).total_seconds()
        if delay <= 0:
            logger.info(f"Not scheduling timer {name}: fire time {when.isoformat()} has passed")
            return None

        timer = ScheduledTimer(name, when)
        timer.task = asyncio.create_task(self._run(timer, delay, callback))
        self._timers.add(timer)
        logger.info(f"Scheduled timer {name} in {delay:.1f}s")
        return timer

    def schedule_in(
        self, delay_seconds: float, callback: TimerCallback, name: str
    ) -> ScheduledTimer | None:
        return self.schedule_at(self.now() + timedelta(seconds=delay_seconds), callback, name)

    async def _run(self, timer: ScheduledTimer, delay: float, callback: TimerCallback) -> None:
        try:
            await asyncio.sleep(delay)
            if timer.cancelled:
                return
            timer._fired = True
            await callback()
        except asyncio.CancelledError:
            return
        except Exception as exc:
            logger.error(f"Timer {timer.name} callback failed: {exc}", exc_info=True)
        finally:
            self._timers.discard(timer)

    def pending_timers(self) -> list[ScheduledTimer]:
        return [t for t in self._timers if t.pending]

    def cancel_all(self) -> int:
        """Cancel every pending timer. Returns how many were cancelled."""
        cancelled = sum(1 for t in list(self._timers) if t.cancel())
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending timers")
        return cancelled
