"""Post-commit side effects run as retried, counted background tasks.

Effects are enqueued only after a task write has committed. Each effect
runs in its own asyncio task so no caller waits on a notifier, and no
lock or pending write is held while it runs. Failures are retried with
exponential backoff, then logged and counted; they never reach the
caller whose operation produced them.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from src.core.config import settings
from src.models.service_models import EffectCounters, EffectStats


logger = logging.getLogger(__name__)

Effect = Callable[[], Awaitable[None]]


class EffectOutbox:
    """Owner of background effect tasks and their success/failure counters."""

    def __init__(self, *, max_attempts: int | None = None, base_delay: float | None = None) -> None:
        self._max_attempts = max_attempts if max_attempts is not None else settings.notification_max_attempts
        self._base_delay = base_delay if base_delay is not None else settings.notification_retry_base_delay
        self._pending: set[asyncio.Task[None]] = set()
        self._counters: dict[str, EffectCounters] = defaultdict(EffectCounters)

    def enqueue(self, kind: str, effect: Effect) -> asyncio.Task[None]:
        """Schedule an effect to run in the background."""
        task = asyncio.create_task(self._run(kind, effect), name=f"effect:{kind}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, kind: str, effect: Effect) -> None:
        last_error: Exception | None = None
        for attempt in range(self._max_attempts):
            try:
                await effect()
            except Exception as e:
                last_error = e
                logger.warning(
                    "Effect %s failed on attempt %d/%d: %s",
                    kind,
                    attempt + 1,
                    self._max_attempts,
                    e,
                )
                if attempt < self._max_attempts - 1:
                    await asyncio.sleep(self._base_delay * (2**attempt))
            else:
                self.record_success(kind)
                return

        self.record_failure(kind, last_error)

    def record_success(self, kind: str) -> None:
        self._counters[kind].succeeded += 1

    def record_failure(self, kind: str, error: BaseException | None) -> None:
        """Count a failed effect and log it with its cause."""
        self._counters[kind].failed += 1
        logger.error(
            "Effect %s failed permanently",
            kind,
            extra={"effect": kind, "error": str(error) if error else None, "failures": self._counters[kind].failed},
        )

    def stats(self) -> EffectStats:
        return EffectStats(
            pending=len(self._pending),
            effects={kind: counters.model_copy() for kind, counters in self._counters.items()},
        )

    async def drain(self) -> None:
        """Wait until every effect enqueued so far, and any they enqueue, has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
