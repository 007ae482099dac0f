"""
WebAudit — Server-Sent Events transport for audit runs.

The orchestrator produces a lazy sequence of ``AuditEvent``; ``AuditStream``
owns the task that drains it and turns it into wire frames, adding the
connection-level timeouts the orchestrator knows nothing about.
"""

import asyncio
import json
import logging
from typing import AsyncIterator

from webaudit.schemas.audit import AuditEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Runs left going after their client went away. Held here so they are not
# garbage-collected mid-flight.
_detached: set[asyncio.Task] = set()


def format_sse(event: str, data) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


def _error(message: str) -> AuditEvent:
    return AuditEvent(event="error", data={"message": message})


class AuditStream:
    """One SSE channel for one audit run. Closes exactly once."""

    def __init__(
        self,
        events: AsyncIterator[AuditEvent],
        *,
        first_event_timeout: float = 15.0,
        run_timeout: float = 300.0,
        cancel_on_disconnect: bool = False,
    ):
        self._events = events
        self.first_event_timeout = first_event_timeout
        self.run_timeout = run_timeout
        self.cancel_on_disconnect = cancel_on_disconnect
        self._queue: asyncio.Queue[AuditEvent | None] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self.closed = False

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    async def _pump(self) -> None:
        try:
            async for event in self._events:
                self._queue.put_nowait(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("❌ Audit event producer crashed")
        finally:
            self._queue.put_nowait(None)

    def _close(self, event: AuditEvent) -> str:
        self.closed = True
        return format_sse(event.event, event.data)

    async def frames(self) -> AsyncIterator[str]:
        """Yield serialized SSE frames until a terminal event."""
        if self._task is not None:
            raise RuntimeError("AuditStream can only be consumed once")

        loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._pump())
        deadline = loop.time() + self.run_timeout
        started = False

        try:
            while True:
                remaining = deadline - loop.time()
                wait = min(remaining, self.first_event_timeout) if not started else remaining
                try:
                    if wait <= 0:
                        raise asyncio.TimeoutError
                    event = await asyncio.wait_for(self._queue.get(), timeout=wait)
                except asyncio.TimeoutError:
                    message = "Audit timed out" if started else "Audit failed to start"
                    logger.warning("⏱️ %s", message)
                    self._task.cancel()
                    yield self._close(_error(message))
                    return

                if event is None:
                    yield self._close(_error("Audit ended unexpectedly"))
                    return

                started = True
                if event.is_terminal:
                    yield self._close(event)
                    return
                yield format_sse(event.event, event.data)
        finally:
            self._release()

    def _release(self) -> None:
        """Stream is done (normally or because the client left)."""
        task = self._task
        if task is None or task.done():
            return
        if not self.closed:
            if self.cancel_on_disconnect:
                logger.info("🔌 Client disconnected — cancelling audit")
                task.cancel()
                return
            logger.info("🔌 Client disconnected — letting audit finish in background")
        _detached.add(task)
        task.add_done_callback(_detached.discard)
