import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from ..core import config
from ..core.constants import EventAction
from .crud import write_event

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Append-only audit trail written by a background worker.

    `record` only enqueues; the caller is never blocked or failed by the
    audit sink. A full queue drops the event with a warning, and failed
    writes are reported through the operational log.
    """

    def __init__(self, session_factory: sessionmaker, maxsize: Optional[int] = None):
        self.session_factory = session_factory
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or config.AUDIT_QUEUE_SIZE)
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run())
            logger.info("Audit log worker started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        await self.drain()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.info("Audit log worker stopped")

    async def drain(self) -> None:
        """Wait until every queued event has been written (or failed)."""
        if self.running:
            await self.queue.join()

    def record(
        self,
        user_id: Optional[int],
        action: EventAction,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        event = {
            "user_id": user_id,
            "action": EventAction(action).value,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details or {},
        }
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Audit queue full, dropping {event['action']} event for user {user_id}")
            return False
        return True

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await run_in_threadpool(write_event, self.session_factory, event)
            except Exception:
                logger.exception(f"Failed to log event {event['action']}")
            finally:
                self.queue.task_done()


def get_audit_log(request: Request) -> AuditLog:
    return request.app.state.audit_log


def request_details(request: Request, **extra: Any) -> Dict[str, Any]:
    details = {
        "ip": request.client.host if request.client else None,
        "userAgent": request.headers.get("user-agent"),
    }
    details.update(extra)
    return details
