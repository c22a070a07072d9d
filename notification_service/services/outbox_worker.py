"""
Outbox Worker

Drains due Pending outbox messages through the transport.

Per cycle:
1. Load up to batch_size Pending messages with retries left, oldest first
2. Skip messages still inside their backoff window
3. Claim each with a conditional update (the only concurrency guard)
4. Send, then record Sent or bump retry_count (Pending again, or Failed when exhausted)

Delivery is at-least-once: a crash between send and mark_sent resends later.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import structlog
from sqlalchemy.orm import sessionmaker

from notification_service.config import settings
from notification_service.models.outbox_message import OutboxMessage, STATUS_FAILED, STATUS_PENDING
from notification_service.services.dates import utcnow
from notification_service.services.outbox_store import OutboxStore
from notification_service.services.transport import WebhookTransport

logger = structlog.get_logger(__name__)


def compute_backoff_seconds(retry_count: int, base_seconds: int, cap_seconds: int = 3600) -> int:
    """min(cap, base * 2^(retry_count-1)); zero for a message that never failed."""
    if retry_count <= 0:
        return 0
    return min(cap_seconds, base_seconds * 2 ** (retry_count - 1))


def is_retry_due(
    updated_at: Optional[datetime],
    retry_count: int,
    now: datetime,
    base_seconds: int,
    cap_seconds: int = 3600
) -> bool:
    if retry_count <= 0 or updated_at is None:
        return True
    backoff = compute_backoff_seconds(retry_count, base_seconds, cap_seconds)
    return updated_at + timedelta(seconds=backoff) <= now


@dataclass
class DueMessage:
    """Detached copy of an outbox row, safe to read after the session commits."""
    id: str
    tenant_id: Optional[str]
    template_id: str
    recipient: str
    payload: Optional[Dict[str, Any]]
    retry_count: int
    updated_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: OutboxMessage) -> "DueMessage":
        return cls(
            id=row.id,
            tenant_id=row.tenant_id,
            template_id=row.template_id,
            recipient=row.recipient,
            payload=row.payload,
            retry_count=row.retry_count,
            updated_at=row.updated_at,
        )


class OutboxWorker:
    """
    Outbox consumer. Safe to run in several processes at once: a message is
    only sent by whichever worker wins the conditional claim.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        transport: Optional[WebhookTransport] = None,
        batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_seconds: Optional[int] = None,
        retry_cap_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Args:
            session_factory: SQLAlchemy sessionmaker; one session per cycle
            transport: Delivery transport (defaults to the configured webhook)
            batch_size, max_retries, retry_base_seconds, retry_cap_seconds:
                Overrides for the matching settings
            clock: Returns "now" as naive UTC
        """
        self.session_factory = session_factory
        self.transport = transport if transport is not None else WebhookTransport.from_settings()
        self.batch_size = batch_size if batch_size is not None else settings.outbox_worker_batch_size
        self.max_retries = max_retries if max_retries is not None else settings.outbox_max_retries
        self.retry_base_seconds = (
            retry_base_seconds if retry_base_seconds is not None else settings.outbox_retry_base_seconds
        )
        self.retry_cap_seconds = (
            retry_cap_seconds if retry_cap_seconds is not None else settings.outbox_retry_cap_seconds
        )
        self.clock = clock
        self.logger = logger.bind(job="outbox_worker")

    def run_cycle(self) -> int:
        """
        Process one batch.

        Returns:
            Number of messages claimed in this cycle (for logging only)
        """
        session = self.session_factory()
        processed = 0

        try:
            store = OutboxStore(session)
            now = self.clock()
            # Snapshot before the first commit expires the loaded rows
            pending = [
                DueMessage.from_row(row)
                for row in store.find_due_batch(limit=self.batch_size, max_retries=self.max_retries)
            ]

            for message in pending:
                if not is_retry_due(
                    message.updated_at, message.retry_count, now,
                    self.retry_base_seconds, self.retry_cap_seconds
                ):
                    continue

                log = self.logger.bind(
                    outbox_id=message.id,
                    template_id=message.template_id,
                    retry_count=message.retry_count
                )

                try:
                    if not store.claim(message.id, message.retry_count, self.clock()):
                        log.debug("outbox_claim_lost")
                        continue

                    processed += 1
                    self._deliver(store, log, message)

                except Exception as e:
                    session.rollback()
                    log.error("outbox_message_persist_failed", error=str(e), exc_info=True)

        except Exception as e:
            session.rollback()
            self.logger.error("outbox_cycle_failed", error=str(e), processed=processed, exc_info=True)

        finally:
            session.close()

        return processed

    def _deliver(self, store: OutboxStore, log, message: DueMessage):
        try:
            self.transport.send(
                outbox_id=message.id,
                recipient=message.recipient,
                tenant_id=message.tenant_id,
                template_id=message.template_id,
                payload=message.payload,
            )
        except Exception as e:
            error_message = str(e) or type(e).__name__
            next_retry_count = message.retry_count + 1
            status = STATUS_FAILED if next_retry_count >= self.max_retries else STATUS_PENDING
            store.mark_retry_or_failed(message.id, next_retry_count, status, error_message, self.clock())

            if status == STATUS_FAILED:
                log.error("outbox_message_failed", error=error_message, attempts=next_retry_count)
            else:
                log.warning(
                    "outbox_message_retry_scheduled",
                    error=error_message,
                    next_retry_count=next_retry_count,
                    backoff_seconds=compute_backoff_seconds(
                        next_retry_count, self.retry_base_seconds, self.retry_cap_seconds
                    )
                )
            return

        store.mark_sent(message.id, self.clock())
        log.info("outbox_message_sent")
