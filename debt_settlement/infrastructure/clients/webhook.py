"""Event webhook client with exponential backoff retry logic, and the outbox relay feeding it"""

import httpx
import asyncio
import logging
from typing import Any, Callable, Dict, List, Tuple
from sqlalchemy.orm import Session
from debt_settlement.config import settings
from debt_settlement.infrastructure.database.repositories import OutboxRepository
from debt_settlement.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


class EventWebhookClient:
    """Client for posting settlement events to the downstream webhook"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url or settings.event_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_event(self, payload: Dict[str, Any], url: str | None = None) -> None:
        """
        Send one event payload with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on 5xx/4xx status errors and network failures
        - Tracks latency histogram and failure counter

        Raises the last httpx error once retries are exhausted.
        """
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(
                            url or self.webhook_url,
                            json=payload,
                            timeout=self.timeout,
                        )
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)


class OutboxRelay:
    """
    Delivers pending outbox rows after the writing transaction has committed.

    Each row is sent with the client's retry policy. A row whose delivery
    still fails counts one attempt and is marked failed after
    webhook_max_retries relay passes.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        client: EventWebhookClient | None = None,
        batch_size: int | None = None,
    ):
        self.session_factory = session_factory
        self.client = client or EventWebhookClient()
        self.batch_size = batch_size or settings.outbox_batch_size

    async def flush(self) -> int:
        """
        Deliver one batch of pending events; returns how many were delivered.

        Database reads and writes run in worker threads so the event loop
        only ever waits on HTTP.
        """
        delivered = 0
        for outbound_id, event_id, payload, target_url in await asyncio.to_thread(self._load_batch):
            try:
                await self.client.send_event(payload, url=target_url)
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                attempts = await asyncio.to_thread(self._record_attempt, outbound_id, False)
                logging.error(
                    f"Event delivery failed: {e}",
                    extra={"event_id": event_id, "attempts": attempts},
                )
            else:
                await asyncio.to_thread(self._record_attempt, outbound_id, True)
                delivered += 1
        return delivered

    def _load_batch(self) -> List[Tuple[int, str, Dict[str, Any], str]]:
        db = self.session_factory()
        try:
            return [
                (outbound.id, outbound.event_id, outbound.payload, outbound.target_url)
                for outbound in OutboxRepository(db).get_pending(limit=self.batch_size)
            ]
        finally:
            db.close()

    def _record_attempt(self, outbound_id: int, delivered: bool) -> int:
        """Mark one row delivered or failed in its own transaction; returns its attempt count"""
        db = self.session_factory()
        try:
            outbox = OutboxRepository(db)
            outbound = outbox.get(outbound_id)
            if delivered:
                outbox.mark_delivered(outbound)
            else:
                outbox.mark_failed_attempt(outbound, max_attempts=settings.webhook_max_retries)
            attempts = outbound.attempts
            db.commit()
            return attempts
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
