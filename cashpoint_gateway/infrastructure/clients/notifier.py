"""Agent notification webhook client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from typing import Dict, Any
from cashpoint_gateway.config import settings
from cashpoint_gateway.infrastructure.observability.metrics import (
    notifier_latency_histogram,
    delivery_failure_counter,
)

logger = logging.getLogger(__name__)


class NotifierClient:
    """Client for pushing cash-request events to agents (SMS/push relay)"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.notifier_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver one event with retry.

        Retry strategy:
        - Exponential backoff: base, 2x base, 4x base... (base * 2^attempt)
        - Retries on 5xx errors and network failures
        - Re-raises after the final attempt
        """
        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with notifier_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=settings.http_timeout_seconds,
                        )
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1

                    if attempt >= self.max_retries:
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

    async def notify_agent(self, agent_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        """Best-effort: delivery failures are counted and logged, never raised"""
        try:
            await self.send_event({"agent_id": agent_id, "event": event_type, "data": payload})
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            delivery_failure_counter.labels(sink="notifier").inc()
            logger.warning(
                f"Agent notification failed: {e}",
                extra={"agent_id": agent_id, "event_type": event_type},
            )
