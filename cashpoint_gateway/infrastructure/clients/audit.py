"""Security audit sink client"""

import httpx
import logging
from datetime import datetime, timezone
from typing import Any, Dict
from cashpoint_gateway.config import settings
from cashpoint_gateway.infrastructure.observability.metrics import delivery_failure_counter

logger = logging.getLogger(__name__)


class AuditClient:
    """Fire-and-forget writer for security / interaction events"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.audit_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def log_event(self, user_id: str, event_type: str, details: Dict[str, Any], severity: str = "low") -> None:
        """Single attempt; failures are logged and dropped"""
        event = {
            "user_id": user_id,
            "event_type": event_type,
            "severity": severity,
            "details": details,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            "source": settings.service_name,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(f"{self.base_url}/security-events", json=event)
                response.raise_for_status()
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                delivery_failure_counter.labels(sink="audit").inc()
                logger.warning(f"Audit event dropped: {e}", extra={"event_type": event_type})
