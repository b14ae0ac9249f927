"""Identity service HTTP client - user lookup by phone and PIN verification"""

import httpx
from datetime import datetime
from typing import Any, Dict, Optional
from cashpoint_gateway.domain.models import UserProfile
from cashpoint_gateway.domain.exceptions import UpstreamUnavailableError
from cashpoint_gateway.config import settings
from cashpoint_gateway.infrastructure.observability.metrics import upstream_failures_counter


def _parse_user(data: Dict[str, Any]) -> UserProfile:
    created_at = data.get("created_at")
    return UserProfile(
        id=str(data["id"]),
        phone=data.get("phone", ""),
        first_name=data.get("first_name") or "",
        last_name=data.get("last_name") or "",
        role=data.get("current_role") or "consumer",
        kyc_status=data.get("kyc_status") or "pending",
        language=data.get("language") or "en",
        created_at=datetime.fromisoformat(created_at) if created_at else None,
    )


class IdentityClient:
    """Client for the external identity / credential service"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.identity_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def _request(self, method: str, path: str, **kwargs) -> Optional[httpx.Response]:
        """
        Single attempt, no retries.

        Returns: None on 404, the response otherwise

        Raises:
            UpstreamUnavailableError: On timeout, transport or HTTP errors
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.request(method, f"{self.base_url}{path}", **kwargs)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response
            except httpx.TimeoutException as e:
                upstream_failures_counter.labels(service="identity").inc()
                raise UpstreamUnavailableError(f"Identity service timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                upstream_failures_counter.labels(service="identity").inc()
                raise UpstreamUnavailableError(f"Identity service error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                upstream_failures_counter.labels(service="identity").inc()
                raise UpstreamUnavailableError("Identity service unreachable") from e

    async def find_user_by_phone(self, phone: str) -> Optional[UserProfile]:
        response = await self._request("GET", "/users/by-phone", params={"phone": phone})
        if response is None:
            return None
        try:
            return _parse_user(response.json())
        except (KeyError, ValueError, TypeError) as e:
            raise UpstreamUnavailableError(f"Invalid user data from identity service: {e}") from e

    async def validate_pin(self, user_id: str, pin: str) -> bool:
        """Unknown users never validate"""
        response = await self._request("POST", f"/users/{user_id}/pin/verify", json={"pin": pin})
        if response is None:
            return False
        try:
            return bool(response.json()["valid"])
        except (KeyError, ValueError, TypeError) as e:
            raise UpstreamUnavailableError(f"Invalid PIN verification response: {e}") from e

    async def update_language(self, user_id: str, language: str) -> bool:
        response = await self._request("PATCH", f"/users/{user_id}", json={"language": language})
        return response is not None
