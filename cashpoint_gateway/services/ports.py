"""Narrow interfaces to the collaborators the services consume"""

from typing import Any, Callable, Dict, Optional, Protocol

from cashpoint_gateway.domain.models import UserProfile

Dispatch = Callable[..., None]


class IdentityStore(Protocol):
    async def find_user_by_phone(self, phone: str) -> Optional[UserProfile]: ...

    async def validate_pin(self, user_id: str, pin: str) -> bool: ...

    async def update_language(self, user_id: str, language: str) -> bool: ...


class Notifier(Protocol):
    async def notify_agent(self, agent_id: str, event_type: str, payload: Dict[str, Any]) -> None: ...


class SecurityAuditLog(Protocol):
    async def log_event(self, user_id: str, event_type: str, details: Dict[str, Any], severity: str = "low") -> None: ...
