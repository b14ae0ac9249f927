"""USSD wire types - replies, token parsing, service-code routing

A USSD session holds no server state. The gateway resends the whole
``*``-joined input on every hop, so the token list is the session.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from cashpoint_gateway.domain.validation import PIN_PATTERN


class UssdFlow(str, Enum):
    WELCOME = "welcome"
    MENU = "menu"
    BALANCE = "balance"
    SEND_MONEY = "send-money"
    AIRTIME = "airtime"
    HISTORY = "history"
    SETTINGS = "settings"


@dataclass(frozen=True)
class UssdReply:
    """Prompt plus whether the gateway should keep the session open"""

    message: str
    continue_session: bool

    @classmethod
    def con(cls, message: str) -> "UssdReply":
        return cls(message=message, continue_session=True)

    @classmethod
    def end(cls, message: str) -> "UssdReply":
        return cls(message=message, continue_session=False)

    def render(self) -> str:
        prefix = "CON" if self.continue_session else "END"
        return f"{prefix} {self.message}"


def tokenize(text: str | None) -> Tuple[str, ...]:
    """Split accumulated input on '*', dropping empty segments"""
    if not text:
        return ()
    return tuple(part.strip() for part in text.split("*") if part.strip())


def redact_pins(text: str | None) -> str:
    """Input with every PIN-shaped segment masked, four-digit amounts included"""
    return "*".join("****" if PIN_PATTERN.match(token) else token for token in tokenize(text))


def service_codes(base_code: str) -> dict[str, UssdFlow]:
    """Map dialled codes (e.g. *544*2#) to flows"""
    return {
        f"*{base_code}#": UssdFlow.MENU,
        f"*{base_code}*1#": UssdFlow.BALANCE,
        f"*{base_code}*2#": UssdFlow.SEND_MONEY,
        f"*{base_code}*3#": UssdFlow.AIRTIME,
        f"*{base_code}*4#": UssdFlow.HISTORY,
        f"*{base_code}*5#": UssdFlow.SETTINGS,
    }


def resolve_flow(service_code: str | None, base_code: str) -> UssdFlow:
    return service_codes(base_code).get((service_code or "").strip(), UssdFlow.WELCOME)


def menu_lines(options: List[str]) -> str:
    return "\n".join(f"{i}. {label}" for i, label in enumerate(options, start=1))
