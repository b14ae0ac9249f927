"""Domain-specific exceptions

Every exception carries a machine-readable ``code`` for the app channel and the
HTTP status it maps to. The USSD channel never shows these, it renders prose.
"""


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "DOMAIN_ERROR"
    status_code = 400


class InvalidAmountError(DomainException):
    """Amount is not numeric or below the channel minimum"""

    code = "INVALID_AMOUNT"


class MissingFieldError(DomainException):
    """A required request field is absent"""

    code = "MISSING_FIELD"

    def __init__(self, fields):
        self.fields = list(fields)
        super().__init__(f"Missing required field(s): {', '.join(self.fields)}")


class InvalidActionError(DomainException):
    """Confirmation action is neither confirm nor cancel"""

    code = "INVALID_ACTION"


class InvalidLocationError(DomainException):
    """Coordinates missing, unparsable or out of range"""

    code = "INVALID_LOCATION"


class AgentNotFoundError(DomainException):
    code = "AGENT_NOT_FOUND"
    status_code = 404


class AgentUnavailableError(DomainException):
    """Agent exists but is not active"""

    code = "AGENT_UNAVAILABLE"
    status_code = 409


class InsufficientAgentFloatError(DomainException):
    code = "INSUFFICIENT_AGENT_FLOAT"


class InsufficientAgentCashError(DomainException):
    code = "INSUFFICIENT_AGENT_CASH"


class InsufficientBalanceError(DomainException):
    code = "INSUFFICIENT_BALANCE"


class InvalidCredentialsError(DomainException):
    code = "INVALID_CREDENTIALS"
    status_code = 401


class WalletNotFoundError(DomainException):
    code = "WALLET_NOT_FOUND"
    status_code = 404


class TransactionNotFoundError(DomainException):
    code = "TRANSACTION_NOT_FOUND"
    status_code = 404


class TransactionNotPendingError(DomainException):
    """Transaction already reached a terminal status"""

    code = "TRANSACTION_NOT_PENDING"
    status_code = 409


class UnauthorizedError(DomainException):
    """Acting party does not own the resource"""

    code = "UNAUTHORIZED"
    status_code = 403


class BalanceInvariantViolationError(DomainException):
    """Applying balance deltas would drive a balance negative"""

    code = "BALANCE_INVARIANT_VIOLATION"
    status_code = 409


class UpstreamUnavailableError(DomainException):
    """External collaborator timed out, failed, or returned garbage"""

    code = "UPSTREAM_UNAVAILABLE"
    status_code = 503


class InternalServiceError(DomainException):
    """Unexpected failure; the request was rolled back"""

    code = "INTERNAL_ERROR"
    status_code = 500
