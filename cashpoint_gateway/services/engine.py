"""Cash-in / cash-out transaction engine

Two phases. Initiation only reads balances and records a pending request.
Confirmation re-checks and moves every balance inside one database
transaction, guarded by conditional updates so racing confirmations cannot
overdraw an agent or a customer.
"""

import logging
import secrets
import string
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cashpoint_gateway.config import settings
from cashpoint_gateway.domain.commission import calculate_commission, resolve_rate
from cashpoint_gateway.domain.exceptions import (
    AgentUnavailableError,
    BalanceInvariantViolationError,
    InsufficientAgentCashError,
    InsufficientAgentFloatError,
    InsufficientBalanceError,
    InvalidActionError,
    InvalidCredentialsError,
    TransactionNotFoundError,
    TransactionNotPendingError,
    UnauthorizedError,
    WalletNotFoundError,
)
from cashpoint_gateway.domain.models import (
    Agent,
    AgentStatus,
    CashTransaction,
    ConfirmAction,
    TransactionStatus,
    TransactionType,
)
from cashpoint_gateway.domain.settlement import settlement_deltas
from cashpoint_gateway.domain.validation import parse_amount, require_fields
from cashpoint_gateway.infrastructure.database.repositories import (
    AgentRepository,
    BalanceUpdate,
    CashTransactionRepository,
    WalletRepository,
)
from cashpoint_gateway.infrastructure.observability.metrics import record_cash_transaction
from cashpoint_gateway.services.directory import AgentDirectory
from cashpoint_gateway.services.ports import Dispatch, IdentityStore, Notifier
from cashpoint_gateway.utils.clock import Clock, utc_now
from cashpoint_gateway.utils.money import from_cents, to_cents

logger = logging.getLogger(__name__)

LEDGER_TYPES = {
    TransactionType.CASH_IN: "topup",
    TransactionType.CASH_OUT: "withdraw",
}


def generate_reference(prefix: str = "AGT") -> str:
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


@dataclass
class InitiationResult:
    transaction: CashTransaction
    agent: Agent
    estimated_completion: datetime
    total_deduction_cents: int = 0
    replayed: bool = False


@dataclass
class ConfirmationResult:
    transaction: CashTransaction
    message: str


class CashTransactionEngine:
    """All money movement between customers and cash agents"""

    def __init__(
        self,
        db: Session,
        identity: IdentityStore,
        notifier: Notifier,
        dispatch: Dispatch,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.identity = identity
        self.notifier = notifier
        self.dispatch = dispatch
        self.clock = clock
        self.agents = AgentRepository(db)
        self.transactions = CashTransactionRepository(db)
        self.wallets = WalletRepository(db)
        self.directory = AgentDirectory(self.agents, clock)

    # Initiation

    async def initiate_cash_in(
        self,
        customer_id: str,
        agent_code: Any,
        amount: Any,
        customer_phone: Any,
        reference: Optional[str] = None,
        channel: str = "app",
    ) -> InitiationResult:
        """
        Record a pending cash-in: customer hands cash to the agent, the agent
        fronts digital float.

        Raises:
            MissingFieldError, InvalidAmountError, AgentNotFoundError,
            AgentUnavailableError, InsufficientAgentFloatError
        """
        require_fields({"agentCode": agent_code, "amount": amount, "customerPhone": customer_phone})
        value = parse_amount(amount, settings.min_cash_amount)

        agent = self._active_agent(agent_code)
        replay = self._replay(agent, customer_id, reference)
        if replay:
            return replay

        if agent.float_balance_cents < to_cents(value):
            record_cash_transaction(TransactionType.CASH_IN.value, "rejected")
            raise InsufficientAgentFloatError("Agent has insufficient float balance")

        commission = calculate_commission(value, TransactionType.CASH_IN, agent.commission_rates)
        txn, created = self._create(
            agent, customer_id, str(customer_phone), TransactionType.CASH_IN, value, commission, reference, channel
        )
        if not created:
            return self._replayed(agent, txn)

        self.dispatch(
            self.notifier.notify_agent,
            agent.id,
            "cash_in_request",
            {
                "transactionId": str(txn.id),
                "reference": txn.reference,
                "customerPhone": txn.customer_phone,
                "amount": str(from_cents(txn.amount_cents)),
                "commission": str(from_cents(txn.commission_cents)),
            },
        )
        return InitiationResult(transaction=txn, agent=agent, estimated_completion=self._eta(txn))

    async def initiate_cash_out(
        self,
        customer_id: str,
        agent_code: Any,
        amount: Any,
        pin: Any,
        reference: Optional[str] = None,
        channel: str = "app",
    ) -> InitiationResult:
        """
        Record a pending cash-out after checking the customer can cover
        amount + commission and the agent holds enough physical cash.

        Raises:
            MissingFieldError, InvalidAmountError, InvalidCredentialsError,
            WalletNotFoundError, InsufficientBalanceError, AgentNotFoundError,
            AgentUnavailableError, InsufficientAgentCashError, UpstreamUnavailableError
        """
        require_fields({"agentCode": agent_code, "amount": amount, "pin": pin})
        value = parse_amount(amount, settings.min_cash_amount)

        if not await self.identity.validate_pin(customer_id, str(pin)):
            raise InvalidCredentialsError("Invalid PIN")

        # Looked up early only for its commission schedule; absence is reported after the balance check
        agent = self.agents.get_by_code(str(agent_code))
        if agent is not None:
            replay = self._replay(agent, customer_id, reference)
            if replay:
                return replay

        wallet = self.wallets.get_primary_wallet(customer_id)
        if wallet is None:
            raise WalletNotFoundError("Wallet not found")

        commission = calculate_commission(
            value, TransactionType.CASH_OUT, agent.commission_rates if agent else None
        )
        total_deduction = to_cents(value) + to_cents(commission)
        if wallet.balance_cents < total_deduction:
            record_cash_transaction(TransactionType.CASH_OUT.value, "rejected")
            raise InsufficientBalanceError("Insufficient balance")

        agent = self._active_agent(agent_code)
        if agent.cash_balance_cents < to_cents(value):
            record_cash_transaction(TransactionType.CASH_OUT.value, "rejected")
            raise InsufficientAgentCashError("Agent has insufficient cash")

        txn, created = self._create(
            agent, customer_id, None, TransactionType.CASH_OUT, value, commission, reference, channel
        )
        if not created:
            return self._replayed(agent, txn)

        self.dispatch(
            self.notifier.notify_agent,
            agent.id,
            "cash_out_request",
            {
                "transactionId": str(txn.id),
                "reference": txn.reference,
                "customerId": customer_id,
                "amount": str(from_cents(txn.amount_cents)),
                "commission": str(from_cents(txn.commission_cents)),
            },
        )
        return InitiationResult(
            transaction=txn,
            agent=agent,
            estimated_completion=self._eta(txn),
            total_deduction_cents=total_deduction,
        )

    # Confirmation

    async def confirm_transaction(
        self,
        agent_user_id: str,
        transaction_id: Any,
        pin: Any,
        action: Any,
    ) -> ConfirmationResult:
        """
        Agent confirms (applies balances) or cancels a pending transaction.

        Raises:
            MissingFieldError, InvalidActionError, InvalidCredentialsError,
            TransactionNotFoundError, TransactionNotPendingError, UnauthorizedError,
            BalanceInvariantViolationError, WalletNotFoundError
        """
        require_fields({"transactionId": transaction_id, "pin": pin, "action": action})
        try:
            requested = ConfirmAction(str(action).lower())
        except ValueError:
            raise InvalidActionError("Action must be 'confirm' or 'cancel'")

        if not await self.identity.validate_pin(agent_user_id, str(pin)):
            raise InvalidCredentialsError("Invalid PIN")

        txn = self.get_transaction(transaction_id)
        if txn.status != TransactionStatus.PENDING:
            raise TransactionNotPendingError("Transaction is no longer pending")

        agent = self.agents.get_by_user_id(agent_user_id)
        if agent is None or agent.id != txn.agent_id:
            raise UnauthorizedError("Unauthorized agent access")

        if requested == ConfirmAction.CANCEL:
            return self._cancel(txn)
        return self._settle(txn, agent)

    def get_transaction(self, transaction_id: Any) -> CashTransaction:
        try:
            txn_uuid = transaction_id if isinstance(transaction_id, uuid.UUID) else uuid.UUID(str(transaction_id))
        except ValueError:
            raise TransactionNotFoundError("Transaction not found")
        txn = self.transactions.get(txn_uuid)
        if txn is None:
            raise TransactionNotFoundError("Transaction not found")
        return txn

    def get_transaction_for(self, user_id: str, transaction_id: Any) -> CashTransaction:
        """Transaction visible to its customer or to the owning agent"""
        txn = self.get_transaction(transaction_id)
        if txn.customer_id == user_id:
            return txn
        agent = self.agents.get_by_user_id(user_id)
        if agent is not None and agent.id == txn.agent_id:
            return txn
        raise UnauthorizedError("Transaction belongs to another party")

    # Internals

    def _active_agent(self, agent_code: Any) -> Agent:
        agent = self.directory.find_by_code(str(agent_code))
        if agent.status != AgentStatus.ACTIVE:
            raise AgentUnavailableError("Agent is not currently active")
        return agent

    def _replay(self, agent: Agent, customer_id: str, reference: Optional[str]) -> Optional[InitiationResult]:
        """Return the already-recorded transaction for a resubmitted reference"""
        if not reference:
            return None
        existing = self.transactions.find_by_reference(agent.id, customer_id, reference)
        if existing is None:
            return None
        return self._replayed(agent, existing)

    def _replayed(self, agent: Agent, existing: CashTransaction) -> InitiationResult:
        logger.info("Replayed cash transaction", extra={"transaction_id": str(existing.id)})
        return InitiationResult(
            transaction=existing,
            agent=agent,
            estimated_completion=self._eta(existing),
            total_deduction_cents=existing.customer_debit_cents,
            replayed=True,
        )

    def _eta(self, txn: CashTransaction) -> datetime:
        return txn.created_at + timedelta(minutes=settings.estimated_completion_minutes)

    def _create(
        self,
        agent: Agent,
        customer_id: str,
        customer_phone: Optional[str],
        txn_type: TransactionType,
        amount: Decimal,
        commission: Decimal,
        reference: Optional[str],
        channel: str,
    ) -> tuple[CashTransaction, bool]:
        """Returns: the recorded transaction, and False when a concurrent insert of the same reference won"""
        txn = CashTransaction(
            id=uuid.uuid4(),
            reference=reference or generate_reference(),
            agent_id=agent.id,
            agent_code=agent.agent_code,
            customer_id=customer_id,
            customer_phone=customer_phone,
            type=txn_type,
            amount_cents=to_cents(amount),
            commission_cents=to_cents(commission),
            status=TransactionStatus.PENDING,
            created_at=self.clock(),
            metadata={
                "channel": channel,
                "fees": {
                    "commission": str(commission),
                    "rate": str(resolve_rate(txn_type, agent.commission_rates)),
                },
            },
        )
        try:
            self.transactions.create(txn)
            self.db.commit()
        except IntegrityError:
            # Same reference submitted concurrently; the other insert won
            self.db.rollback()
            existing = self.transactions.find_by_reference(agent.id, customer_id, txn.reference)
            if existing is None:
                raise
            return existing, False

        record_cash_transaction(txn_type.value, "initiated")
        return txn, True

    def _cancel(self, txn: CashTransaction) -> ConfirmationResult:
        if not self.transactions.transition(txn.id, TransactionStatus.PENDING, TransactionStatus.CANCELLED):
            self.db.rollback()
            raise TransactionNotPendingError("Transaction is no longer pending")
        self.db.commit()
        record_cash_transaction(txn.type.value, "cancelled")
        return ConfirmationResult(transaction=self.get_transaction(txn.id), message="Transaction cancelled successfully")

    def _settle(self, txn: CashTransaction, agent: Agent) -> ConfirmationResult:
        """
        Claim, move balances, write the ledger entry, commit. Any failed guard
        rolls the whole unit back; invariant failures then mark the
        transaction failed in a separate commit.
        """
        deltas = settlement_deltas(txn)
        now = self.clock()
        try:
            if not self.transactions.transition(
                txn.id, TransactionStatus.PENDING, TransactionStatus.COMPLETED, completed_at=now
            ):
                raise TransactionNotPendingError("Transaction is no longer pending")

            wallet = self.wallets.get_primary_wallet(txn.customer_id)
            if wallet is None:
                raise WalletNotFoundError("Customer wallet not found")

            if not self.agents.apply_balance_delta(agent.id, deltas.agent_cash_cents, deltas.agent_float_cents):
                raise BalanceInvariantViolationError("Agent balance cannot cover this transaction")

            outcome = self.wallets.apply_balance_delta(wallet.id, deltas.customer_cents)
            if outcome == BalanceUpdate.MISSING:
                raise WalletNotFoundError("Customer wallet not found")
            if outcome == BalanceUpdate.REJECTED:
                raise BalanceInvariantViolationError("Customer balance cannot cover this transaction")

            self.wallets.create_transaction_record(
                reference=txn.reference,
                type=LEDGER_TYPES[txn.type],
                amount_cents=txn.amount_cents,
                fee_cents=txn.commission_cents if txn.type == TransactionType.CASH_OUT else 0,
                currency=wallet.currency,
                from_wallet_id=wallet.id if deltas.customer_cents < 0 else None,
                to_wallet_id=wallet.id if deltas.customer_cents > 0 else None,
                description=f"Agent {txn.type.value.replace('_', '-')} at {txn.agent_code}",
                details={**txn.metadata, "agent_id": txn.agent_id, "cash_transaction_id": str(txn.id)},
                created_at=now,
            )
            self.db.commit()

        except TransactionNotPendingError:
            self.db.rollback()
            raise
        except (BalanceInvariantViolationError, WalletNotFoundError) as e:
            self.db.rollback()
            self._mark_failed(txn, str(e))
            raise

        record_cash_transaction(txn.type.value, "completed", txn.amount_cents)
        self.dispatch(
            self.notifier.notify_agent,
            agent.id,
            f"{txn.type.value}_completed",
            {"transactionId": str(txn.id), "reference": txn.reference},
        )
        return ConfirmationResult(transaction=self.get_transaction(txn.id), message="Transaction processed successfully")

    def _mark_failed(self, txn: CashTransaction, reason: str) -> None:
        details = {**txn.metadata, "failure_reason": reason}
        self.transactions.transition(
            txn.id, TransactionStatus.PENDING, TransactionStatus.FAILED, completed_at=self.clock(), details=details
        )
        self.db.commit()
        record_cash_transaction(txn.type.value, "failed")
        logger.error(
            f"Cash transaction failed at confirmation: {reason}",
            extra={"transaction_id": str(txn.id), "agent_id": txn.agent_id},
        )
