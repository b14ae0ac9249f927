"""Balance deltas applied when a cash transaction is confirmed"""

from dataclasses import dataclass

from cashpoint_gateway.domain.models import CashTransaction, TransactionType


@dataclass(frozen=True)
class BalanceDeltas:
    customer_cents: int
    agent_cash_cents: int
    agent_float_cents: int


def settlement_deltas(txn: CashTransaction) -> BalanceDeltas:
    """
    Cash-in: customer hands over cash and gets digital credit, so the agent's
    cash rises and the float it fronts is consumed. Cash-out mirrors it, and
    the customer also pays the commission.
    """
    if txn.type == TransactionType.CASH_IN:
        return BalanceDeltas(
            customer_cents=txn.amount_cents,
            agent_cash_cents=txn.amount_cents,
            agent_float_cents=-txn.amount_cents,
        )
    if txn.type == TransactionType.CASH_OUT:
        return BalanceDeltas(
            customer_cents=-(txn.amount_cents + txn.commission_cents),
            agent_cash_cents=-txn.amount_cents,
            agent_float_cents=txn.amount_cents,
        )
    raise ValueError(f"No settlement rule for transaction type {txn.type}")
