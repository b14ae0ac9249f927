"""Commission calculation per transaction type"""

from decimal import Decimal
from typing import Dict, Mapping, Optional

from cashpoint_gateway.config import settings
from cashpoint_gateway.domain.models import TransactionType
from cashpoint_gateway.utils.money import quantize


def default_rates() -> Dict[str, Decimal]:
    """Platform rate table; agents may override any entry"""
    return {
        TransactionType.CASH_IN.value: settings.commission_rate_cash_in,
        TransactionType.CASH_OUT.value: settings.commission_rate_cash_out,
        TransactionType.BILL_PAYMENT.value: settings.commission_rate_bill_payment,
    }


def resolve_rate(transaction_type: TransactionType, overrides: Optional[Mapping[str, Decimal]] = None) -> Decimal:
    key = TransactionType(transaction_type).value
    if overrides and key in overrides:
        return Decimal(str(overrides[key]))
    return default_rates()[key]


def calculate_commission(
    amount: Decimal,
    transaction_type: TransactionType,
    overrides: Optional[Mapping[str, Decimal]] = None,
) -> Decimal:
    """
    Fee = amount x rate[type], rounded half-up to 2 decimal places.

    Callers reject amount <= 0 before getting here.

    Example:
        calculate_commission(Decimal("100.00"), TransactionType.CASH_OUT) -> Decimal("1.50")
    """
    return quantize(Decimal(amount) * resolve_rate(transaction_type, overrides))
