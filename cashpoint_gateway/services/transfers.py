"""Direct wallet movements for the USSD channel (no agent involved)"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from cashpoint_gateway.domain.exceptions import (
    BalanceInvariantViolationError,
    InsufficientBalanceError,
    WalletNotFoundError,
)
from cashpoint_gateway.infrastructure.database.repositories import BalanceUpdate, WalletRepository
from cashpoint_gateway.services.engine import generate_reference
from cashpoint_gateway.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class TransferReceipt:
    reference: str
    amount_cents: int
    fee_cents: int
    currency: str


class WalletTransferService:
    """Single-step debit/credit between primary wallets, committed atomically"""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.wallets = WalletRepository(db)
        self.clock = clock

    def send_money(
        self,
        sender_id: str,
        recipient_id: str,
        amount_cents: int,
        fee_cents: int,
        channel: str = "ussd",
    ) -> TransferReceipt:
        """
        Debit sender amount + fee, credit recipient amount.

        Raises:
            WalletNotFoundError, InsufficientBalanceError, BalanceInvariantViolationError
        """
        sender = self.wallets.get_primary_wallet(sender_id)
        recipient = self.wallets.get_primary_wallet(recipient_id)
        if sender is None or recipient is None:
            raise WalletNotFoundError("Wallet not found")

        return self._move(
            debit_wallet_id=sender.id,
            credit_wallet_id=recipient.id,
            available_cents=sender.balance_cents,
            amount_cents=amount_cents,
            fee_cents=fee_cents,
            currency=sender.currency,
            ledger_type="send",
            description="USSD Money Transfer",
            details={"channel": channel, "fee": fee_cents},
            prefix="USSD",
        )

    def buy_airtime(self, user_id: str, target_phone: str, amount_cents: int, channel: str = "ussd") -> TransferReceipt:
        """Debit the buyer; the airtime provider settles off-ledger"""
        wallet = self.wallets.get_primary_wallet(user_id)
        if wallet is None:
            raise WalletNotFoundError("Wallet not found")

        return self._move(
            debit_wallet_id=wallet.id,
            credit_wallet_id=None,
            available_cents=wallet.balance_cents,
            amount_cents=amount_cents,
            fee_cents=0,
            currency=wallet.currency,
            ledger_type="payment",
            description=f"Airtime for {target_phone}",
            details={"channel": channel, "product": "airtime", "msisdn": target_phone},
            prefix="AIR",
        )

    def _move(
        self,
        debit_wallet_id: int,
        credit_wallet_id: Optional[int],
        available_cents: int,
        amount_cents: int,
        fee_cents: int,
        currency: str,
        ledger_type: str,
        description: str,
        details: Dict[str, Any],
        prefix: str,
    ) -> TransferReceipt:
        total = amount_cents + fee_cents
        if available_cents < total:
            raise InsufficientBalanceError("Insufficient balance")

        reference = generate_reference(prefix)
        try:
            debit = self.wallets.apply_balance_delta(debit_wallet_id, -total)
            if debit == BalanceUpdate.MISSING:
                raise WalletNotFoundError("Sender wallet not found")
            if debit == BalanceUpdate.REJECTED:
                raise BalanceInvariantViolationError("Sender balance cannot cover this transfer")
            if credit_wallet_id is not None:
                if self.wallets.apply_balance_delta(credit_wallet_id, amount_cents) != BalanceUpdate.APPLIED:
                    raise WalletNotFoundError("Recipient wallet not found")

            self.wallets.create_transaction_record(
                reference=reference,
                type=ledger_type,
                amount_cents=amount_cents,
                fee_cents=fee_cents,
                currency=currency,
                from_wallet_id=debit_wallet_id,
                to_wallet_id=credit_wallet_id,
                description=description,
                details=details,
                created_at=self.clock(),
            )
            self.db.commit()
        except (BalanceInvariantViolationError, WalletNotFoundError):
            self.db.rollback()
            raise

        logger.info("Wallet transfer completed", extra={"reference": reference, "type": ledger_type})
        return TransferReceipt(reference=reference, amount_cents=amount_cents, fee_cents=fee_cents, currency=currency)
