"""Wallet-to-wallet transfers and airtime debits"""

import pytest
from cashpoint_gateway.domain.exceptions import InsufficientBalanceError, WalletNotFoundError
from cashpoint_gateway.infrastructure.database.repositories import BalanceUpdate, WalletRepository
from cashpoint_gateway.services.transfers import WalletTransferService


@pytest.fixture
def transfers(db, clock):
    return WalletTransferService(db, clock)


def balance(db, user_id):
    return WalletRepository(db).get_primary_wallet(user_id).balance_cents


def test_send_money_debits_amount_plus_fee(db, transfers, wallet_factory):
    sender = wallet_factory("consumer-001", "100")
    recipient = wallet_factory("consumer-002", "10")

    receipt = transfers.send_money("consumer-001", "consumer-002", 5000, 50)

    assert receipt.reference.startswith("USSD")
    assert (receipt.amount_cents, receipt.fee_cents, receipt.currency) == (5000, 50, "USD")
    assert balance(db, "consumer-001") == 4950
    assert balance(db, "consumer-002") == 6000

    repo = WalletRepository(db)
    sent = repo.get_recent_entries(sender.id)
    received = repo.get_recent_entries(recipient.id)
    assert [e.type for e in sent] == ["send"]
    assert sent[0].reference == received[0].reference == receipt.reference


def test_send_money_insufficient_balance(db, transfers, wallet_factory):
    wallet_factory("consumer-001", "50")
    wallet_factory("consumer-002", "0")

    # 50.00 + 0.50 fee
    with pytest.raises(InsufficientBalanceError):
        transfers.send_money("consumer-001", "consumer-002", 5000, 50)
    assert balance(db, "consumer-001") == 5000
    assert balance(db, "consumer-002") == 0


def test_send_money_requires_both_wallets(transfers, wallet_factory):
    wallet_factory("consumer-001", "100")

    with pytest.raises(WalletNotFoundError):
        transfers.send_money("consumer-001", "consumer-002", 1000, 50)


def test_buy_airtime(db, transfers, wallet_factory):
    wallet = wallet_factory("consumer-001", "20")

    receipt = transfers.buy_airtime("consumer-001", "0551234567", 500)

    assert receipt.reference.startswith("AIR")
    assert balance(db, "consumer-001") == 1500
    entries = WalletRepository(db).get_recent_entries(wallet.id)
    assert [(e.type, e.amount_cents) for e in entries] == [("payment", 500)]


def test_balance_delta_reports_rejection_and_missing_wallet(db, wallet_factory):
    repo = WalletRepository(db)
    wallet = wallet_factory("consumer-001", "100")

    assert repo.apply_balance_delta(wallet.id, -5000) == BalanceUpdate.APPLIED
    assert repo.apply_balance_delta(wallet.id, -5001) == BalanceUpdate.REJECTED
    assert repo.apply_balance_delta(wallet.id + 1000, 100) == BalanceUpdate.MISSING
    assert repo.get_primary_wallet("consumer-001").balance_cents == 5000


def test_send_money_survives_concurrent_wallet_write(db, transfers, wallet_factory, concurrent_wallet_credit):
    wallet_factory("consumer-001", "100")
    wallet_factory("consumer-002", "10")

    transfers.send_money("consumer-001", "consumer-002", 5000, 50)

    # Both the debit and the credit were preceded by a one-cent credit to every wallet
    assert len(concurrent_wallet_credit) == 2
    assert balance(db, "consumer-001") == 4950 + 2
    assert balance(db, "consumer-002") == 6000 + 2
