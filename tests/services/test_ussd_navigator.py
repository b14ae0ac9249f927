"""USSD menu walks

Each test replays what the carrier gateway sends: the dialled code plus the
full '*'-joined input so far.
"""

import pytest
from cashpoint_gateway.domain.exceptions import UpstreamUnavailableError
from cashpoint_gateway.domain.ussd import UssdFlow
from cashpoint_gateway.infrastructure.database.repositories import WalletRepository
from cashpoint_gateway.services.ussd_navigator import UssdNavigator

CALLER = "+233241234567"
RECIPIENT = "0551234567"
SEND = "*544*2#"


@pytest.fixture
def navigator(db, identity, clock):
    return UssdNavigator(db, identity, clock)


@pytest.fixture
def wallets(wallet_factory):
    return wallet_factory("consumer-001", "100"), wallet_factory("consumer-002", "10")


def balance(db, user_id):
    return WalletRepository(db).get_primary_wallet(user_id).balance_cents


async def reply(navigator, code, text, phone=CALLER):
    _, r = await navigator.handle(code, text, phone)
    return r.render()


# Send money


async def test_send_money_walk(db, navigator, wallets):
    assert await reply(navigator, SEND, "") == "CON Enter recipient phone number:"

    step = await reply(navigator, SEND, RECIPIENT)
    assert step.startswith("CON Send money to 0551234567")
    assert "Enter amount (minimum 1.00)" in step

    step = await reply(navigator, SEND, f"{RECIPIENT}*50")
    assert step.startswith("CON Confirm transaction:")
    assert "Amount: 50.00" in step
    assert "PIN" in step

    done = await reply(navigator, SEND, f"{RECIPIENT}*50*1234")
    assert done.startswith("END Transaction successful!")
    assert "Fee: 0.50" in done
    assert "Reference: USSD" in done
    assert balance(db, "consumer-001") == 10000 - 5050
    assert balance(db, "consumer-002") == 1000 + 5000


@pytest.mark.parametrize(
    "text",
    [
        f"{RECIPIENT}*50*1234",
        f"{RECIPIENT}*50*9999",
        f"{RECIPIENT}*500*1234",
        "0559999999*50*1234",
        f"{CALLER}*50*1234",
    ],
)
async def test_valid_pin_step_always_ends_session(navigator, wallets, text):
    assert (await reply(navigator, SEND, text)).startswith("END")


async def test_unregistered_recipient(db, navigator, wallets):
    assert await reply(navigator, SEND, "0559999999*50*1234") == (
        "END Recipient not found. They need to register first."
    )
    assert balance(db, "consumer-001") == 10000


async def test_wrong_pin_moves_nothing(db, navigator, wallets):
    assert await reply(navigator, SEND, f"{RECIPIENT}*50*9999") == "END Invalid PIN. Transaction cancelled."
    assert balance(db, "consumer-001") == 10000


async def test_insufficient_balance(navigator, wallets):
    # 100.00 + 0.50 fee against a 100.00 balance
    assert await reply(navigator, SEND, f"{RECIPIENT}*100*1234") == "END Insufficient balance. Transaction cancelled."


async def test_send_to_self(navigator, wallets):
    assert await reply(navigator, SEND, f"{CALLER}*5*1234") == "END You cannot send money to yourself."


@pytest.mark.parametrize(
    "text,expected",
    [
        ("abc", "CON Invalid phone number format."),
        (f"{RECIPIENT}*0.5", "CON Invalid amount."),
        (f"{RECIPIENT}*ten", "CON Invalid amount."),
        (f"{RECIPIENT}*50*12", "CON Invalid PIN format."),
        ("abc*50", "END Invalid input."),
        (f"{RECIPIENT}*ten*1234", "END Invalid input."),
        (f"{RECIPIENT}*50*1234*1", "END Invalid input."),
    ],
)
async def test_send_money_bad_input(navigator, wallets, text, expected):
    assert (await reply(navigator, SEND, text)).startswith(expected)


# Menus


async def test_main_menu_and_delegation(navigator, wallets):
    menu = await reply(navigator, "*544#", "")
    assert menu.startswith("CON Welcome to AfriPay")
    assert "1. Check Balance" in menu
    assert "6. Get Help" in menu

    assert (await reply(navigator, "*544#", f"2*{RECIPIENT}")).startswith("CON Send money to")
    assert (await reply(navigator, "*544#", "6")).startswith("END AfriPay Help")
    assert (await reply(navigator, "*544#", "9")).startswith("CON Invalid option.")
    assert await reply(navigator, "*544#", "9*1") == "END Invalid input. Please try again."


async def test_unknown_code_shows_welcome(navigator, wallets):
    assert (await reply(navigator, "*123#", "")).startswith("CON Welcome to AfriPay\n1. Main Menu")
    assert "1. Check Balance" in await reply(navigator, "*123#", "1")
    assert (await reply(navigator, "*123#", "2")).startswith("END AfriPay Help")
    assert (await reply(navigator, "*123#", "3")).startswith("END AfriPay - mobile money")


async def test_flow_is_reported(navigator):
    flow, _ = await navigator.handle("*544*3#", "", CALLER)
    assert flow == UssdFlow.AIRTIME


# Balance and history


async def test_balance(navigator, wallets):
    text = await reply(navigator, "*544*1#", "")

    assert text.startswith("END Your AfriPay Balance:")
    assert "Available: USD 100.00" in text
    assert "Pending: USD 0.00" in text
    assert "Last updated: 2026-10-14 10:00" in text


async def test_balance_for_unregistered_caller(navigator):
    assert (await reply(navigator, "*544*1#", "", phone="0209999999")).startswith(
        "END You don't have an AfriPay account."
    )


async def test_balance_rejects_extra_input(navigator, wallets):
    assert await reply(navigator, "*544*1#", "1") == "END Invalid input. Please try again."


async def test_history(navigator, wallets):
    assert await reply(navigator, "*544*4#", "") == "END No recent transactions found."

    await reply(navigator, SEND, f"{RECIPIENT}*50*1234")
    await reply(navigator, "*544*3#", "1*5*1234")

    text = await reply(navigator, "*544*4#", "")
    assert text.startswith("END Recent Transactions:")
    assert "Send: 50.00 (2026-10-14)" in text
    assert "Payment: 5.00 (2026-10-14)" in text


# Airtime


async def test_airtime_for_own_number(db, navigator, wallets):
    assert f"1. For my number ({CALLER})" in await reply(navigator, "*544*3#", "")
    assert (await reply(navigator, "*544*3#", "1")).startswith(f"CON Buy airtime for {CALLER}")
    assert "Enter your 4-digit PIN" in await reply(navigator, "*544*3#", "1*5")

    done = await reply(navigator, "*544*3#", "1*5*1234")
    assert done.startswith("END Airtime purchase successful!")
    assert balance(db, "consumer-001") == 9500


async def test_airtime_for_another_number(db, navigator, wallets):
    assert await reply(navigator, "*544*3#", "2") == "CON Enter phone number:"
    assert (await reply(navigator, "*544*3#", "2*12")).startswith("CON Invalid phone number.")
    assert (await reply(navigator, "*544*3#", f"2*{RECIPIENT}")).startswith(f"CON Buy airtime for {RECIPIENT}")

    done = await reply(navigator, "*544*3#", f"2*{RECIPIENT}*5*1234")
    assert f"Number: {RECIPIENT}" in done
    assert balance(db, "consumer-001") == 9500


@pytest.mark.parametrize(
    "text,expected",
    [
        ("3", "CON Invalid option."),
        ("1*0", "CON Invalid amount."),
        ("1*5*12", "CON Invalid PIN format."),
        ("1*5*9999", "END Invalid PIN."),
        ("1*500*1234", "END Insufficient balance."),
        ("1*5*1234*9", "END Invalid input."),
        ("3*1", "END Invalid input."),
    ],
)
async def test_airtime_bad_input(navigator, wallets, text, expected):
    assert (await reply(navigator, "*544*3#", text)).startswith(expected)


# Settings


async def test_settings(navigator, identity):
    assert (await reply(navigator, "*544*5#", "")).startswith("CON Account Settings\n1. Change PIN")
    assert "only available in the mobile app" in await reply(navigator, "*544*5#", "1")

    info = await reply(navigator, "*544*5#", "2")
    assert info.startswith("END Account Information:")
    assert "Name: Kofi Mensah" in info
    assert "KYC Status: verified" in info

    assert (await reply(navigator, "*544*5#", "4")).startswith("CON Welcome to AfriPay")


async def test_language_change(navigator, identity):
    assert "2. Français" in await reply(navigator, "*544*5#", "3")
    assert await reply(navigator, "*544*5#", "3*2") == "END Language set to Français."
    assert identity.language_updates == [("consumer-001", "fr")]

    assert await reply(navigator, "*544*5#", "3*9") == "END Invalid language option."


# Upstream


async def test_identity_outage_ends_session(navigator, identity, wallets):
    async def unavailable(phone):
        raise UpstreamUnavailableError("identity down")

    identity.find_user_by_phone = unavailable

    assert await reply(navigator, "*544*1#", "") == "END Service temporarily unavailable. Please try again."
