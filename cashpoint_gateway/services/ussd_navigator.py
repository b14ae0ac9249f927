"""USSD menu navigation

The navigator keeps nothing between hops. Each request re-parses the full
accumulated input, and the token count selects exactly one prompt or one
terminal action per flow. Any count a flow does not expect ends the session.
"""

import logging
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from cashpoint_gateway.config import settings
from cashpoint_gateway.domain.exceptions import (
    BalanceInvariantViolationError,
    InsufficientBalanceError,
    UpstreamUnavailableError,
    WalletNotFoundError,
)
from cashpoint_gateway.domain.models import UserProfile
from cashpoint_gateway.domain.ussd import UssdFlow, UssdReply, menu_lines, resolve_flow, tokenize
from cashpoint_gateway.domain.validation import is_valid_phone, is_valid_pin, parse_decimal
from cashpoint_gateway.infrastructure.database.repositories import WalletRepository
from cashpoint_gateway.services.ports import IdentityStore
from cashpoint_gateway.services.transfers import TransferReceipt, WalletTransferService
from cashpoint_gateway.utils.clock import Clock, to_local, utc_now
from cashpoint_gateway.utils.money import format_amount, quantize, to_cents

logger = logging.getLogger(__name__)

Tokens = Tuple[str, ...]

MAIN_MENU = ["Check Balance", "Send Money", "Buy Airtime", "Transaction History", "Account Settings", "Get Help"]
SETTINGS_MENU = ["Change PIN", "Check Account Info", "Language Settings", "Back to Main Menu"]
AIRTIME_MENU = ["For my number", "For another number"]
LANGUAGES = [("en", "English"), ("fr", "Français"), ("ar", "العربية"), ("sw", "Kiswahili")]

INVALID_INPUT = UssdReply.end("Invalid input. Please try again.")
UNAVAILABLE = UssdReply.end("Service temporarily unavailable. Please try again.")
NOT_REGISTERED = UssdReply.end("Account not found. Please register first.")
INVALID_PIN = UssdReply.end("Invalid PIN. Transaction cancelled.")


def parse_ussd_amount(raw: str) -> Optional[Decimal]:
    """Amount >= channel minimum rounded to cents, or None"""
    value = parse_decimal(raw)
    if value is None or value < settings.ussd_min_amount:
        return None
    return quantize(value)


class UssdNavigator:
    """Maps (service code, accumulated text, caller phone) to the next reply"""

    def __init__(self, db: Session, identity: IdentityStore, clock: Clock = utc_now):
        self.identity = identity
        self.wallets = WalletRepository(db)
        self.transfers = WalletTransferService(db, clock)
        self.clock = clock
        self.brand = settings.ussd_brand

    async def handle(self, service_code: str, text: str, phone_number: str) -> Tuple[UssdFlow, UssdReply]:
        flow = resolve_flow(service_code, settings.ussd_base_code)
        tokens = tokenize(text)
        try:
            reply = await self._dispatch(flow, tokens, phone_number)
        except UpstreamUnavailableError as e:
            logger.warning(f"USSD upstream failure: {e}", extra={"flow": flow.value})
            reply = UNAVAILABLE
        return flow, reply

    async def _dispatch(self, flow: UssdFlow, tokens: Tokens, phone: str) -> UssdReply:
        if flow == UssdFlow.MENU:
            return await self.main_menu(tokens, phone)
        if flow == UssdFlow.BALANCE:
            return await self.balance(tokens, phone)
        if flow == UssdFlow.SEND_MONEY:
            return await self.send_money(tokens, phone)
        if flow == UssdFlow.AIRTIME:
            return await self.airtime(tokens, phone)
        if flow == UssdFlow.HISTORY:
            return await self.history(tokens, phone)
        if flow == UssdFlow.SETTINGS:
            return await self.account_settings(tokens, phone)
        return await self.welcome(tokens, phone)

    # Menus

    async def welcome(self, tokens: Tokens, phone: str) -> UssdReply:
        options = menu_lines(["Main Menu", "Get Help", "About"])
        if not tokens:
            return UssdReply.con(f"Welcome to {self.brand}\n{options}")

        choice, rest = tokens[0], tokens[1:]
        if choice == "1":
            return await self.main_menu(rest, phone)
        if choice == "2" and not rest:
            return self._help()
        if choice == "3" and not rest:
            return UssdReply.end(f"{self.brand} - mobile money for everyone.\nSend, cash in and cash out at any agent.")
        if len(tokens) == 1:
            return UssdReply.con(f"Invalid option. Please try again.\n{options}")
        return INVALID_INPUT

    async def main_menu(self, tokens: Tokens, phone: str) -> UssdReply:
        if not tokens:
            return UssdReply.con(f"Welcome to {self.brand}\n{menu_lines(MAIN_MENU)}")

        choice, rest = tokens[0], tokens[1:]
        if choice == "1":
            return await self.balance(rest, phone)
        if choice == "2":
            return await self.send_money(rest, phone)
        if choice == "3":
            return await self.airtime(rest, phone)
        if choice == "4":
            return await self.history(rest, phone)
        if choice == "5":
            return await self.account_settings(rest, phone)
        if choice == "6" and not rest:
            return self._help()
        if len(tokens) == 1:
            return UssdReply.con(f"Invalid option. Please try again.\n{menu_lines(MAIN_MENU[:3])}")
        return INVALID_INPUT

    def _help(self) -> UssdReply:
        return UssdReply.end(
            f"{self.brand} Help\n"
            f"Call: {settings.support_phone}\n"
            f"WhatsApp: {settings.support_phone}\n"
            f"Email: {settings.support_email}"
        )

    # Balance and history

    async def balance(self, tokens: Tokens, phone: str) -> UssdReply:
        if tokens:
            return INVALID_INPUT

        user = await self.identity.find_user_by_phone(phone)
        if user is None:
            return UssdReply.end(
                f"You don't have an {self.brand} account.\n"
                "Download the app to register."
            )
        wallet = self.wallets.get_primary_wallet(user.id)
        if wallet is None:
            return UssdReply.end("No wallet found. Please contact support.")

        updated = to_local(self.clock(), settings.local_timezone).strftime("%Y-%m-%d %H:%M")
        return UssdReply.end(
            f"Your {self.brand} Balance:\n"
            f"Available: {wallet.currency} {format_amount(wallet.balance_cents)}\n"
            f"Pending: {wallet.currency} {format_amount(wallet.pending_balance_cents)}\n\n"
            f"Last updated: {updated}"
        )

    async def history(self, tokens: Tokens, phone: str) -> UssdReply:
        if tokens:
            return INVALID_INPUT

        user = await self.identity.find_user_by_phone(phone)
        if user is None:
            return NOT_REGISTERED
        wallet = self.wallets.get_primary_wallet(user.id)
        if wallet is None:
            return UssdReply.end("No wallet found.")

        entries = self.wallets.get_recent_entries(wallet.id, settings.ussd_history_limit)
        if not entries:
            return UssdReply.end("No recent transactions found.")

        lines = [
            f"{i}. {e.type.capitalize()}: {format_amount(e.amount_cents)} ({e.created_at:%Y-%m-%d})"
            for i, e in enumerate(entries, start=1)
        ]
        return UssdReply.end("Recent Transactions:\n" + "\n".join(lines))

    # Send money

    async def send_money(self, tokens: Tokens, phone: str) -> UssdReply:
        """
        0 tokens: ask recipient
        1 token:  recipient -> ask amount
        2 tokens: amount -> ask PIN
        3 tokens: PIN -> transfer and end
        """
        count = len(tokens)
        if count == 0:
            return UssdReply.con("Enter recipient phone number:")

        recipient_phone = tokens[0]
        if not is_valid_phone(recipient_phone):
            if count == 1:
                return UssdReply.con("Invalid phone number format.\nEnter recipient phone number:")
            return INVALID_INPUT

        if count == 1:
            return UssdReply.con(f"Send money to {recipient_phone}\nEnter amount (minimum {settings.ussd_min_amount:.2f}):")

        amount = parse_ussd_amount(tokens[1])
        if amount is None:
            if count == 2:
                return UssdReply.con(f"Invalid amount.\nEnter amount (minimum {settings.ussd_min_amount:.2f}):")
            return INVALID_INPUT

        if count == 2:
            return UssdReply.con(
                f"Confirm transaction:\nTo: {recipient_phone}\nAmount: {amount:.2f}\n\nEnter your 4-digit PIN:"
            )

        if count == 3:
            pin = tokens[2]
            if not is_valid_pin(pin):
                return UssdReply.con("Invalid PIN format.\nEnter your 4-digit PIN:")
            return await self._complete_send(phone, recipient_phone, amount, pin)

        return INVALID_INPUT

    async def _complete_send(self, phone: str, recipient_phone: str, amount: Decimal, pin: str) -> UssdReply:
        sender = await self.identity.find_user_by_phone(phone)
        if sender is None:
            return NOT_REGISTERED
        recipient = await self.identity.find_user_by_phone(recipient_phone)
        if recipient is None:
            return UssdReply.end("Recipient not found. They need to register first.")
        if recipient.id == sender.id:
            return UssdReply.end("You cannot send money to yourself.")
        if not await self.identity.validate_pin(sender.id, pin):
            return INVALID_PIN

        try:
            receipt = self.transfers.send_money(
                sender.id, recipient.id, to_cents(amount), to_cents(settings.ussd_transfer_fee)
            )
        except InsufficientBalanceError:
            return UssdReply.end("Insufficient balance. Transaction cancelled.")
        except WalletNotFoundError:
            return UssdReply.end("Wallet not found. Please contact support.")
        except BalanceInvariantViolationError:
            return UssdReply.end("Transaction failed. Please try again or contact support.")

        return UssdReply.end(
            "Transaction successful!\n"
            f"Amount: {format_amount(receipt.amount_cents)}\n"
            f"To: {recipient_phone}\n"
            f"Reference: {receipt.reference}\n"
            f"Fee: {format_amount(receipt.fee_cents)}\n\n"
            f"Thank you for using {self.brand}!"
        )

    # Airtime

    async def airtime(self, tokens: Tokens, phone: str) -> UssdReply:
        """
        Own number:   [1] -> amount -> PIN
        Other number: [2] -> phone -> amount -> PIN
        """
        count = len(tokens)
        if count == 0:
            own = AIRTIME_MENU[0]
            return UssdReply.con(f"Buy Airtime\n1. {own} ({phone})\n2. {AIRTIME_MENU[1]}")

        choice = tokens[0]
        if choice == "1":
            return await self._airtime_steps(phone, phone, tokens[1:])
        if choice == "2":
            if count == 1:
                return UssdReply.con("Enter phone number:")
            target = tokens[1]
            if not is_valid_phone(target):
                if count == 2:
                    return UssdReply.con("Invalid phone number.\nEnter phone number:")
                return INVALID_INPUT
            return await self._airtime_steps(phone, target, tokens[2:])
        if count == 1:
            return UssdReply.con(f"Invalid option.\n{menu_lines(AIRTIME_MENU)}")
        return INVALID_INPUT

    async def _airtime_steps(self, phone: str, target: str, tokens: Tokens) -> UssdReply:
        """Tokens after the target number is known: [amount, pin]"""
        minimum = f"{settings.ussd_min_amount:.2f}"
        count = len(tokens)
        if count == 0:
            return UssdReply.con(f"Buy airtime for {target}\nEnter amount (minimum {minimum}):")

        amount = parse_ussd_amount(tokens[0])
        if amount is None:
            if count == 1:
                return UssdReply.con(f"Invalid amount.\nEnter amount (minimum {minimum}):")
            return INVALID_INPUT

        if count == 1:
            return UssdReply.con(
                f"Confirm airtime purchase:\nNumber: {target}\nAmount: {amount:.2f}\n\nEnter your 4-digit PIN:"
            )

        if count == 2:
            pin = tokens[1]
            if not is_valid_pin(pin):
                return UssdReply.con("Invalid PIN format.\nEnter your 4-digit PIN:")
            return await self._complete_airtime(phone, target, amount, pin)

        return INVALID_INPUT

    async def _complete_airtime(self, phone: str, target: str, amount: Decimal, pin: str) -> UssdReply:
        user = await self.identity.find_user_by_phone(phone)
        if user is None:
            return NOT_REGISTERED
        if not await self.identity.validate_pin(user.id, pin):
            return INVALID_PIN

        try:
            receipt: TransferReceipt = self.transfers.buy_airtime(user.id, target, to_cents(amount))
        except InsufficientBalanceError:
            return UssdReply.end("Insufficient balance. Purchase cancelled.")
        except WalletNotFoundError:
            return UssdReply.end("Wallet not found. Please contact support.")
        except BalanceInvariantViolationError:
            return UssdReply.end("Purchase failed. Please try again or contact support.")

        return UssdReply.end(
            "Airtime purchase successful!\n"
            f"Number: {target}\n"
            f"Amount: {format_amount(receipt.amount_cents)}\n"
            f"Reference: {receipt.reference}"
        )

    # Settings

    async def account_settings(self, tokens: Tokens, phone: str) -> UssdReply:
        count = len(tokens)
        if count == 0:
            return UssdReply.con(f"Account Settings\n{menu_lines(SETTINGS_MENU)}")

        choice, rest = tokens[0], tokens[1:]
        if choice == "1" and not rest:
            return UssdReply.end("PIN change is only available in the mobile app for security reasons.")
        if choice == "2" and not rest:
            return await self._account_info(phone)
        if choice == "3":
            return await self._language(rest, phone)
        if choice == "4":
            return await self.main_menu(rest, phone)
        if count == 1:
            return UssdReply.con(f"Invalid option.\n{menu_lines(SETTINGS_MENU[:3])}")
        return INVALID_INPUT

    async def _account_info(self, phone: str) -> UssdReply:
        user = await self.identity.find_user_by_phone(phone)
        if user is None:
            return UssdReply.end("Account not found.")
        return UssdReply.end(self._describe(user, phone))

    def _describe(self, user: UserProfile, phone: str) -> str:
        since = f"{user.created_at:%Y-%m-%d}" if user.created_at else "-"
        name = f"{user.first_name} {user.last_name}".strip()
        return (
            "Account Information:\n"
            f"Name: {name}\n"
            f"Phone: {phone}\n"
            f"Role: {user.role}\n"
            f"KYC Status: {user.kyc_status}\n"
            f"Account Since: {since}"
        )

    async def _language(self, tokens: Tokens, phone: str) -> UssdReply:
        options = menu_lines([label for _, label in LANGUAGES])
        count = len(tokens)
        if count == 0:
            return UssdReply.con(f"Language Settings\n{options}")

        if count == 1:
            choice = tokens[0]
            if not choice.isdigit() or not 1 <= int(choice) <= len(LANGUAGES):
                return UssdReply.end("Invalid language option.")
            code, label = LANGUAGES[int(choice) - 1]
            user = await self.identity.find_user_by_phone(phone)
            if user is None:
                return NOT_REGISTERED
            if not await self.identity.update_language(user.id, code):
                return UssdReply.end("Could not update language. Please try again.")
            return UssdReply.end(f"Language set to {label}.")

        return INVALID_INPUT
