"""Mock card payment gateway."""

import asyncio
import logging
import secrets
import time
from collections import namedtuple
from decimal import Decimal
from typing import Optional

from easypark.config import settings
from easypark.exceptions import PaymentFailed

logger = logging.getLogger(__name__)

GATEWAY_PROVIDER = "MOCK_GATEWAY"

ChargeResult = namedtuple(
    "ChargeResult",
    ["transaction_id", "provider", "card_last4", "card_brand", "card_exp_month", "card_exp_year"],
)


def luhn_valid(number: str) -> bool:
    digits = [int(ch) for ch in number if ch.isdigit()]
    if len(digits) < 12 or len(digits) != len(number):
        return False
    total = 0
    for index, digit in enumerate(reversed(digits)):
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def card_brand(number: str) -> str:
    if number.startswith("4"):
        return "VISA"
    if number[:2] in ("34", "37"):
        return "AMEX"
    if number[:2] in ("51", "52", "53", "54", "55") or 2221 <= int(number[:4] or 0) <= 2720:
        return "MASTERCARD"
    return "CARD"


def new_transaction_id(prefix: str = "txn") -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


async def charge_card(amount, card=None) -> ChargeResult:
    """Simulate a card charge.

    ``card`` is optional; without it the charge carries no card details.
    Raises PaymentFailed for non-positive amounts or card numbers that fail
    the Luhn check.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise PaymentFailed("Card declined: invalid amount")

    number = None
    if card is not None:
        number = "".join(str(card.number).split())
        if not luhn_valid(number):
            raise PaymentFailed("Card declined: invalid card number")

    logger.info("Processing mock card charge of %s", amount)
    if settings.MOCK_GATEWAY_DELAY_SECONDS > 0:
        await asyncio.sleep(settings.MOCK_GATEWAY_DELAY_SECONDS)

    return ChargeResult(
        transaction_id=new_transaction_id(),
        provider=GATEWAY_PROVIDER,
        card_last4=number[-4:] if number else None,
        card_brand=card_brand(number) if number else None,
        card_exp_month=getattr(card, "exp_month", None),
        card_exp_year=getattr(card, "exp_year", None),
    )
