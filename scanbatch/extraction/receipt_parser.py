"""Transaction receipt parsing."""

import re

from scanbatch.utils.logger import get_logger

from .fields import ReceiptFields, ReceiptTransaction, uppercase_values
from .patterns import CITY_STATE_ZIP, PHONE, parse_money

logger = get_logger(__name__)

RECEIPT_PATTERN = re.compile(r"Transaction\s+Receipt", re.IGNORECASE)
_CUSTOMER_ID = re.compile(r"Customer\s+ID[;:]\s*(\S+)", re.IGNORECASE)
_SALES_ORDER = re.compile(r"Sales\s+Order[;:]\s*(\S+)", re.IGNORECASE)
_CASHIER = re.compile(r"Cashier[;:]\s*(\S+)", re.IGNORECASE)
_PRINTED_ON = re.compile(r"Printed\s+on[;:]\s*([\d/]+)", re.IGNORECASE)
_EMAIL = re.compile(r"Email[;:]\s*(\S+@\S+)", re.IGNORECASE)
_PHONE = re.compile(rf"(?:Home|Phone)[;:]\s*{PHONE}", re.IGNORECASE)
_AMOUNT = re.compile(r"(-?)\$\s*([\d,]+\.\d{2})")
_TRANSACTION_LINE = re.compile(
    r"^\s*(\d{1,2}/\d{1,2}/\d{2,4})\s+(.+?)\s+(-?)\$\s*([\d,]+\.\d{2})\s*$"
)
_STORE_SUFFIX = re.compile(r"\s+[-–]\s*\d{2}$|\s+Store\s+\d+$", re.IGNORECASE)


def is_transaction_receipt(text: str) -> bool:
    return RECEIPT_PATTERN.search(text) is not None


def parse_transaction_receipt(text: str) -> ReceiptFields:
    """Parse a transaction receipt.

    The total is the sum of the itemized transaction lines, or of every
    dollar amount on the page when no transaction line could be read.
    """
    name, address, city_state_zip = _customer_block(text)
    transactions = parse_transactions(text)
    fields = ReceiptFields(
        order_id=_search(_SALES_ORDER, text),
        customer_name=name,
        customer_id=_search(_CUSTOMER_ID, text),
        address=address,
        city_state_zip=city_state_zip,
        phone=_phones(text),
        email=_search(_EMAIL, text),
        printed_on=_search(_PRINTED_ON, text),
        cashier=_search(_CASHIER, text),
        total=_total(text, transactions),
        transactions=transactions,
    )
    logger.debug("Receipt parser: %d transaction lines", len(transactions))
    return uppercase_values(fields)


def parse_transactions(text: str) -> list[ReceiptTransaction]:
    transactions: list[ReceiptTransaction] = []
    for line in text.split("\n"):
        match = _TRANSACTION_LINE.match(line)
        if not match:
            continue
        date, payment_type, sign, amount = match.groups()
        transactions.append(
            ReceiptTransaction(
                date=date,
                payment_type=payment_type.strip(),
                amount=f"{sign}{amount.replace(',', '')}",
            )
        )
    return transactions


def _search(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def _customer_block(text: str) -> tuple[str | None, str | None, str | None]:
    lines = text.split("\n")
    receipt_idx = next(
        (i for i, line in enumerate(lines) if RECEIPT_PATTERN.search(line)), -1
    )
    if receipt_idx < 0:
        return None, None, None

    def line_at(offset: int) -> str:
        idx = receipt_idx + offset
        return lines[idx].strip() if idx < len(lines) else ""

    name = re.split(r"Printed\s+on", line_at(1), flags=re.IGNORECASE)[0].strip() or None

    address_part = re.split(r"\s{3,}", line_at(2))[0].strip()
    address = _STORE_SUFFIX.sub("", address_part).strip() or None

    city_state_zip = None
    for offset in range(3, 6):
        candidate = line_at(offset)
        if CITY_STATE_ZIP.match(candidate):
            city_state_zip = candidate
            break

    return name, address, city_state_zip


def _phones(text: str) -> str | None:
    unique: list[str] = []
    for match in _PHONE.finditer(text):
        phone = match.group(1).strip()
        if phone and phone not in unique:
            unique.append(phone)
    return ", ".join(unique) if unique else None


def _total(text: str, transactions: list[ReceiptTransaction]) -> str | None:
    if transactions:
        amounts = [parse_money(t.amount) for t in transactions if t.amount]
    else:
        amounts = [
            (-1 if sign == "-" else 1) * parse_money(raw)
            for sign, raw in _AMOUNT.findall(text)
        ]
    if not amounts:
        return None
    return f"{sum(amounts):.2f}"
