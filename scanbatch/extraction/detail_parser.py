"""Sales detail page parsing.

Detail pages have no fixed layout label to anchor on, so each header
field is tried against a cascade of patterns, most specific first. The
store address and customer name share one printed line with the order
type and STAT code, which is why the customer name is cut out from
between the street suffix and "ORDER TYPE".
"""

import re

from .fields import DetailFields, LineItem, uppercase_values
from .patterns import (
    CITY_STATE_ZIP,
    DIRECTIONAL_SUFFIX,
    DOLLAR_AMOUNT,
    PHONE,
    STREET_SUFFIX,
)

HEADER_LINE = re.compile(r"TYPE\s*:.*STAT\s*[.:]", re.IGNORECASE)
CREDIT_LINE = re.compile(r"CREDIT\s*:\s*\d", re.IGNORECASE)
GROSS_SALES = re.compile(r"Gross\s+Sales", re.IGNORECASE)
FINANCING_MARKERS = [
    re.compile(r"CUSTOMER\s+SIGNATURE", re.IGNORECASE),
    re.compile(r"Finance\s+Co\.?:", re.IGNORECASE),
    re.compile(r"Financed\s+Amt\.?:", re.IGNORECASE),
]

# OCR often loses the start of "NUMBER" ("MBER", "UMBER", "BER").
_ORDER_NUMBER = re.compile(r"(?:N?U?M?BER|NUMBER|RETURN|CREDIT)\s*:\s*(\d\S+)", re.IGNORECASE)
_ORDER_HASH = re.compile(r"Order\s*#\s*:?\s*(\d\S+)", re.IGNORECASE)
_ORDER_FALLBACK = re.compile(r":\s*(\d{5,}\w{2,})")
_NAME_BEFORE_ORDER_TYPE = re.compile(
    rf"\b{STREET_SUFFIX}{DIRECTIONAL_SUFFIX}\s+([A-Z][A-Za-z /.'()-]+?)\s+(?:NA\s+)?ORDER\s+TYPE",
    re.IGNORECASE,
)
_NAME_BEFORE_CREDIT = re.compile(
    rf"\b{STREET_SUFFIX}{DIRECTIONAL_SUFFIX}\s+([A-Z][A-Za-z /.'()-]+?)\s+CREDIT\s*:",
    re.IGNORECASE,
)
_UP_TO_STREET = re.compile(rf"^.*\b{STREET_SUFFIX}{DIRECTIONAL_SUFFIX}\s+", re.IGNORECASE)
_LEADING_NAME = re.compile(r"^([A-Z][A-Za-z]+(?:\s+[A-Z][A-Za-z]+)*)")
_BILL_TO = re.compile(r"Bill\s+To:", re.IGNORECASE)
_AFTER_ZIP = re.compile(r"^.*,\s*[A-Z0-9|]{2}\s+\d{5}(?:-\d{4})?\s+")
_FULFILLMENT_TAIL = re.compile(r"\s+(Pickup|Delivery)\s*[|]?\s*$", re.IGNORECASE)
_CITY_BEFORE_DATE = re.compile(
    r"([A-Z][A-Za-z ]+,[ \t]*[A-Z0-9|]{2}[ \t]+\d{5}(?:-\d{4})?)[ \t]+DATE:", re.IGNORECASE
)
_MOBILE = re.compile(rf"M/P[;:]\s*{PHONE}")
_SP = re.compile(rf"S/P[;:]\s*{PHONE}")
_SECONDARY = re.compile(rf"Secondary\s+Phone:\s*{PHONE}", re.IGNORECASE)
_DATE = re.compile(r"DATE:\s*([\d/]+)", re.IGNORECASE)
_SALESPERSON = re.compile(r"SALESPERSON:\s*([A-Z][A-Z ]+)", re.IGNORECASE)
_STAT = re.compile(r"STAT[.:]\s*(\S+)", re.IGNORECASE)
_ZONE = re.compile(r"ZONE\s*:?\s*(\d+)", re.IGNORECASE)
_CUSTOMER_CODE = re.compile(r"C\.\s*Code:\s*(\S+)", re.IGNORECASE)
_FINANCE_COMPANY = re.compile(r"Finance\s+Co\.?:\s*(.+)", re.IGNORECASE)
_FINANCED_AMOUNT = re.compile(r"Financed\s+Amt\.?:\s*\$?([\d,.]+)", re.IGNORECASE)

# STAT codes are letters; map the usual digit misreads back.
_STAT_FIXES = str.maketrans({"0": "O", "1": "I"})


def has_financing_content(text: str) -> bool:
    return any(p.search(text) for p in FINANCING_MARKERS)


def parse_detail_text(text: str) -> DetailFields:
    """Parse a detail page into header, sale total and financing fields."""
    address, fulfillment = _address_and_fulfillment(text)
    if fulfillment is None and CREDIT_LINE.search(text):
        fulfillment = "CREDIT"

    fields = DetailFields(
        fulfillment=fulfillment,
        order_id=extract_order_id(text),
        customer_name=extract_customer_name(text),
        address=address or _bill_to_address(text),
        city_state_zip=_city_state_zip(text),
        phone=extract_phone(text),
        delivery_date=_search(_DATE, text),
        salesperson=_search(_SALESPERSON, text),
        stat=extract_stat(text),
        zone=_search(_ZONE, text),
        customer_code=_search(_CUSTOMER_CODE, text),
    )

    if GROSS_SALES.search(text):
        gross = extract_gross_sales(text)
        fields.total_sale = gross
        fields.line_items = [LineItem(description="TOTAL SALE", amount=gross)]

    if has_financing_content(text):
        fields.has_financing = True
        fields.finance_company = _search(_FINANCE_COMPANY, text)
        fields.financed_amount = _search(_FINANCED_AMOUNT, text)

    return uppercase_values(fields)


def _search(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    if not match:
        return None
    return match.group(1).strip() or None


def extract_order_id(text: str) -> str | None:
    for pattern in (_ORDER_NUMBER, _ORDER_HASH):
        value = _search(pattern, text)
        if value:
            return value
    for line in text.split("\n")[:10]:
        value = _search(_ORDER_FALLBACK, line)
        if value:
            return value
    return None


def extract_customer_name(text: str) -> str | None:
    for pattern in (_NAME_BEFORE_ORDER_TYPE, _NAME_BEFORE_CREDIT):
        value = _search(pattern, text)
        if value:
            return value

    lines = text.split("\n")
    idx = next((i for i, line in enumerate(lines) if HEADER_LINE.search(line)), -1)
    if idx < 0:
        idx = next((i for i, line in enumerate(lines) if CREDIT_LINE.search(line)), -1)
    if idx >= 0:
        before = re.split(r"(?:TYPE|CREDIT)\s*:", lines[idx], flags=re.IGNORECASE)[0]
        after_street = _UP_TO_STREET.sub("", before)
        value = _search(_LEADING_NAME, after_street)
        if value:
            return value

    return _bill_to_name(text)


def _bill_to_block(text: str) -> list[str]:
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if _BILL_TO.search(line):
            return [ln.strip() for ln in lines[i + 1 : i + 5] if ln.strip()]
    return []


def _bill_to_name(text: str) -> str | None:
    block = _bill_to_block(text)
    if block and re.match(r"^[A-Z]", block[0]):
        return re.split(r"\s{3,}", block[0])[0].strip()
    return None


def _bill_to_address(text: str) -> str | None:
    block = _bill_to_block(text)
    return block[1] if len(block) > 1 else None


def _city_state_zip(text: str) -> str | None:
    inline = _search(_CITY_BEFORE_DATE, text)
    if inline:
        return inline
    for line in _bill_to_block(text)[2:]:
        if CITY_STATE_ZIP.match(line):
            return line
    return None


def _address_and_fulfillment(text: str) -> tuple[str | None, str | None]:
    """Read the customer street address and Pickup/Delivery from the line
    following the order header, where both trail the store's city and zip."""
    lines = text.split("\n")
    idx = next((i for i, line in enumerate(lines) if HEADER_LINE.search(line)), -1)
    if idx < 0 or idx + 1 >= len(lines):
        return None, None

    next_line = lines[idx + 1]
    after_zip = _AFTER_ZIP.sub("", next_line, count=1)
    if not after_zip or after_zip == next_line:
        return None, None

    type_match = _FULFILLMENT_TAIL.search(after_zip)
    fulfillment = type_match.group(1).strip() if type_match else None
    raw_address = _FULFILLMENT_TAIL.sub("", after_zip).strip()
    address = re.sub(r"[\s\\|«»<>]+$", "", raw_address).strip() or None
    return address, fulfillment


def extract_phone(text: str) -> str | None:
    """Prefer the mobile (M/P) number, adding a distinct S/P or secondary number."""
    primary = _search(_MOBILE, text)
    fallback = _search(_SP, text) or _search(_SECONDARY, text)
    if primary and fallback and primary != fallback:
        return f"{primary}, {fallback}"
    return primary or fallback


def extract_stat(text: str) -> str | None:
    value = _search(_STAT, text)
    return value.translate(_STAT_FIXES) if value else None


def extract_gross_sales(text: str) -> str | None:
    """Amount printed on the "Gross Sales" line (its last dollar figure)."""
    for line in text.split("\n"):
        if GROSS_SALES.search(line):
            amounts = DOLLAR_AMOUNT.findall(line)
            if amounts:
                return amounts[-1].replace(",", "")
    return None
