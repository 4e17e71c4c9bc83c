"""Delivery and return ticket parsing.

Tickets carry a "DELIVERY TICKET" / "RETURN TICKET" banner, a two-column
Bill To / Ship To block and labelled header fields.
"""

import re

from .fields import TicketFields, uppercase_values
from .patterns import CITY_STATE_ZIP, PHONE

# The final T is optional: handwriting over the banner often garbles "TICKET".
TICKET_PATTERN = re.compile(
    r"(D\s*E\s*L\s*I\s*V\s*E\s*R\s*Y|R\s*E\s*T\s*U\s*R\s*N)\s+TIC\w*ET?", re.IGNORECASE
)
_ORDER_ID = re.compile(
    r"(?:Order|Return)\s+(?:ID|1D|0)[;:]\s*(.+?)(?:\s*\(|$)", re.IGNORECASE | re.MULTILINE
)
_CUSTOMER_ID = re.compile(r"Customer\s+ID[;:]\s*(\S+)", re.IGNORECASE)
_DELIVERY_DATE = re.compile(r"Delivery\s+Date:\s*([\d/]+)", re.IGNORECASE)
_SALESPERSON = re.compile(r"Salesperson:\s*([A-Za-z0-9]+)", re.IGNORECASE)
_TRUCK_ID = re.compile(r"Truck\s+ID:\s*(.+)", re.IGNORECASE)
_SUBTOTAL = re.compile(r"Subtotal:?\s*\$?\s*([\d,.]+)", re.IGNORECASE)
_SHIPPING_ZONE = re.compile(r"Shipping\s+Zone:\s*(\S+)", re.IGNORECASE)
_STOP = re.compile(r"Stop:\s*(\d+)", re.IGNORECASE)
_MOBILE = re.compile(rf"Mobile:\s*\+?1?\s*{PHONE}")
_SECONDARY_PHONE = re.compile(rf"Secondary\s+Phone:\s*\+?1?\s*{PHONE}", re.IGNORECASE)
# OCR reads "Bill To:" as "Bilt To;", "Bil To:" and similar.
_BILL_TO_LABEL = re.compile(r"B[il1][il1][ilt1]?\s*To[;:]", re.IGNORECASE)
_MARKER_LABEL = re.compile(r"Marker\s+\w+:", re.IGNORECASE)
_SHIP_TO_LABEL = re.compile(r"Ship\s*To", re.IGNORECASE)
_PHONE_LABEL = re.compile(r"Mobile:|Secondary\s+Phone:", re.IGNORECASE)
_DUPLICATED = re.compile(r"^(.{3,}?)\s+\1\s*$")

_ADDRESS_BLOCK_LINES = 7


def is_ticket_page(text: str) -> bool:
    return TICKET_PATTERN.search(text) is not None


def parse_ticket_text(text: str) -> TicketFields:
    """Parse a delivery or return ticket into uppercased fields."""
    bill_to, ship_to = _parse_address_block(text)
    fields = TicketFields(
        fulfillment=_ticket_type(text),
        order_id=_order_id(text),
        customer_name=bill_to[0] if bill_to else None,
        customer_id=_search(_CUSTOMER_ID, text),
        address=bill_to[1] if len(bill_to) > 1 else None,
        city_state_zip=_city_state_zip(bill_to),
        ship_to_name=ship_to[0] if ship_to else None,
        ship_to_address=ship_to[1] if len(ship_to) > 1 else None,
        ship_to_city_state_zip=_city_state_zip(ship_to),
        phone=_phone(text),
        delivery_date=_search(_DELIVERY_DATE, text),
        salesperson=_search(_SALESPERSON, text),
        truck_id=_truck_id(text),
        total_sale=_search(_SUBTOTAL, text),
        stop=_search(_STOP, text),
        zone=_search(_SHIPPING_ZONE, text),
    )
    return uppercase_values(fields)


def _search(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    if not match:
        return None
    return match.group(1).strip() or None


def _ticket_type(text: str) -> str | None:
    match = TICKET_PATTERN.search(text)
    if not match:
        return None
    return re.sub(r"\s+", "", match.group(1)).upper()


def _order_id(text: str) -> str | None:
    match = _ORDER_ID.search(text)
    if not match:
        return None
    return re.sub(r"\s+", "", match.group(1)) or None


def _truck_id(text: str) -> str | None:
    value = _search(_TRUCK_ID, text)
    if not value:
        return None
    first_line = value.splitlines()[0].strip()
    return re.sub(r"[^A-Za-z0-9]+$", "", first_line) or None


def _clean_block_line(line: str) -> str:
    return re.sub(r"\s*\|+$", "", re.sub(r"^\|+\s*", "", line.strip()))


def _parse_address_block(text: str) -> tuple[list[str], list[str]]:
    lines = text.split("\n")
    header_idx = _address_header_index(lines)
    if header_idx < 0:
        return [], []
    if _SHIP_TO_LABEL.search(lines[header_idx]):
        return _two_columns(lines, header_idx + 1)
    entries = _single_column(lines, header_idx + 1)
    return entries, entries


def _address_header_index(lines: list[str]) -> int:
    for i, line in enumerate(lines):
        if _BILL_TO_LABEL.search(line):
            return i
    # Without a Bill To label the address block follows the Marker ID line.
    for i, line in enumerate(lines):
        if _MARKER_LABEL.search(line):
            return i
    return -1


def _block_lines(lines: list[str], start: int) -> list[str]:
    block: list[str] = []
    for line in lines[start : start + _ADDRESS_BLOCK_LINES]:
        raw = _clean_block_line(line)
        if _PHONE_LABEL.search(raw):
            break
        if raw:
            block.append(raw)
    return block


def _two_columns(lines: list[str], start: int) -> tuple[list[str], list[str]]:
    bill_to: list[str] = []
    ship_to: list[str] = []
    for raw in _block_lines(lines, start):
        left, right = split_columns(raw)
        if left:
            bill_to.append(left)
        if right:
            ship_to.append(right)
    return bill_to, ship_to or bill_to


def _single_column(lines: list[str], start: int) -> list[str]:
    entries: list[str] = []
    for raw in _block_lines(lines, start):
        left = re.split(r"\s{3,}", raw)[0].strip().rstrip(",")
        if len(left) >= 4:
            entries.append(left)
    return entries


def split_columns(line: str) -> tuple[str, str]:
    """Split a Bill To / Ship To line into its two columns.

    Identical columns ("LISA CHEN LISA CHEN") collapse to one value;
    otherwise the line is split at the word boundary nearest its middle.
    """
    dup = _DUPLICATED.match(line)
    if dup:
        value = dup.group(1).strip()
        return value, value

    mid = len(line) // 2
    after = line.find(" ", mid)
    before = line.rfind(" ", 0, mid + 1)
    if after >= 0 and (before < 0 or after - mid <= mid - before):
        split_at = after
    else:
        split_at = before
    if split_at > 0:
        return line[:split_at].strip(), line[split_at:].strip()
    return line.strip(), line.strip()


def _city_state_zip(block: list[str]) -> str | None:
    for line in block[2:]:
        if CITY_STATE_ZIP.match(line):
            return line
    return None


def _phone(text: str) -> str | None:
    """Prefer the mobile number; append a distinct secondary number."""
    mobile_match = _MOBILE.search(text)
    mobile = mobile_match.group(1).strip() if mobile_match else None
    secondary_match = _SECONDARY_PHONE.search(text)
    secondary = secondary_match.group(1).strip() if secondary_match else None

    if mobile and secondary and mobile != secondary:
        return f"{mobile}, {secondary}"
    return mobile or secondary
