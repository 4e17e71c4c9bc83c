"""Order summary list parsing.

Summary pages list one order per line: an order id, a separator the OCR
renders as almost any punctuation, the customer name, then the order
type or status column.
"""

import re

from scanbatch.utils.logger import get_logger

from .fields import SummaryFields, SummaryOrder, uppercase_values

logger = get_logger(__name__)

SUMMARY_HEADER = re.compile(r"Order\s+Customer\s+Type\s+Status", re.IGNORECASE)

# Separator characters OCR produces between order id and customer name.
_SEP = "[*~<>\\-+v«».,“”\"']"

_ORDER_LINE = re.compile(
    rf"^(\d{{5,}}[A-Z0-9]+)\s+{_SEP}?\s*([A-Z][A-Z /.'-]{{2,}}?)\s+(?:SAL|RET|EXC|Sale|Closed)\b",
    re.IGNORECASE,
)
_ORDER_LINE_FALLBACK = re.compile(
    rf"^(\d{{5,}}[A-Z0-9]+)\s+{_SEP}?\s*([A-Z][A-Z /.'()\-]{{3,}})",
    re.IGNORECASE,
)


def is_summary_page(text: str) -> bool:
    return SUMMARY_HEADER.search(text) is not None


def clean_customer_name(raw: str) -> str:
    name = re.sub(r"\s+", " ", raw)
    name = re.sub(r"[^A-Za-z /.'()-]", "", name)
    # a lone leading letter is a misread separator
    name = re.sub(r"^[A-Z]\s+", "", name)
    return name.strip()


def parse_summary_orders(text: str) -> list[SummaryOrder]:
    """Extract ``(order_id, customer_name)`` pairs, first occurrence wins."""
    orders: list[SummaryOrder] = []
    seen: set[str] = set()

    for line in text.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        match = _ORDER_LINE.match(trimmed) or _ORDER_LINE_FALLBACK.match(trimmed)
        if not match:
            continue

        order_id = match.group(1).strip()
        customer_name = clean_customer_name(match.group(2))
        if len(customer_name) < 3 or order_id in seen:
            continue

        seen.add(order_id)
        orders.append(SummaryOrder(order_id=order_id, customer_name=customer_name))

    logger.info("Summary parser: found %d orders", len(orders))
    return orders


def parse_summary_text(text: str) -> SummaryFields:
    orders = parse_summary_orders(text)
    fields = SummaryFields(orders=orders, order_count=len(orders) or None)
    return uppercase_values(fields)
