"""Delivery manifest detection.

Manifests are frequently printed landscape and scanned sideways, so
detection may look at the page rotated 90 degrees before deciding.
"""

import re

from scanbatch.utils.logger import get_logger

from .fields import ManifestFields, SummaryOrder, uppercase_values
from .patterns import ORDER_ID_TOKEN
from .summary_parser import clean_customer_name

logger = get_logger(__name__)

MANIFEST_HEADERS = [
    re.compile(r"Order\s+Customer\s+Type\s+Status", re.IGNORECASE),
    re.compile(r"Order\s+Date.*Delivery\s+Date", re.IGNORECASE),
    re.compile(r"Customer.*Type.*Status.*Products", re.IGNORECASE),
    re.compile(r"Order\s+Site.*Total.*Delivery", re.IGNORECASE),
]

_MANIFEST_LINE = re.compile(
    r"^(\d{7,}[A-Z]{1,2})\s+([A-Z][A-Z\s/]+?)(?:\s+SAL|\s+MCR|\s+[A-Z]\s)",
    re.IGNORECASE,
)


def has_manifest_header(text: str) -> bool:
    return any(p.search(text) for p in MANIFEST_HEADERS)


def count_order_ids(text: str) -> int:
    return len(ORDER_ID_TOKEN.findall(text))


def looks_like_manifest(text: str, min_orders: int = 2) -> bool:
    """A manifest has a known column header or at least ``min_orders`` order ids."""
    return has_manifest_header(text) or count_order_ids(text) >= min_orders


def parse_manifest_orders(text: str) -> list[SummaryOrder]:
    orders: list[SummaryOrder] = []
    seen: set[str] = set()
    for line in text.split("\n"):
        match = _MANIFEST_LINE.match(line.strip())
        if not match:
            continue
        order_id = match.group(1)
        if order_id in seen:
            continue
        seen.add(order_id)
        orders.append(
            SummaryOrder(order_id=order_id, customer_name=clean_customer_name(match.group(2)))
        )
    return orders


def parse_manifest(
    text: str, rotated: bool = False, full_confidence_orders: int = 5
) -> ManifestFields:
    """Parse manifest orders; the order count falls back to raw order-id hits."""
    orders = parse_manifest_orders(text)
    count = len(orders) if orders else count_order_ids(text)
    logger.info(
        "Manifest parsed: %d orders (%d itemized), rotated=%s", count, len(orders), rotated
    )
    return uppercase_values(
        ManifestFields(
            orders=orders,
            order_count=count,
            rotated=rotated,
            full_confidence_orders=full_confidence_orders,
        )
    )
