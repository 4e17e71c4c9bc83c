"""Cash drawer report parsing.

The grand totals line prints up to three columns (refunds, payments,
total) followed by the transaction count, e.g.::

    GRAND TOTALS
    Totals: $100.00 $250.00 $350.00 12
"""

import re

from .fields import CdrReportFields, uppercase_values
from .patterns import DOLLAR_AMOUNT, parse_money

CDR_REPORT_PATTERN = re.compile(r"Cash Drawer Report", re.IGNORECASE)
_POST_DATE = re.compile(r"Post Date Range:\s*(.+)", re.IGNORECASE)
_PAYMENT_SITE = re.compile(r"Payment Site:\s*(\d+)", re.IGNORECASE)
_DRAWER_TOTALS = re.compile(r"Cash Drawer\s+(\d+)\s+Totals", re.IGNORECASE)
_ORDER_ID = re.compile(r"\b(\d{7,}[A-Z][A-Z0-9]{1,4})\b")
_GRAND_TOTALS = re.compile(r"GRAND TOTALS", re.IGNORECASE)
_TOTALS_LINE = re.compile(r"Totals:\s+", re.IGNORECASE)
_TRAILING_INT = re.compile(r"(\d+)\s*$")
_DRAWER_PREFIX = re.compile(r"^\s*(\d{1,3})\s+[A-Z]")

MAX_TRANS_COUNT = 999


def is_cdr_report(text: str) -> bool:
    return CDR_REPORT_PATTERN.search(text) is not None


def parse_cdr_report(text: str) -> CdrReportFields:
    totals_line = find_grand_totals_line(text)
    amounts = DOLLAR_AMOUNT.findall(totals_line) if totals_line else []
    fields = CdrReportFields(
        cash_drawers=extract_cash_drawers(text),
        grand_total=max(amounts, key=parse_money) if amounts else None,
        # Refund is only printed when all three columns are present.
        total_refund=amounts[0] if len(amounts) >= 3 else None,
        trans_count=extract_trans_count(totals_line),
        order_ids=extract_order_ids(text),
        payment_site=_search(_PAYMENT_SITE, text),
        post_date=_search(_POST_DATE, text),
    )
    return uppercase_values(fields)


def find_grand_totals_line(text: str) -> str | None:
    """Return the last "Totals:" line after the GRAND TOTALS marker."""
    in_grand_totals = False
    last: str | None = None
    for line in text.split("\n"):
        if _GRAND_TOTALS.search(line):
            in_grand_totals = True
            continue
        if in_grand_totals and _TOTALS_LINE.search(line):
            last = line
    return last


def extract_trans_count(totals_line: str | None) -> int | None:
    """Trailing integer of the totals line, rejected above 999."""
    if not totals_line:
        return None
    match = _TRAILING_INT.search(totals_line)
    if not match:
        return None
    # "$350.00" ends in digits too; a count never follows a decimal point
    if totals_line[: match.start()].endswith("."):
        return None
    count = int(match.group(1))
    return count if count <= MAX_TRANS_COUNT else None


def extract_cash_drawers(text: str) -> list[int]:
    drawers = {int(m) for m in _DRAWER_TOTALS.findall(text)}
    if drawers:
        return sorted(drawers)
    for line in text.split("\n"):
        if not _ORDER_ID.search(line):
            continue
        prefix = _DRAWER_PREFIX.match(line)
        if prefix:
            drawers.add(int(prefix.group(1)))
    return sorted(drawers)


def extract_order_ids(text: str) -> list[str]:
    return list(dict.fromkeys(_ORDER_ID.findall(text)))


def _search(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1).strip() if match else None
