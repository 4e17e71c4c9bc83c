"""Ordered parser dispatch and content classification.

Parsers are tried in order and the first whose title pattern matches
the page wins. The detail parser matches everything, so it must stay last.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from .cdr_report_parser import is_cdr_report, parse_cdr_report
from .detail_parser import HEADER_LINE, CREDIT_LINE, has_financing_content, parse_detail_text
from .fields import DepositTicketFields, ExtractedFields
from .manifest import has_manifest_header
from .receipt_parser import is_transaction_receipt, parse_transaction_receipt
from .summary_parser import is_summary_page, parse_summary_text
from .ticket_parser import is_ticket_page, parse_ticket_text

INVOICE = "INVOICE"
FINANCING = "FINANCING"
MANIFEST = "MANIFEST"
RECEIPT = "RECEIPT"
CDR_REPORT = "CDR_REPORT"
DEPOSIT_TICKET = "DEPOSIT_TICKET"
UNKNOWN = "UNKNOWN"

DEPOSIT_TICKET_PATTERN = re.compile(r"DEPOSIT\s+TICKET", re.IGNORECASE)
FINANCE_AGREEMENT_PATTERNS = [
    re.compile(r"FINANCE\s+COMPANY", re.IGNORECASE),
    re.compile(r"MONTHLY\s+PAYMENT", re.IGNORECASE),
    re.compile(r"FINANCED\s+AMOUNT", re.IGNORECASE),
    re.compile(r"FINANCING\s+AGREEMENT", re.IGNORECASE),
    re.compile(r"\bAPR\b|ANNUAL\s+PERCENTAGE", re.IGNORECASE),
    re.compile(r"LOAN\s+AMOUNT", re.IGNORECASE),
]
# "ORDER TYPE:" is often garbled but "STAT:" usually survives.
_STAT_FALLBACK = re.compile(r"\bSTAT\s*[.:]\s*[A-Z]\b", re.IGNORECASE)


def is_deposit_ticket(text: str) -> bool:
    return DEPOSIT_TICKET_PATTERN.search(text) is not None


def is_finance_agreement(text: str) -> bool:
    return any(p.search(text) for p in FINANCE_AGREEMENT_PATTERNS)


def is_sales_content(text: str) -> bool:
    return bool(
        HEADER_LINE.search(text)
        or is_ticket_page(text)
        or CREDIT_LINE.search(text)
        or _STAT_FALLBACK.search(text)
    )


def _detail_document_type(text: str) -> str:
    if is_finance_agreement(text) or has_financing_content(text):
        return FINANCING
    if is_sales_content(text):
        return INVOICE
    return UNKNOWN


@dataclass(frozen=True)
class PageParser:
    """One dispatch entry: a title predicate and the parser it selects."""

    name: str
    matches: Callable[[str], bool]
    parse: Callable[[str], ExtractedFields]
    document_type: Callable[[str], str]


def _always(text: str) -> bool:
    return True


PARSERS: list[PageParser] = [
    PageParser("ticket", is_ticket_page, parse_ticket_text, lambda _: INVOICE),
    PageParser("receipt", is_transaction_receipt, parse_transaction_receipt, lambda _: RECEIPT),
    PageParser("summary", is_summary_page, parse_summary_text, lambda _: MANIFEST),
    PageParser("cdr_report", is_cdr_report, parse_cdr_report, lambda _: CDR_REPORT),
    PageParser(
        "deposit_ticket",
        is_deposit_ticket,
        lambda _: DepositTicketFields(),
        lambda _: DEPOSIT_TICKET,
    ),
    PageParser("detail", _always, parse_detail_text, _detail_document_type),
]


def select_parser(text: str) -> PageParser:
    """Return the first parser whose predicate matches ``text``."""
    for parser in PARSERS:
        if parser.matches(text):
            return parser
    return PARSERS[-1]


def classify_content(text: str) -> str | None:
    """Classify page text by content, or ``None`` when nothing is clear.

    Finance-agreement language outranks sales-ticket language because
    financing paperwork reprints the sale header.
    """
    if is_cdr_report(text):
        return CDR_REPORT
    if is_transaction_receipt(text):
        return RECEIPT
    if is_deposit_ticket(text):
        return DEPOSIT_TICKET
    if is_summary_page(text) or has_manifest_header(text):
        return MANIFEST
    if is_finance_agreement(text):
        return FINANCING
    if is_sales_content(text):
        return INVOICE
    return None
