"""Typed field sets produced by the page parsers.

Every parser returns one of the dataclasses below. Confidence is the
share of a field set's slots that were filled, so it always lies in
[0, 1]; fields marked ``slot=False`` are bookkeeping and do not count.
"""

from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from typing import Any, ClassVar, Union


def _slot(default: Any = None, *, counted: bool = True, factory: Any = None) -> Any:
    metadata = {"slot": counted}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, set, dict, str)):
        return len(value) > 0
    return True


def uppercase_values(value: Any) -> Any:
    """Uppercase every string in ``value``, descending into lists and dataclasses."""
    if isinstance(value, str):
        return value.upper()
    if isinstance(value, list):
        return [uppercase_values(v) for v in value]
    if is_dataclass(value) and not isinstance(value, type):
        changes = {
            f.name: uppercase_values(getattr(value, f.name))
            for f in fields(value)
            if f.init
        }
        return replace(value, **changes)
    return value


@dataclass
class FieldSet:
    """Base for all parser outputs."""

    kind: ClassVar[str] = "generic"

    def slot_values(self) -> list[Any]:
        return [getattr(self, f.name) for f in fields(self) if f.metadata.get("slot", True)]

    def confidence(self) -> float:
        values = self.slot_values()
        if not values:
            return 1.0
        filled = sum(1 for v in values if is_filled(v))
        return filled / len(values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TicketFields(FieldSet):
    """Delivery or return ticket."""

    kind: ClassVar[str] = "ticket"

    fulfillment: str | None = None
    order_id: str | None = None
    customer_name: str | None = None
    customer_id: str | None = None
    address: str | None = None
    city_state_zip: str | None = None
    ship_to_name: str | None = None
    ship_to_address: str | None = None
    ship_to_city_state_zip: str | None = None
    phone: str | None = None
    delivery_date: str | None = None
    salesperson: str | None = None
    truck_id: str | None = None
    total_sale: str | None = None
    stop: str | None = None
    zone: str | None = None


@dataclass
class ReceiptTransaction:
    date: str | None = None
    payment_type: str | None = None
    amount: str | None = None


@dataclass
class ReceiptFields(FieldSet):
    """Transaction receipt; ``transactions`` doubles as the has-a-line slot."""

    kind: ClassVar[str] = "receipt"

    order_id: str | None = None
    customer_name: str | None = None
    customer_id: str | None = None
    address: str | None = None
    city_state_zip: str | None = None
    phone: str | None = None
    email: str | None = None
    printed_on: str | None = None
    cashier: str | None = None
    total: str | None = None
    transactions: list[ReceiptTransaction] = _slot(factory=list)


@dataclass
class SummaryOrder:
    order_id: str
    customer_name: str


@dataclass
class SummaryFields(FieldSet):
    """Order summary list page."""

    kind: ClassVar[str] = "summary"

    orders: list[SummaryOrder] = _slot(factory=list)
    order_count: int | None = None


@dataclass
class ManifestFields(FieldSet):
    """Delivery manifest, often scanned in landscape.

    Confidence grows with the order count and reaches 1.0 at
    ``full_confidence_orders`` orders.
    """

    kind: ClassVar[str] = "manifest"

    orders: list[SummaryOrder] = _slot(factory=list)
    order_count: int = 0
    rotated: bool = _slot(False, counted=False)
    full_confidence_orders: int = _slot(5, counted=False)

    def confidence(self) -> float:
        return min(self.order_count / max(1, self.full_confidence_orders), 1.0)

    def to_dict(self) -> dict[str, Any]:
        values = super().to_dict()
        del values["full_confidence_orders"]
        return values


@dataclass
class CdrReportFields(FieldSet):
    """Cash drawer report."""

    kind: ClassVar[str] = "cdr_report"

    cash_drawers: list[int] = _slot(factory=list)
    grand_total: str | None = None
    total_refund: str | None = None
    trans_count: int | None = None
    order_ids: list[str] = _slot(factory=list)
    payment_site: str | None = None
    post_date: str | None = None


@dataclass
class DepositTicketFields(FieldSet):
    """Bank deposit ticket; recognized by its title alone."""

    kind: ClassVar[str] = "deposit_ticket"


@dataclass
class LineItem:
    description: str
    amount: str | None = None


@dataclass
class DetailFields(FieldSet):
    """Sales detail page (finalized sale, credit or return).

    Financing slots only count toward confidence when the page carries
    financing content.
    """

    kind: ClassVar[str] = "detail"

    fulfillment: str | None = None
    order_id: str | None = None
    customer_name: str | None = None
    address: str | None = None
    city_state_zip: str | None = None
    phone: str | None = None
    delivery_date: str | None = None
    salesperson: str | None = None
    stat: str | None = None
    zone: str | None = None
    customer_code: str | None = None
    total_sale: str | None = _slot(counted=False)
    line_items: list[LineItem] = _slot(counted=False, factory=list)
    finance_company: str | None = _slot(counted=False)
    financed_amount: str | None = _slot(counted=False)
    has_financing: bool = _slot(False, counted=False)

    def slot_values(self) -> list[Any]:
        values = super().slot_values()
        if self.line_items:
            values.append(self.total_sale)
        if self.has_financing:
            values.extend([self.finance_company, self.financed_amount])
        return values


ExtractedFields = Union[
    TicketFields,
    ReceiptFields,
    SummaryFields,
    ManifestFields,
    CdrReportFields,
    DepositTicketFields,
    DetailFields,
]


@dataclass
class ExtractionOutcome:
    """Parsed page: typed fields, confidence in [0, 1] and the source text."""

    fields: ExtractedFields
    confidence: float
    raw_text: str
    document_type: str

    def record_fields(self) -> dict[str, Any]:
        """Flatten into the key-value map stored on a page extraction."""
        return {
            "document_type": self.document_type,
            "kind": self.fields.kind.upper(),
            **self.fields.to_dict(),
        }
