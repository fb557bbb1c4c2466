"""Domain models for the resort order, tax and invoice engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Service(str, Enum):
    """Service modules that place orders against a guest."""

    BAKERY = "Bakery"
    BAR = "Bar"
    JUICE = "Juice"
    RESTAURANT = "Restaurant"
    MASSAGE = "Massage"
    POOL = "Pool"
    GAMES = "Games"
    COMBO = "Combo"
    FUNCTION_HALL = "Function Hall"
    THEATER = "Theater"
    ROOM = "Room"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    QR = "QR"
    CARD = "Card"
    PAY_LATER = "PayLater"


class OrderType(str, Enum):
    DINING = "dining"
    ROOM = "room"


@dataclass(frozen=True)
class ItemKey:
    """Cart key: a catalog item, optionally sold in a serving variant."""

    base_item_id: str
    variant: str | None = None


@dataclass(frozen=True)
class CatalogItem:
    """A priced menu item supplied by a service module."""

    item_id: str
    name: str
    price: int
    category: str = ""
    shot_price: int | None = None


@dataclass(frozen=True)
class CartEntry:
    """A cart row resolved against the catalog."""

    item_key: str
    base_item_id: str
    name: str
    quantity: int
    unit_price: int
    category: str = ""
    serving_variant: str | None = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class TaxBreakdown:
    subtotal: int
    tax_percent: float
    tax_amount: int
    total: int


@dataclass(frozen=True)
class OrderLine:
    item_id: str
    name: str
    unit_price: int
    quantity: int
    line_total: int
    category: str = ""


@dataclass(frozen=True)
class OrderRecord:
    """A priced, persisted order placed by one service module."""

    order_id: str
    customer_id: str
    service: Service
    items: tuple[OrderLine, ...]
    subtotal: int
    tax_percent: float
    tax_amount: int
    total_amount: int
    payment_method: PaymentMethod
    timestamp: datetime
    order_type: OrderType | None = None
    table_no: str | None = None
    room_no: str | None = None


@dataclass(frozen=True)
class Customer:
    """A checked-in guest; the visit starts at ``checkin_time``."""

    customer_id: str
    name: str
    mobile: str
    checkin_time: datetime
    room_no: str | None = None
    checked_out_at: datetime | None = None


@dataclass(frozen=True)
class InvoiceClass:
    """A partition of services billed under one bill-number prefix."""

    name: str
    prefix: str
    services: frozenset[Service] | None = None

    def matches(self, service: Service) -> bool:
        if self.services is None:
            return True
        return service in self.services


@dataclass(frozen=True)
class ServiceTotal:
    amount: int
    tax: int

    @property
    def taxable(self) -> int:
        return self.amount - self.tax


@dataclass(frozen=True)
class Invoice:
    """An issued bill. Never mutated once created."""

    bill_no: str
    invoice_class: str
    service_totals: dict[Service, ServiceTotal]
    grand_total: int
    total_tax: int
    issued_at: datetime
    customer_id: str = ""
    order_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BillSequence:
    prefix: str
    last_issued: int
