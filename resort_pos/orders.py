"""Turning a cart snapshot into a priced order record."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence
from uuid import uuid4

from resort_pos.constant import KITCHEN_CATEGORY, LOCATION_REQUIRED_SERVICES
from resort_pos.errors import EmptyCart, InvalidArgument, MissingLocation
from resort_pos.models import CartEntry, OrderLine, OrderRecord, OrderType, PaymentMethod, Service
from resort_pos.persistence import OrderStore
from resort_pos.tax import calculate_tax

logger = logging.getLogger("resort_pos.orders")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _check_location(service: Service, order_type: OrderType | None, table_no: str | None, room_no: str | None) -> None:
    if service.value not in LOCATION_REQUIRED_SERVICES:
        return
    if order_type == OrderType.ROOM:
        if _blank(room_no):
            raise MissingLocation(f"{service.value} room-service order needs a room number")
        return
    if _blank(table_no):
        raise MissingLocation(f"{service.value} dine-in order needs a table number")


def build_order(
    customer_id: str,
    service: Service,
    snapshot: Sequence[CartEntry],
    tax_percent: float,
    payment_method: PaymentMethod,
    *,
    order_type: OrderType | None = None,
    table_no: str | None = None,
    room_no: str | None = None,
    now: datetime | None = None,
) -> OrderRecord:
    """Price a cart snapshot into an order. The caller persists it."""
    if not snapshot:
        raise EmptyCart(f"cannot place an empty {service.value} order")
    if now is not None and now.tzinfo is None:
        raise InvalidArgument(f"order time must be timezone-aware, got {now!r}")
    if service.value in LOCATION_REQUIRED_SERVICES and order_type is None:
        order_type = OrderType.DINING
    _check_location(service, order_type, table_no, room_no)

    lines = tuple(
        OrderLine(
            item_id=entry.base_item_id,
            name=entry.name,
            unit_price=entry.unit_price,
            quantity=entry.quantity,
            line_total=entry.line_total,
            category=entry.category,
        )
        for entry in snapshot
    )
    breakdown = calculate_tax(sum(line.line_total for line in lines), tax_percent)

    return OrderRecord(
        order_id=uuid4().hex,
        customer_id=customer_id,
        service=service,
        items=lines,
        subtotal=breakdown.subtotal,
        tax_percent=breakdown.tax_percent,
        tax_amount=breakdown.tax_amount,
        total_amount=breakdown.total,
        payment_method=payment_method,
        timestamp=now or _utc_now(),
        order_type=order_type,
        table_no=None if order_type == OrderType.ROOM else table_no,
        room_no=room_no if order_type == OrderType.ROOM else None,
    )


def place_order(
    store: OrderStore,
    customer_id: str,
    service: Service,
    snapshot: Sequence[CartEntry],
    payment_method: PaymentMethod,
    **extra: object,
) -> OrderRecord:
    """Build an order at the service's stored tax rate and save it."""
    tax_percent = store.get_tax_percent(service)
    record = build_order(customer_id, service, snapshot, tax_percent, payment_method, **extra)  # type: ignore[arg-type]
    store.save_order(record)
    logger.info(
        "order saved order_id=%s service=%s total=%s payment=%s",
        record.order_id,
        service.value,
        record.total_amount,
        payment_method.value,
    )
    return record


def kitchen_items(record: OrderRecord) -> list[OrderLine]:
    """Lines that must be routed to the kitchen on a KOT."""
    return [line for line in record.items if line.category.lower() == KITCHEN_CATEGORY]
