"""Printable bill and kitchen ticket layouts, plus on-screen previews."""

from __future__ import annotations

import logging
import re
import textwrap
from datetime import datetime
from typing import Mapping, Protocol, Sequence

from rich.text import Text

from resort_pos.config import KOT_ITEM_WIDTH, KOT_QTY_WIDTH, RECEIPT_WIDTH
from resort_pos.constant import RESORT_DETAILS
from resort_pos.errors import InvalidArgument, MalformedRecord
from resort_pos.models import Customer, Invoice, OrderRecord, OrderType

logger = logging.getLogger("resort_pos.rendering")

_UNITS = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

_DASHES = "-" * RECEIPT_WIDTH
_ITEM_COL, _RATE_COL, _QTY_COL, _AMOUNT_COL = 13, 7, 4, 8
_TOTAL_LINE = re.compile(r"^TOTAL\s+(\d+)$", re.MULTILINE)


class TicketItem(Protocol):
    name: str
    quantity: int


def _words(num: int) -> str:
    if num < 20:
        return _UNITS[num]
    if num < 100:
        return _TENS[num // 10] + (f" {_UNITS[num % 10]}" if num % 10 else "")
    if num < 1000:
        return f"{_UNITS[num // 100]} Hundred" + (f" And {_words(num % 100)}" if num % 100 else "")
    if num < 100_000:
        return f"{_words(num // 1000)} Thousand" + (f" {_words(num % 1000)}" if num % 1000 else "")
    if num < 10_000_000:
        return f"{_words(num // 100_000)} Lakh" + (f" {_words(num % 100_000)}" if num % 100_000 else "")
    return f"{_words(num // 10_000_000)} Crore" + (f" {_words(num % 10_000_000)}" if num % 10_000_000 else "")


def amount_to_words(amount: int | float) -> str:
    """Spell out the whole-rupee part of ``amount`` using lakh/crore grouping."""
    if amount < 0:
        raise InvalidArgument(f"cannot spell a negative amount: {amount!r}")
    whole = int(amount)
    if whole == 0:
        return "Zero Only"
    return f"{_words(whole)} Only"


def format_bill_date(value: datetime) -> str:
    return value.strftime("%d-%m-%Y")


def format_bill_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    meridiem = "PM" if value.hour >= 12 else "AM"
    return f"{hour}:{value.minute:02d}:{value.second:02d} {meridiem}"


def _center(text: str) -> str:
    return text.center(RECEIPT_WIDTH).rstrip()


def _two_col(left: str, right: str) -> str:
    gap = max(1, RECEIPT_WIDTH - len(left) - len(right))
    return f"{left}{' ' * gap}{right}"


def _item_row(name: str, rate: object, qty: object, amount: object) -> str:
    return (
        f"{name[:_ITEM_COL]:<{_ITEM_COL}}"
        f"{str(rate):>{_RATE_COL}}"
        f"{str(qty):>{_QTY_COL}}"
        f"{str(amount):>{_AMOUNT_COL}}"
    )


def _item_rows(name: str, rate: int, qty: int, amount: int) -> list[str]:
    """One row per line item, or two when the figures overflow their columns."""
    # Each numeric column keeps at least one leading space as a separator.
    if len(str(rate)) < _RATE_COL and len(str(qty)) < _QTY_COL and len(str(amount)) < _AMOUNT_COL:
        return [_item_row(name, rate, qty, amount)]
    return [name[:RECEIPT_WIDTH], _two_col(f"  {rate} x {qty}", str(amount))]


def _check_invoice(invoice: Invoice, customer: Customer) -> None:
    missing = [
        name
        for name, value in (
            ("bill_no", invoice.bill_no),
            ("service_totals", invoice.service_totals),
            ("grand_total", invoice.grand_total),
            ("total_tax", invoice.total_tax),
            ("issued_at", invoice.issued_at),
            ("customer.name", customer.name),
        )
        if value is None or value == "" or value == {}
    ]
    if missing:
        logger.error("cannot render invoice %r: missing %s", invoice.bill_no, ", ".join(missing))
        raise MalformedRecord(f"invoice {invoice.bill_no!r} is missing {', '.join(missing)}")
    if sum(total.amount for total in invoice.service_totals.values()) != invoice.grand_total:
        logger.error("cannot render invoice %s: service totals do not match grand total", invoice.bill_no)
        raise MalformedRecord(f"invoice {invoice.bill_no} service totals do not add up to {invoice.grand_total}")


def render_invoice_text(
    invoice: Invoice, customer: Customer, header: Mapping[str, str] = RESORT_DETAILS
) -> str:
    """Lay an invoice out for a monospace thermal feed."""
    _check_invoice(invoice, customer)

    lines = [_center(header["name"])]
    lines.extend(_center(part) for part in textwrap.wrap(header.get("address", ""), RECEIPT_WIDTH))
    if header.get("gstin"):
        lines.append(_center(f"GSTIN: {header['gstin']}"))
    if header.get("mobile"):
        lines.append(_center(f"Ph: {header['mobile']}"))
    lines += [
        _DASHES,
        _center(f"{invoice.invoice_class.upper()} BILL"),
        _DASHES,
        f"Bill No: {invoice.bill_no}",
        _two_col(f"Date: {format_bill_date(invoice.issued_at)}", format_bill_time(invoice.issued_at)),
        f"Name: {customer.name}",
    ]
    if customer.mobile:
        lines.append(f"Mobile: {customer.mobile}")
    if customer.room_no:
        lines.append(f"Room: {customer.room_no}")
    lines += [_DASHES, _item_row("ITEM", "RATE", "QTY", "AMOUNT"), _DASHES]

    for service, total in invoice.service_totals.items():
        lines.extend(_item_rows(service.value, total.taxable, 1, total.taxable))

    lines.append(_DASHES)
    if invoice.total_tax > 0:
        lines.append(_two_col("Tax", str(invoice.total_tax)))
        lines.append(_DASHES)
    lines += [
        _two_col("TOTAL", str(invoice.grand_total)),
        _DASHES,
    ]
    lines.extend(textwrap.wrap(f"Rupees {amount_to_words(invoice.grand_total)}", RECEIPT_WIDTH))
    lines += [
        _DASHES,
        "",
        "",
        f"{'Authorised Signatory':>{RECEIPT_WIDTH}}",
        _center(f"For {header['name']}"),
        "",
    ]
    return "\n".join(lines) + "\n"


def parse_invoice_total(text: str) -> int:
    """Read the TOTAL amount back out of a rendered invoice."""
    match = _TOTAL_LINE.search(text)
    if match is None:
        raise MalformedRecord("rendered invoice has no TOTAL line")
    return int(match.group(1))


def _kot_time(value: datetime) -> str:
    return value.strftime("%d/%m/%Y, %I:%M %p").replace("AM", "am").replace("PM", "pm")


def render_kitchen_ticket(
    items: Sequence[TicketItem],
    order_type: OrderType | None,
    table_no: str | None = None,
    room_no: str | None = None,
    timestamp: datetime | None = None,
) -> str:
    """Kitchen order ticket: item names and quantities, no prices."""
    if timestamp is None:
        timestamp = datetime.now()
    rows = []
    total_items = 0
    for item in items:
        quantity = getattr(item, "quantity", None)
        if not isinstance(quantity, int) or quantity < 1:
            logger.error("cannot render KOT line %r: bad quantity %r", item, quantity)
            raise MalformedRecord(f"KOT item has no valid quantity: {item!r}")
        name = getattr(item, "name", None) or "Item"
        rows.append(f"{name:<{KOT_ITEM_WIDTH}} {str(quantity):>{KOT_QTY_WIDTH}}")
        total_items += quantity

    if order_type == OrderType.DINING:
        kind = f"DINING (Table {table_no or 'N/A'})"
    else:
        kind = f"ROOM SERVICE ({room_no or 'N/A'})"

    lines = [
        "",
        _DASHES,
        "      KITCHEN ORDER (KOT)      ",
        _DASHES,
        f"Type:  {kind}",
        f"Time:  {_kot_time(timestamp)}",
        _DASHES,
        "ITEM                    QTY",
        _DASHES,
        *rows,
        _DASHES,
        f"        TOTAL ITEMS: {total_items}",
        _DASHES,
    ]
    return "\n".join(lines) + "\n\n\n\n"


def render_order_ticket(record: OrderRecord, items: Sequence[TicketItem] | None = None) -> str:
    """KOT for an order; counter sales print as dine-in at a table named after the service."""
    return render_kitchen_ticket(
        record.items if items is None else items,
        record.order_type or OrderType.DINING,
        table_no=record.table_no or record.service.value,
        room_no=record.room_no,
        timestamp=record.timestamp,
    )


def badge_style(invoice_class: str) -> str:
    """Return a consistent badge style for invoice classes."""
    if invoice_class == "Bar":
        return "bold #ffffff on #b23a48"
    return "bold #0b1f0f on #5fbf72"


def format_invoice_preview(invoice: Invoice) -> Text:
    """Render an invoice summary for on-screen receipts."""
    text = Text()
    text.append(f" {invoice.invoice_class} ", style=badge_style(invoice.invoice_class))
    text.append(f" {invoice.bill_no}", style="bold")
    text.append(f"  {format_bill_date(invoice.issued_at)} {format_bill_time(invoice.issued_at)}\n")
    for service, total in invoice.service_totals.items():
        text.append(f"  {service.value:<16}{total.amount:>10}\n")
        if total.tax:
            text.append(f"    (Inc. {total.tax} tax)\n", style="dim")
    text.append(f"  {'Total':<16}{invoice.grand_total:>10}", style="bold")
    return text
