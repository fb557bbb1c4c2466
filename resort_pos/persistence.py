"""SQLite persistence for customers, orders, invoices and bill sequences."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol
from uuid import uuid4

from resort_pos.config import DB_PATH, DB_TIMEOUT_SECONDS
from resort_pos.constant import DEFAULT_TAX_PERCENT, FALLBACK_TAX_PERCENT
from resort_pos.errors import InvalidArgument, StoreError
from resort_pos.models import (
    BillSequence,
    Customer,
    Invoice,
    OrderLine,
    OrderRecord,
    OrderType,
    PaymentMethod,
    Service,
    ServiceTotal,
)

logger = logging.getLogger("resort_pos.persistence")


class OrderStore(Protocol):
    """What the engine needs from the shared order store."""

    def list_orders(self, customer_id: str) -> list[OrderRecord]: ...

    def save_order(self, record: OrderRecord) -> str: ...

    def allocate_bill_number(self, prefix: str) -> int: ...

    def get_tax_percent(self, service: Service) -> float: ...

    def save_invoice(self, invoice: Invoice) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS customers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    mobile TEXT NOT NULL,
    room_no TEXT,
    checkin_time TEXT NOT NULL,
    checked_out_at TEXT
);

CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    customer_id TEXT NOT NULL,
    service TEXT NOT NULL,
    subtotal INTEGER NOT NULL,
    tax_percent REAL NOT NULL,
    tax_amount INTEGER NOT NULL,
    total_amount INTEGER NOT NULL,
    payment_method TEXT NOT NULL,
    order_type TEXT,
    table_no TEXT,
    room_no TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS order_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id TEXT NOT NULL,
    line_index INTEGER NOT NULL,
    item_id TEXT NOT NULL,
    name TEXT NOT NULL,
    unit_price INTEGER NOT NULL,
    quantity INTEGER NOT NULL,
    line_total INTEGER NOT NULL,
    category TEXT NOT NULL DEFAULT '',
    FOREIGN KEY(order_id) REFERENCES orders(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS invoices (
    bill_no TEXT PRIMARY KEY,
    invoice_class TEXT NOT NULL,
    customer_id TEXT NOT NULL,
    grand_total INTEGER NOT NULL,
    total_tax INTEGER NOT NULL,
    order_ids TEXT NOT NULL,
    issued_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS invoice_services (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bill_no TEXT NOT NULL,
    service TEXT NOT NULL,
    amount INTEGER NOT NULL,
    tax INTEGER NOT NULL,
    FOREIGN KEY(bill_no) REFERENCES invoices(bill_no)
);

CREATE TABLE IF NOT EXISTS bill_sequences (
    prefix TEXT PRIMARY KEY,
    last_issued INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS tax_settings (
    service TEXT PRIMARY KEY,
    tax_percent REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_orders_customer_created
    ON orders(customer_id, created_at);

CREATE INDEX IF NOT EXISTS idx_order_items_order_id_line
    ON order_items(order_id, line_index);

CREATE INDEX IF NOT EXISTS idx_invoices_customer
    ON invoices(customer_id);
"""


class SqliteStore:
    """Order store backed by a single SQLite file shared by all devices."""

    def __init__(self, db_path: str | Path = DB_PATH, timeout: float = DB_TIMEOUT_SECONDS) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except (sqlite3.Error, OSError) as exc:
            logger.error("store unreachable during %s: %s", operation, exc)
            raise StoreError(f"{operation} failed: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("store error during %s: %s", operation, exc)
            raise StoreError(f"{operation} failed: {exc}") from exc
        finally:
            conn.close()

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with self._connection("bootstrap_schema") as conn:
            conn.executescript(_SCHEMA)

    # Customers

    def save_customer(
        self,
        name: str,
        mobile: str,
        room_no: str | None = None,
        checkin_time: datetime | None = None,
    ) -> Customer:
        if checkin_time is not None and checkin_time.tzinfo is None:
            raise InvalidArgument(f"check-in time must be timezone-aware, got {checkin_time!r}")
        customer = Customer(
            customer_id=f"JJ-{uuid4().hex[:10]}".upper(),
            name=name,
            mobile=mobile,
            checkin_time=checkin_time or _utc_now(),
            room_no=room_no,
        )
        with self._connection("save_customer") as conn:
            conn.execute(
                "INSERT INTO customers (id, name, mobile, room_no, checkin_time) VALUES (?, ?, ?, ?, ?)",
                (customer.customer_id, name, mobile, room_no, customer.checkin_time.isoformat()),
            )
        return customer

    def get_customer(self, customer_id: str) -> Customer | None:
        with self._connection("get_customer") as conn:
            row = conn.execute(
                "SELECT id, name, mobile, room_no, checkin_time, checked_out_at FROM customers WHERE id = ?",
                (customer_id,),
            ).fetchone()
        if row is None:
            return None
        return Customer(
            customer_id=row[0],
            name=row[1],
            mobile=row[2],
            room_no=row[3],
            checkin_time=datetime.fromisoformat(row[4]),
            checked_out_at=_parse_ts(row[5]),
        )

    def mark_checked_out(self, customer_id: str, when: datetime | None = None) -> None:
        with self._connection("mark_checked_out") as conn:
            conn.execute(
                "UPDATE customers SET checked_out_at = ? WHERE id = ?",
                ((when or _utc_now()).isoformat(), customer_id),
            )

    # Orders

    def save_order(self, record: OrderRecord) -> str:
        """Persist an order and its lines in one transaction."""
        with self._connection("save_order") as conn:
            conn.execute(
                """
                INSERT INTO orders (
                    id, customer_id, service, subtotal, tax_percent, tax_amount, total_amount,
                    payment_method, order_type, table_no, room_no, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.order_id,
                    record.customer_id,
                    record.service.value,
                    record.subtotal,
                    record.tax_percent,
                    record.tax_amount,
                    record.total_amount,
                    record.payment_method.value,
                    record.order_type.value if record.order_type else None,
                    record.table_no,
                    record.room_no,
                    record.timestamp.isoformat(),
                ),
            )
            conn.executemany(
                """
                INSERT INTO order_items (order_id, line_index, item_id, name, unit_price, quantity, line_total, category)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        record.order_id,
                        idx,
                        line.item_id,
                        line.name,
                        line.unit_price,
                        line.quantity,
                        line.line_total,
                        line.category,
                    )
                    for idx, line in enumerate(record.items)
                ],
            )
        return record.order_id

    def list_orders(self, customer_id: str) -> list[OrderRecord]:
        """All orders ever placed by a customer, oldest first."""
        with self._connection("list_orders") as conn:
            order_rows = conn.execute(
                """
                SELECT id, customer_id, service, subtotal, tax_percent, tax_amount, total_amount,
                       payment_method, order_type, table_no, room_no, created_at
                FROM orders WHERE customer_id = ? ORDER BY created_at, id
                """,
                (customer_id,),
            ).fetchall()
            lines_by_order: dict[str, list[OrderLine]] = {row[0]: [] for row in order_rows}
            for row in conn.execute(
                """
                SELECT oi.order_id, oi.item_id, oi.name, oi.unit_price, oi.quantity, oi.line_total, oi.category
                FROM order_items oi JOIN orders o ON o.id = oi.order_id
                WHERE o.customer_id = ? ORDER BY oi.order_id, oi.line_index
                """,
                (customer_id,),
            ):
                lines_by_order[row[0]].append(
                    OrderLine(
                        item_id=row[1],
                        name=row[2],
                        unit_price=row[3],
                        quantity=row[4],
                        line_total=row[5],
                        category=row[6],
                    )
                )

        return [
            OrderRecord(
                order_id=row[0],
                customer_id=row[1],
                service=Service(row[2]),
                items=tuple(lines_by_order[row[0]]),
                subtotal=row[3],
                tax_percent=row[4],
                tax_amount=row[5],
                total_amount=row[6],
                payment_method=PaymentMethod(row[7]),
                order_type=OrderType(row[8]) if row[8] else None,
                table_no=row[9],
                room_no=row[10],
                timestamp=datetime.fromisoformat(row[11]),
            )
            for row in order_rows
        ]

    def settle_order(self, order_id: str, payment_method: PaymentMethod) -> bool:
        """Settle a PayLater order. Returns False when there was nothing to settle."""
        if payment_method == PaymentMethod.PAY_LATER:
            raise InvalidArgument("an order cannot be settled as PayLater")
        with self._connection("settle_order") as conn:
            cur = conn.execute(
                "UPDATE orders SET payment_method = ? WHERE id = ? AND payment_method = ?",
                (payment_method.value, order_id, PaymentMethod.PAY_LATER.value),
            )
            settled = cur.rowcount == 1
        if settled:
            logger.info("order settled order_id=%s payment=%s", order_id, payment_method.value)
        return settled

    # Bill sequences

    def allocate_bill_number(self, prefix: str) -> int:
        """Atomically increment and return the counter for ``prefix``."""
        with self._connection("allocate_bill_number") as conn:
            conn.execute("BEGIN IMMEDIATE")
            # Drain the cursor so the write statement is finished before commit.
            rows = conn.execute(
                """
                INSERT INTO bill_sequences (prefix, last_issued) VALUES (?, 1)
                ON CONFLICT(prefix) DO UPDATE SET last_issued = last_issued + 1
                RETURNING last_issued
                """,
                (prefix,),
            ).fetchall()
        return int(rows[0][0])

    def get_bill_sequence(self, prefix: str) -> BillSequence | None:
        with self._connection("get_bill_sequence") as conn:
            row = conn.execute(
                "SELECT prefix, last_issued FROM bill_sequences WHERE prefix = ?", (prefix,)
            ).fetchone()
        if row is None:
            return None
        return BillSequence(prefix=row[0], last_issued=row[1])

    # Tax settings

    def get_tax_percent(self, service: Service) -> float:
        with self._connection("get_tax_percent") as conn:
            row = conn.execute(
                "SELECT tax_percent FROM tax_settings WHERE service = ?", (service.value,)
            ).fetchone()
        if row is not None:
            return float(row[0])
        return DEFAULT_TAX_PERCENT.get(service.value, FALLBACK_TAX_PERCENT)

    def set_tax_percent(self, service: Service, tax_percent: float) -> None:
        if tax_percent < 0:
            raise InvalidArgument(f"tax_percent must be non-negative, got {tax_percent!r}")
        with self._connection("set_tax_percent") as conn:
            conn.execute(
                """
                INSERT INTO tax_settings (service, tax_percent) VALUES (?, ?)
                ON CONFLICT(service) DO UPDATE SET tax_percent = excluded.tax_percent
                """,
                (service.value, tax_percent),
            )

    # Invoices

    def save_invoice(self, invoice: Invoice) -> None:
        """Append an issued invoice. Bill numbers are never overwritten."""
        with self._connection("save_invoice") as conn:
            conn.execute(
                """
                INSERT INTO invoices (bill_no, invoice_class, customer_id, grand_total, total_tax, order_ids, issued_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    invoice.bill_no,
                    invoice.invoice_class,
                    invoice.customer_id,
                    invoice.grand_total,
                    invoice.total_tax,
                    ",".join(invoice.order_ids),
                    invoice.issued_at.isoformat(),
                ),
            )
            conn.executemany(
                "INSERT INTO invoice_services (bill_no, service, amount, tax) VALUES (?, ?, ?, ?)",
                [
                    (invoice.bill_no, service.value, total.amount, total.tax)
                    for service, total in invoice.service_totals.items()
                ],
            )

    def list_invoices(self, customer_id: str) -> list[Invoice]:
        with self._connection("list_invoices") as conn:
            invoice_rows = conn.execute(
                """
                SELECT bill_no, invoice_class, customer_id, grand_total, total_tax, order_ids, issued_at
                FROM invoices WHERE customer_id = ? ORDER BY issued_at, bill_no
                """,
                (customer_id,),
            ).fetchall()
            totals: dict[str, dict[Service, ServiceTotal]] = {row[0]: {} for row in invoice_rows}
            for bill_no, service, amount, tax in conn.execute(
                """
                SELECT s.bill_no, s.service, s.amount, s.tax
                FROM invoice_services s JOIN invoices i ON i.bill_no = s.bill_no
                WHERE i.customer_id = ? ORDER BY s.id
                """,
                (customer_id,),
            ):
                totals[bill_no][Service(service)] = ServiceTotal(amount=amount, tax=tax)

        return [
            Invoice(
                bill_no=row[0],
                invoice_class=row[1],
                customer_id=row[2],
                grand_total=row[3],
                total_tax=row[4],
                order_ids=tuple(oid for oid in row[5].split(",") if oid),
                issued_at=datetime.fromisoformat(row[6]),
                service_totals=totals[row[0]],
            )
            for row in invoice_rows
        ]
