"""Checkout: aggregate a visit's orders into split invoices."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Sequence

from resort_pos.constant import INVOICE_CLASSES
from resort_pos.errors import CheckoutCancelled, EngineError, InvalidArgument, MalformedRecord
from resort_pos.models import Customer, Invoice, InvoiceClass, OrderRecord, PaymentMethod, Service, ServiceTotal
from resort_pos.persistence import OrderStore, SqliteStore
from resort_pos.sequencer import BillSequencer

logger = logging.getLogger("resort_pos.checkout")


class CheckoutState(str, Enum):
    FETCHING = "fetching"
    VALIDATING = "validating"
    AGGREGATING = "aggregating"
    SEQUENCING = "sequencing"
    DONE = "done"
    BLOCKED = "blocked"
    FAILED = "failed"


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a checkout."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CheckoutCancelled("checkout cancelled by caller")


@dataclass
class CheckoutResult:
    state: CheckoutState
    invoices: list[Invoice] = field(default_factory=list)
    orders: list[OrderRecord] = field(default_factory=list)
    pending_count: int = 0

    @property
    def blocked(self) -> bool:
        return self.state == CheckoutState.BLOCKED

    def invoice_for(self, class_name: str) -> Invoice | None:
        for invoice in self.invoices:
            if invoice.invoice_class == class_name:
                return invoice
        return None


def default_invoice_classes() -> list[InvoiceClass]:
    """Invoice classes as configured in :data:`INVOICE_CLASSES`."""
    classes = []
    for raw in INVOICE_CLASSES:
        services = raw["services"]
        classes.append(
            InvoiceClass(
                name=str(raw["name"]),
                prefix=str(raw["prefix"]),
                services=frozenset(Service(s) for s in services) if services is not None else None,  # type: ignore[union-attr]
            )
        )
    return classes


def visit_orders(orders: Sequence[OrderRecord], checkin_time: datetime) -> list[OrderRecord]:
    """Orders placed since the customer's last check-in."""
    if checkin_time.tzinfo is None:
        raise InvalidArgument(f"check-in time must be timezone-aware, got {checkin_time!r}")
    for order in orders:
        if order.timestamp.tzinfo is None:
            logger.error("order %s has a naive timestamp %s", order.order_id, order.timestamp)
            raise MalformedRecord(f"order {order.order_id} has no timezone on its timestamp")
    return [order for order in orders if order.timestamp >= checkin_time]


def service_totals(orders: Sequence[OrderRecord]) -> dict[Service, ServiceTotal]:
    """Sum total and tax per service, keeping first-seen service order."""
    sums: dict[Service, tuple[int, int]] = {}
    for order in orders:
        amount, tax = sums.get(order.service, (0, 0))
        sums[order.service] = (amount + order.total_amount, tax + order.tax_amount)
    return {service: ServiceTotal(amount=amount, tax=tax) for service, (amount, tax) in sums.items()}


def partition_services(
    totals: dict[Service, ServiceTotal], classes: Sequence[InvoiceClass]
) -> list[tuple[InvoiceClass, dict[Service, ServiceTotal]]]:
    """Assign each service to the first matching class. Empty classes are dropped."""
    buckets: dict[str, dict[Service, ServiceTotal]] = {cls.name: {} for cls in classes}
    for service, total in totals.items():
        for cls in classes:
            if cls.matches(service):
                buckets[cls.name][service] = total
                break
        else:
            raise InvalidArgument(f"no invoice class accepts service {service.value!r}")
    return [(cls, buckets[cls.name]) for cls in classes if buckets[cls.name]]


class CheckoutAggregator:
    """Runs one checkout attempt per call.

    Retries must call :meth:`checkout` again from the start; bill numbers are
    only allocated after validation succeeds, so a blocked, cancelled or
    failed fetch leaves every counter untouched.
    """

    def __init__(
        self,
        store: OrderStore,
        sequencer: BillSequencer | None = None,
        invoice_classes: Sequence[InvoiceClass] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.sequencer = sequencer or BillSequencer(store)
        self.invoice_classes = list(invoice_classes) if invoice_classes is not None else default_invoice_classes()
        if not self.invoice_classes:
            raise InvalidArgument("at least one invoice class is required")
        prefixes = [cls.prefix for cls in self.invoice_classes]
        if len(set(prefixes)) != len(prefixes):
            raise InvalidArgument(f"invoice class prefixes must be distinct: {prefixes}")
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = CheckoutState.FETCHING

    def _transition(self, customer: Customer, state: CheckoutState) -> None:
        logger.debug("checkout customer=%s %s -> %s", customer.customer_id, self.state.value, state.value)
        self.state = state

    def checkout(self, customer: Customer, cancel_token: CancellationToken | None = None) -> CheckoutResult:
        self.state = CheckoutState.FETCHING
        try:
            return self._run(customer, cancel_token)
        except CheckoutCancelled:
            logger.info("checkout cancelled customer=%s state=%s", customer.customer_id, self.state.value)
            raise
        except EngineError:
            self._transition(customer, CheckoutState.FAILED)
            raise

    def _run(self, customer: Customer, cancel_token: CancellationToken | None) -> CheckoutResult:
        orders = visit_orders(self.store.list_orders(customer.customer_id), customer.checkin_time)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        self._transition(customer, CheckoutState.VALIDATING)
        pending = [order for order in orders if order.payment_method == PaymentMethod.PAY_LATER]
        if pending:
            self._transition(customer, CheckoutState.BLOCKED)
            logger.warning(
                "checkout blocked customer=%s pending_pay_later=%d", customer.customer_id, len(pending)
            )
            return CheckoutResult(state=CheckoutState.BLOCKED, orders=orders, pending_count=len(pending))

        self._transition(customer, CheckoutState.AGGREGATING)
        partitions = partition_services(service_totals(orders), self.invoice_classes)
        if not partitions:
            self._transition(customer, CheckoutState.DONE)
            logger.info("checkout with no charges customer=%s", customer.customer_id)
            return CheckoutResult(state=CheckoutState.DONE, orders=orders)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        self._transition(customer, CheckoutState.SEQUENCING)
        bill_numbers = [self.sequencer.next_bill_number(cls.prefix) for cls, _ in partitions]
        issued_at = self.clock()
        invoices = []
        for (cls, totals), bill_no in zip(partitions, bill_numbers):
            invoice = Invoice(
                bill_no=bill_no,
                invoice_class=cls.name,
                service_totals=totals,
                grand_total=sum(total.amount for total in totals.values()),
                total_tax=sum(total.tax for total in totals.values()),
                issued_at=issued_at,
                customer_id=customer.customer_id,
                order_ids=tuple(order.order_id for order in orders if order.service in totals),
            )
            self.store.save_invoice(invoice)
            invoices.append(invoice)
            logger.info(
                "invoice issued bill_no=%s class=%s total=%s customer=%s",
                bill_no,
                cls.name,
                invoice.grand_total,
                customer.customer_id,
            )

        self._transition(customer, CheckoutState.DONE)
        return CheckoutResult(state=CheckoutState.DONE, invoices=invoices, orders=orders)


def check_out_customer(
    store: SqliteStore, customer_id: str, cancel_token: CancellationToken | None = None
) -> CheckoutResult:
    """Check out a stored customer, marking them checked out when billing completes."""
    customer = store.get_customer(customer_id)
    if customer is None:
        raise InvalidArgument(f"unknown customer {customer_id!r}")
    if customer.checked_out_at is not None:
        logger.warning("checkout refused customer=%s already checked out at %s", customer_id, customer.checked_out_at)
        raise InvalidArgument(f"customer {customer_id!r} is already checked out")
    result = CheckoutAggregator(store).checkout(customer, cancel_token)
    if result.state == CheckoutState.DONE:
        store.mark_checked_out(customer_id)
    return result
