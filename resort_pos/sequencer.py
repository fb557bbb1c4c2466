"""Bill number allocation per invoice-class prefix."""

from __future__ import annotations

import logging
from typing import Protocol

from resort_pos.errors import InvalidArgument, SequenceUnavailable, StoreError

logger = logging.getLogger("resort_pos.sequencer")


class CounterStore(Protocol):
    def allocate_bill_number(self, prefix: str) -> int: ...


def format_bill_no(prefix: str, number: int) -> str:
    return f"{prefix}-{number}"


def parse_bill_no(bill_no: str) -> tuple[str, int]:
    """Split ``"B-42"`` into ``("B", 42)``."""
    prefix, sep, number = bill_no.rpartition("-")
    if not sep or not prefix or not number.isdigit():
        raise InvalidArgument(f"not a bill number: {bill_no!r}")
    return prefix, int(number)


class BillSequencer:
    """Hands out strictly increasing bill numbers.

    The increment happens in a single atomic store operation, so two devices
    checking out at the same moment can never receive the same number.
    """

    def __init__(self, store: CounterStore) -> None:
        self.store = store

    def next_bill_number(self, prefix: str) -> str:
        if not prefix or "-" in prefix:
            raise InvalidArgument(f"invalid bill prefix {prefix!r}")
        try:
            number = self.store.allocate_bill_number(prefix)
        except StoreError as exc:
            raise SequenceUnavailable(f"cannot allocate a {prefix} bill number: {exc}") from exc
        if number < 1:
            raise SequenceUnavailable(f"counter for {prefix} returned {number}")
        bill_no = format_bill_no(prefix, number)
        logger.info("allocated bill number %s", bill_no)
        return bill_no
