"""Cart keys, the price catalog and the per-module cart ledger."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from resort_pos.constant import ITEM_KEY_ESCAPE, ITEM_KEY_SEPARATOR, SHOT_VARIANT, SHOTS_PER_BOTTLE
from resort_pos.errors import InvalidArgument
from resort_pos.models import CartEntry, CatalogItem, ItemKey
from resort_pos.tax import round_rupees

logger = logging.getLogger("resort_pos.cart")


def _escape(part: str) -> str:
    return part.replace(ITEM_KEY_ESCAPE, ITEM_KEY_ESCAPE * 2).replace(
        ITEM_KEY_SEPARATOR, ITEM_KEY_ESCAPE + ITEM_KEY_SEPARATOR
    )


def encode_item_key(key: ItemKey) -> str:
    """Format a key as ``base`` or ``base:variant`` with the separator escaped."""
    if key.variant is None:
        return _escape(key.base_item_id)
    return f"{_escape(key.base_item_id)}{ITEM_KEY_SEPARATOR}{_escape(key.variant)}"


def decode_item_key(raw: str) -> ItemKey:
    """Parse the string produced by :func:`encode_item_key`."""
    parts: list[str] = []
    current: list[str] = []
    chars = iter(raw)
    for char in chars:
        if char == ITEM_KEY_ESCAPE:
            escaped = next(chars, None)
            if escaped is None:
                raise InvalidArgument(f"dangling escape in item key {raw!r}")
            current.append(escaped)
        elif char == ITEM_KEY_SEPARATOR:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))

    if len(parts) > 2 or not parts[0]:
        raise InvalidArgument(f"invalid item key {raw!r}")
    if len(parts) == 1:
        return ItemKey(parts[0])
    return ItemKey(parts[0], parts[1] or None)


def _as_key(key: ItemKey | str) -> ItemKey:
    if isinstance(key, ItemKey):
        return key
    return decode_item_key(key)


class Catalog:
    """Menu items offered by one module; authoritative for prices."""

    def __init__(self, items: Iterable[CatalogItem]) -> None:
        self._items = {item.item_id: item for item in items}

    def get(self, item_id: str) -> CatalogItem | None:
        return self._items.get(item_id)

    def price_for(self, key: ItemKey) -> int:
        """Unit price for a key; shots fall back to a twelfth of the bottle."""
        item = self._items[key.base_item_id]
        if key.variant == SHOT_VARIANT:
            if item.shot_price:
                return round_rupees(Decimal(str(item.shot_price)))
            return round_rupees(Decimal(str(item.price)) / SHOTS_PER_BOTTLE)
        return round_rupees(Decimal(str(item.price)))

    def name_for(self, key: ItemKey) -> str:
        item = self._items[key.base_item_id]
        if key.variant:
            return f"{item.name} ({key.variant})"
        return item.name


class CartLedger:
    """Item quantities for the active module screen.

    Quantities are always >= 1; a key whose count drops to zero is removed.
    Prices are not held here, they are resolved from the catalog on snapshot.
    """

    def __init__(self) -> None:
        self._quantities: dict[ItemKey, int] = {}

    def add(self, key: ItemKey | str) -> int:
        item_key = _as_key(key)
        quantity = self._quantities.get(item_key, 0) + 1
        self._quantities[item_key] = quantity
        return quantity

    def remove(self, key: ItemKey | str) -> int:
        item_key = _as_key(key)
        quantity = self._quantities.get(item_key, 0) - 1
        if quantity <= 0:
            self._quantities.pop(item_key, None)
            return 0
        self._quantities[item_key] = quantity
        return quantity

    def quantity(self, key: ItemKey | str) -> int:
        return self._quantities.get(_as_key(key), 0)

    def count(self) -> int:
        """Total number of units in the cart."""
        return sum(self._quantities.values())

    def clear(self) -> None:
        self._quantities.clear()

    @property
    def is_empty(self) -> bool:
        return not self._quantities

    def keys(self) -> list[str]:
        return [encode_item_key(key) for key in self._quantities]

    def snapshot(self, catalog: Catalog) -> list[CartEntry]:
        """Resolve cart rows against the current catalog, dropping stale items."""
        entries: list[CartEntry] = []
        for key, quantity in self._quantities.items():
            item = catalog.get(key.base_item_id)
            if item is None:
                logger.warning("dropping stale cart item %s", encode_item_key(key))
                continue
            entries.append(
                CartEntry(
                    item_key=encode_item_key(key),
                    base_item_id=key.base_item_id,
                    name=catalog.name_for(key),
                    quantity=quantity,
                    unit_price=catalog.price_for(key),
                    category=item.category,
                    serving_variant=key.variant,
                )
            )
        return entries

    def total(self, catalog: Catalog) -> int:
        return sum(entry.line_total for entry in self.snapshot(catalog))
