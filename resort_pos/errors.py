"""Exception taxonomy for the billing engine."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine failures."""


class InvalidArgument(EngineError, ValueError):
    """Bad amount or tax input. Rejected, never clamped."""


class EmptyCart(EngineError):
    """An order was requested from a cart with no resolvable entries."""


class MissingLocation(EngineError):
    """A dine-in or room-service order was placed without a table or room."""


class StoreError(EngineError):
    """The order store could not be read or written. Safe to retry."""


class SequenceUnavailable(StoreError):
    """No bill number could be allocated."""


class MalformedRecord(EngineError):
    """A record is missing fields required to render it."""


class CheckoutCancelled(EngineError):
    """The caller cancelled a checkout before any bill number was allocated."""
