"""
Client-side reconciliation of pushed change events.

The reconciler owns the local product collection and applies change events
to it as incremental patches. It is not thread-safe: all calls are expected
from one event loop, in the order events were received.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from inventory_sync.schemas.events import (
    ChangeEvent,
    ProductAdded,
    ProductDeleted,
    ProductUpdated,
    QuantityAdjusted,
)
from inventory_sync.schemas.product import ProductResponse

TOAST_LIFETIME = 4.0
COLLAPSE_WINDOW = 5.0


@dataclass
class Toast:
    message: str
    shown_at: float


class InventoryReconciler:
    """Local, insertion-ordered view of the inventory plus UI state."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        toast_lifetime: float = TOAST_LIFETIME,
        collapse_window: float = COLLAPSE_WINDOW,
    ) -> None:
        self._clock = clock
        self._toast_lifetime = toast_lifetime
        self._collapse_window = collapse_window
        self._products: dict[int, ProductResponse] = {}
        self._toasts: list[Toast] = []
        self._last_shown: dict[str, float] = {}
        self.loading = False
        self.error = ""

    @property
    def products(self) -> list[ProductResponse]:
        return list(self._products.values())

    def get(self, product_id: int) -> Optional[ProductResponse]:
        return self._products.get(product_id)

    def replace_all(self, products: Iterable[ProductResponse]) -> None:
        """Install an authoritative full load, discarding all local state."""
        self._products = {product.id: product for product in products}

    def clear(self) -> None:
        self._products = {}

    def apply(self, event: ChangeEvent) -> bool:
        """
        Patch local state with one change event.

        Every patch is idempotent for a given payload, so duplicated
        deliveries are harmless.

        Returns:
            True if local state changed
        """
        product_id = event.product.id

        if isinstance(event, ProductAdded):
            # the HTTP response and the broadcast echo may both arrive
            if product_id in self._products:
                return False
            self._products[product_id] = event.product
            return True

        if isinstance(event, ProductUpdated):
            current = self._products.get(product_id)
            if current is None or current == event.product:
                return False
            self._products[product_id] = event.product
            return True

        if isinstance(event, ProductDeleted):
            return self._products.pop(product_id, None) is not None

        if isinstance(event, QuantityAdjusted):
            current = self._products.get(product_id)
            if current is None:
                return False
            patch = {"qty": event.product.qty, "status": event.product.status}
            if current.qty == patch["qty"] and current.status == patch["status"]:
                return False
            self._products[product_id] = current.model_copy(update=patch)
            return True

        raise TypeError(f"Unsupported change event {type(event).__name__}")

    # Notifications

    @property
    def toasts(self) -> list[str]:
        """Messages currently on screen."""
        self._expire()
        return [toast.message for toast in self._toasts]

    def notify(self, message: str) -> bool:
        """
        Show a notification unless the same text was shown within the
        collapse window.

        Returns:
            True if a new toast was shown
        """
        now = self._clock()
        self._expire(now)

        last = self._last_shown.get(message)
        if last is not None and now - last < self._collapse_window:
            return False

        self._last_shown[message] = now
        self._toasts.append(Toast(message, now))
        return True

    def _expire(self, now: Optional[float] = None) -> None:
        now = self._clock() if now is None else now
        self._toasts = [t for t in self._toasts if now - t.shown_at < self._toast_lifetime]
        self._last_shown = {
            message: shown_at
            for message, shown_at in self._last_shown.items()
            if now - shown_at < self._collapse_window
        }
