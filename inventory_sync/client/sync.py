from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError as SchemaError

from inventory_sync.client.api import Image, InventoryClient
from inventory_sync.client.channel import BroadcastConnection
from inventory_sync.client.reconciler import InventoryReconciler
from inventory_sync.exceptions import InventoryError
from inventory_sync.schemas.events import (
    CHANGES_TOPIC,
    NOTIFICATIONS_TOPIC,
    ProductAdded,
    parse_change_event,
)
from inventory_sync.schemas.product import ProductResponse

logger = logging.getLogger(__name__)


class InventorySync:
    """
    Keeps a local inventory view in sync with the server.

    Loads the full product list once on start, then patches it from pushed
    change events. Notifications only feed the toast list. A change event
    missed while disconnected stays missed until the next ``reload()``.
    """

    def __init__(
        self,
        client: InventoryClient,
        connection: BroadcastConnection,
        reconciler: Optional[InventoryReconciler] = None,
    ) -> None:
        self.client = client
        self.connection = connection
        self.reconciler = reconciler or InventoryReconciler()

    @property
    def products(self) -> list[ProductResponse]:
        return self.reconciler.products

    async def start(self) -> None:
        await self.connection.subscribe(CHANGES_TOPIC, self._on_change)
        await self.connection.subscribe(NOTIFICATIONS_TOPIC, self._on_notification)
        self.connection.start()
        await self.reload()

    async def stop(self) -> None:
        await self.connection.stop()
        await self.connection.unsubscribe(CHANGES_TOPIC, self._on_change)
        await self.connection.unsubscribe(NOTIFICATIONS_TOPIC, self._on_notification)

    async def reload(self) -> None:
        """Replace local state with a full load from the server."""
        self.reconciler.loading = True
        self.reconciler.error = ""
        try:
            products = await self.client.list_products()
        except InventoryError as e:
            self._fail(f"Failed to fetch products: {e}")
            self.reconciler.clear()
        else:
            self.reconciler.replace_all(products)
        finally:
            self.reconciler.loading = False

    # Mutations. Local state follows from the broadcast echo, except for
    # creation where the response is applied at once.

    async def create_product(self, name: str, price: float, qty: int, image: Image) -> Optional[ProductResponse]:
        try:
            product = await self.client.create_product(name, price, qty, image)
        except InventoryError as e:
            self._fail(f"Failed to create product: {e}")
            return None
        self.reconciler.apply(ProductAdded(product=product))
        return product

    async def update_product(
        self, product_id: int, name: str, price: float, qty: int, image: Optional[Image] = None
    ) -> bool:
        try:
            await self.client.update_product(product_id, name, price, qty, image)
        except InventoryError as e:
            self._fail(f"Failed to update product: {e}")
            return False
        return True

    async def delete_product(self, product_id: int) -> bool:
        try:
            await self.client.delete_product(product_id)
        except InventoryError as e:
            self._fail(f"Failed to delete product: {e}")
            return False
        return True

    async def adjust_quantity(self, product_id: int, delta: int) -> bool:
        try:
            await self.client.adjust_quantity(product_id, delta)
        except InventoryError as e:
            self._fail(f"Failed to adjust quantity: {e}")
            return False
        return True

    # Push handlers

    def _on_change(self, data: Any) -> None:
        try:
            event = parse_change_event(data)
        except SchemaError as e:
            logger.warning(f"Ignoring malformed change event: {e}")
            return
        self.reconciler.apply(event)

    def _on_notification(self, data: Any) -> None:
        if isinstance(data, str) and data:
            self.reconciler.notify(data)

    def _fail(self, message: str) -> None:
        logger.warning(message)
        self.reconciler.error = message
        self.reconciler.notify(message)
