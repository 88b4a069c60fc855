"""
Change events broadcast on the ``inventory-changes`` topic.

A change event is a tagged variant: the ``action`` field decides the shape
of ``product``. Added and updated events carry the full snapshot, deleted
events only the identity, quantity adjustments only the stock projection.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from inventory_sync.schemas.product import ProductRef, ProductResponse, QuantitySnapshot

CHANGES_TOPIC = "inventory-changes"
NOTIFICATIONS_TOPIC = "notifications"
TOPICS = (CHANGES_TOPIC, NOTIFICATIONS_TOPIC)


class ProductAdded(BaseModel):
    action: Literal["added"] = "added"
    product: ProductResponse


class ProductUpdated(BaseModel):
    action: Literal["updated"] = "updated"
    product: ProductResponse
    previous_name: Optional[str] = Field(None, description="Set when the product was renamed")


class ProductDeleted(BaseModel):
    action: Literal["deleted"] = "deleted"
    product: ProductRef


class QuantityAdjusted(BaseModel):
    action: Literal["quantity-adjusted"] = "quantity-adjusted"
    product: QuantitySnapshot


ChangeEvent = Annotated[
    Union[ProductAdded, ProductUpdated, ProductDeleted, QuantityAdjusted],
    Field(discriminator="action"),
]

change_event_adapter = TypeAdapter(ChangeEvent)


def parse_change_event(data) -> ChangeEvent:
    """Validate a decoded wire payload into the matching event class."""
    return change_event_adapter.validate_python(data)


def describe_change(event: ChangeEvent) -> str:
    """
    Human-readable notification text for a change event.

    The text depends only on the action and the product name, so a burst of
    events for the same product produces identical notifications that the
    client collapses into one.
    """
    name = event.product.name
    if isinstance(event, ProductAdded):
        return f"Product '{name}' added"
    if isinstance(event, ProductUpdated):
        if event.previous_name and event.previous_name != name:
            return f"Product '{event.previous_name}' renamed to '{name}'"
        return f"Product '{name}' updated"
    if isinstance(event, ProductDeleted):
        return f"Product '{name}' deleted"
    return f"Stock adjusted for '{name}'"
