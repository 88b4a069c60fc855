from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional


class ProductBase(BaseModel):
    """Base schema for Product with common attributes."""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    price: float = Field(..., ge=0, description="Product price (must be non-negative)")
    qty: int = Field(..., ge=0, description="Quantity on hand (must be non-negative)")


class ProductResponse(ProductBase):
    """Full product snapshot as returned by the API and broadcast on change."""
    id: int
    status: bool = Field(..., description="True iff qty > 0")
    image_url: str = ""
    image_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductRef(BaseModel):
    """Identity of a product that no longer exists."""
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class QuantitySnapshot(BaseModel):
    """Projection returned by a quantity adjustment."""
    id: int
    name: str
    qty: int
    status: bool

    model_config = ConfigDict(from_attributes=True)
