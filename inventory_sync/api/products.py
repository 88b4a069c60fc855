from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from inventory_sync.broadcast.broadcaster import Broadcaster, get_broadcaster
from inventory_sync.database import get_db
from inventory_sync.exceptions import NotFoundError
from inventory_sync.schemas.product import ProductResponse, QuantitySnapshot
from inventory_sync.services.media_store import MediaStore, get_media_store
from inventory_sync.services.product_service import ImageFile, ProductService

router = APIRouter(prefix="/products", tags=["Products"])


def get_product_service(
    db: Session = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> ProductService:
    return ProductService(db, media_store, broadcaster)


def _read_image(image: Optional[UploadFile]) -> Optional[ImageFile]:
    """Read an uploaded file, treating an empty part as no image."""
    if image is None:
        return None
    data = image.file.read()
    if not data:
        return None
    return ImageFile(filename=image.filename or "image", data=data)


@router.get(
    "",
    response_model=List[ProductResponse],
    summary="List all products",
    description="Get every product in insertion order."
)
def list_products(service: ProductService = Depends(get_product_service)):
    """Get all products."""
    return service.list_all()


@router.get(
    "/by-name/{name:path}",
    response_model=ProductResponse,
    summary="Get product by name",
    description="Look a product up by name, ignoring case."
)
def get_product_by_name(name: str, service: ProductService = Depends(get_product_service)):
    """Get a product by name."""
    product = service.get_by_name(name)

    if not product:
        raise NotFoundError(f"Product with name '{name}' not found")

    return product


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
    description="Get detailed information about a specific product."
)
def get_product(product_id: int, service: ProductService = Depends(get_product_service)):
    """Get a product by ID."""
    product = service.get_by_id(product_id)

    if not product:
        raise NotFoundError(f"Product with ID {product_id} not found")

    return product


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a product from a multipart form. The image is uploaded to the media store."
)
def create_product(
    name: str = Form(..., min_length=1, max_length=255),
    price: Decimal = Form(..., ge=0),
    qty: int = Form(..., ge=0),
    image: Optional[UploadFile] = File(None),
    service: ProductService = Depends(get_product_service)
):
    """
    Create a new product.

    - **name**: Product name, unique ignoring case (required)
    - **price**: Unit price, must be non-negative (required)
    - **qty**: Initial quantity, must be non-negative (required)
    - **image**: Product image (required, 400 when missing)

    Every connected client receives an `added` change event.
    """
    return service.create(name, price, qty, _read_image(image))


@router.put(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Update a product",
    description="Replace a product's fields. The image is replaced only when a new one is sent."
)
def update_product(
    product_id: int,
    name: str = Form(..., min_length=1, max_length=255),
    price: Decimal = Form(..., ge=0),
    qty: int = Form(..., ge=0),
    image: Optional[UploadFile] = File(None),
    service: ProductService = Depends(get_product_service)
):
    """
    Update a product.

    Availability is recomputed from the new quantity. When a new image is
    sent the old one is deleted from the media store first.
    """
    service.update(product_id, name, price, qty, _read_image(image))
    return None


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
    description="Delete a product and its image."
)
def delete_product(product_id: int, service: ProductService = Depends(get_product_service)):
    """Delete a product."""
    service.delete(product_id)
    return None


@router.patch(
    "/{product_id}/adjust-qty",
    response_model=QuantitySnapshot,
    summary="Adjust product quantity",
    description="Add a (possibly negative) delta to the quantity. Stock never goes below zero."
)
def adjust_quantity(
    product_id: int,
    delta: int = Query(..., description="Quantity change, negative to reduce"),
    service: ProductService = Depends(get_product_service)
):
    """
    Adjust the quantity of a product.

    The check and the update happen in one conditional UPDATE, so
    concurrent adjustments never lose a delta or oversell.
    """
    return service.adjust_quantity(product_id, delta)
