from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Optional
import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_sync.broadcast.broadcaster import Broadcaster
from inventory_sync.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from inventory_sync.models.product import Product
from inventory_sync.schemas.events import (
    ChangeEvent,
    ProductAdded,
    ProductDeleted,
    ProductUpdated,
    QuantityAdjusted,
    describe_change,
)
from inventory_sync.schemas.product import ProductRef, ProductResponse, QuantitySnapshot
from inventory_sync.services.media_store import MediaAsset, MediaStore
from inventory_sync.tasks.notification_tasks import dispatch_notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageFile:
    """An uploaded image as received from the client."""
    filename: str
    data: bytes


class ProductService:
    """
    Service class for product mutations and reads.

    Every successful mutation commits to the database first and only then
    broadcasts exactly one change event plus one advisory notification.
    Failed mutations broadcast nothing.

    CONSISTENCY WITH THE MEDIA STORE:
    =================================
    Nothing is transactional across the database and the media store.
    Partial failures are surfaced to the caller, never compensated:

    - Create: the image is uploaded before the insert. If the insert then
      fails (e.g. a concurrent duplicate name) the uploaded image is orphaned.
    - Update: the old image is deleted before the new one is uploaded. If the
      upload fails, or the row update fails after it, the product is left
      without an image.
    - Delete: the image is deleted before the row. If the row delete fails
      the product survives with a stale image reference.

    CONCURRENT QUANTITY ADJUSTMENTS:
    ================================
    Adjustments run as a single conditional UPDATE:

        UPDATE products SET qty = qty + :delta
        WHERE id = :id AND qty + :delta >= 0

    so two concurrent adjustments on the same product are serialized by the
    database's row-level write lock and neither delta is lost. An adjustment
    that would go below zero matches no row and leaves qty untouched.
    """

    def __init__(
        self,
        db: Session,
        media_store: MediaStore,
        broadcaster: Broadcaster,
        notify: Callable[[str], None] = None,
    ):
        self.db = db
        self.media_store = media_store
        self.broadcaster = broadcaster
        self.notify = notify or dispatch_notification

    # Reads

    def get_by_id(self, product_id: int) -> Optional[Product]:
        """Get a product by ID."""
        return self.db.get(Product, product_id)

    def get_by_name(self, name: str) -> Optional[Product]:
        """Get a product by name, ignoring case."""
        return (
            self.db.query(Product)
            .filter(func.lower(Product.name) == name.strip().lower())
            .first()
        )

    def list_all(self) -> List[Product]:
        """All products in insertion order."""
        return self.db.query(Product).order_by(Product.id).all()

    # Mutations

    def create(self, name: str, price: Decimal, qty: int, image: Optional[ImageFile]) -> Product:
        """
        Create a product with its image.

        Args:
            name: Product name, unique ignoring case
            price: Unit price
            qty: Initial quantity
            image: Product image (required)

        Returns:
            Created product instance

        Raises:
            ValidationError: If the name is blank or the image is missing
            ConflictError: If a product with the same name exists
            UploadError: If the media store rejects the image
        """
        name = self._clean_name(name)
        if image is None or not image.data:
            raise ValidationError("Image file is required")

        if self.get_by_name(name) is not None:
            raise ConflictError(f"Product with name '{name}' already exists")

        asset = self._upload(image)

        product = Product(
            name=name,
            price=price,
            qty=qty,
            image_url=asset.url,
            image_id=asset.id,
        )
        self.db.add(product)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Insert of '{name}' failed, image {asset.id} is orphaned: {e}")
            raise ConflictError(f"Product with name '{name}' already exists") from e
        self.db.refresh(product)

        logger.info(f"Product #{product.id} '{product.name}' created")
        self._emit(ProductAdded(product=ProductResponse.model_validate(product)))
        return product

    def update(
        self,
        product_id: int,
        name: str,
        price: Decimal,
        qty: int,
        image: Optional[ImageFile] = None,
    ) -> Product:
        """
        Replace a product's fields, and its image if a new one is supplied.

        Raises:
            NotFoundError: If the product doesn't exist
            ValidationError: If the name is blank
            ConflictError: If another product already has the name
            MediaStoreError: If the old image could not be deleted
            UploadError: If the new image could not be uploaded
        """
        product = self._get_or_raise(product_id)
        name = self._clean_name(name)

        other = self.get_by_name(name)
        if other is not None and other.id != product.id:
            raise ConflictError(f"Product with name '{name}' already exists")

        previous_name = product.name

        replaced_image_id = None
        if image is not None and image.data:
            replaced_image_id = self._replace_image(product, image)
        new_image_id = product.image_id

        product.name = name
        product.price = price
        product.qty = qty
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Update of product #{product_id} failed: {e}")
            if replaced_image_id:
                # the rolled back row points at the image deleted above
                product.image_url = ""
                product.image_id = ""
                self.db.commit()
                logger.error(
                    f"Product #{product_id} lost its image: update failed after deleting "
                    f"{replaced_image_id}, image {new_image_id} is orphaned"
                )
            raise ConflictError(f"Product with name '{name}' already exists") from e
        self.db.refresh(product)

        logger.info(f"Product #{product.id} '{product.name}' updated")
        self._emit(ProductUpdated(
            product=ProductResponse.model_validate(product),
            previous_name=previous_name if previous_name != product.name else None,
        ))
        return product

    def delete(self, product_id: int) -> None:
        """
        Delete a product and its image.

        The image goes first: a failure in between leaves a row pointing at
        a missing image rather than an image nothing points at.

        Raises:
            NotFoundError: If the product doesn't exist
            MediaStoreError: If the image could not be deleted (row kept)
        """
        product = self._get_or_raise(product_id)
        ref = ProductRef.model_validate(product)
        image_id = product.image_id

        if image_id:
            self.media_store.delete(image_id)

        try:
            self.db.delete(product)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Image {image_id} deleted but product #{product_id} could not be removed: {e}"
            )
            raise

        logger.info(f"Product #{ref.id} '{ref.name}' deleted")
        self._emit(ProductDeleted(product=ref))

    def adjust_quantity(self, product_id: int, delta: int) -> Product:
        """
        Add ``delta`` to a product's quantity (negative to reduce).

        Raises:
            NotFoundError: If the product doesn't exist
            InsufficientStockError: If the result would be negative
        """
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.qty + delta >= 0)
            .values(qty=Product.qty + delta)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            self.db.rollback()
            product = self._get_or_raise(product_id)
            raise InsufficientStockError(
                f"Insufficient stock. Available: {product.qty}, Requested change: {delta}"
            )

        self.db.commit()
        product = self._get_or_raise(product_id)
        self.db.refresh(product)

        logger.info(f"Product #{product.id} quantity adjusted by {delta} to {product.qty}")
        self._emit(QuantityAdjusted(product=QuantitySnapshot.model_validate(product)))
        return product

    # Helpers

    def _get_or_raise(self, product_id: int) -> Product:
        product = self.get_by_id(product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    @staticmethod
    def _clean_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Product name is required")
        return name

    def _upload(self, image: ImageFile) -> MediaAsset:
        asset = self.media_store.upload(image.data, image.filename)
        if asset is None or not asset.url or not asset.id:
            raise UploadError("Image upload failed: media store returned no locator")
        return asset

    def _replace_image(self, product: Product, image: ImageFile) -> Optional[str]:
        """Swap the product's image. Returns the id of the deleted image, if any."""
        old_image_id = product.image_id
        if old_image_id:
            self.media_store.delete(old_image_id)

        try:
            asset = self._upload(image)
        except UploadError:
            if old_image_id:
                # the old image is gone, don't keep pointing at it
                product.image_url = ""
                product.image_id = ""
                self.db.commit()
                logger.error(f"Product #{product.id} lost its image: upload failed after deleting {old_image_id}")
            raise

        product.image_url = asset.url
        product.image_id = asset.id
        return old_image_id

    def _emit(self, event: ChangeEvent) -> None:
        self.broadcaster.publish_change(event)
        self.notify(describe_change(event))
