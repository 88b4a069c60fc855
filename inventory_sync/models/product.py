from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint, Index, func

from inventory_sync.database import Base


class Product(Base):
    """
    Product model representing an inventory record.

    Attributes:
        id: Unique identifier assigned by the database
        name: Product name (unique, case-insensitive)
        price: Unit price (must be non-negative)
        qty: Quantity on hand (must be non-negative)
        image_url: Locator of the image in the media store
        image_id: Opaque media store handle used to replace or delete the image
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last updated

    Availability is not stored: ``status`` is derived from ``qty`` every
    time it is read.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    qty = Column(Integer, nullable=False, default=0)
    image_url = Column(String(1024), nullable=False, default="")
    image_id = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('qty >= 0', name='check_qty_non_negative'),
        Index('uq_products_name_lower', func.lower(name), unique=True),
    )

    @property
    def status(self) -> bool:
        """In stock iff quantity is positive."""
        return (self.qty or 0) > 0

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', qty={self.qty})>"
