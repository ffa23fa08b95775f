from sqlalchemy import Column, String, Numeric, Date, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from uuid import uuid4
from ledgerpos.database.database import Base
from ledgerpos.common.mixins import TimestampMixin


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    barcode = Column(String(100), unique=True, nullable=True, index=True)

    # Relationships
    stocks = relationship("Stock", back_populates="product", cascade="all, delete-orphan")


class Stock(Base, TimestampMixin):
    """One batch of a product on hand. Invoice creation locks and decrements these rows."""
    __tablename__ = "stocks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    qty = Column(Numeric(15, 4), nullable=False, default=0)
    cost_price = Column(Numeric(15, 2), nullable=False, default=0)
    max_retail_price = Column(Numeric(15, 2), nullable=True)
    expire_date = Column(Date, nullable=True)
    qty_limit_alert = Column(Numeric(15, 4), nullable=True)

    # Relationships
    product = relationship("Product", back_populates="stocks")

    __table_args__ = (
        CheckConstraint("qty >= 0", name="check_stock_qty_non_negative"),
    )

    @property
    def is_low(self) -> bool:
        return self.qty_limit_alert is not None and self.qty <= self.qty_limit_alert
