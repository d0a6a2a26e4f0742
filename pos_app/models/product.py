"""Product model."""
import uuid

from sqlalchemy import Column, String, Integer, Numeric, DateTime, CheckConstraint, Index
from sqlalchemy.sql import func
from pos_app.database import Base


def new_id() -> str:
    """Opaque record identity."""
    return str(uuid.uuid4())


class Product(Base):
    """Product model - catalog entry with its on-hand stock."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('price > 0', name='ck_product_price_positive'),
        CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    product_code = Column(String(64), nullable=False)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0, server_default='0')
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, code='{self.product_code}', stock={self.stock_quantity})>"

    def to_dict(self):
        """Field-named record used by the JSON API."""
        return {
            'id': self.id,
            'productCode': self.product_code,
            'name': self.name,
            'price': str(self.price),
            'stockQuantity': self.stock_quantity,
            'imageUrl': self.image_url,
        }


# Case-insensitive uniqueness of product codes
Index('uq_product_code_lower', func.lower(Product.product_code), unique=True)
