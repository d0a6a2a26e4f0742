"""Sold Item model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from pos_app.database import Base


class SoldItem(Base):
    """Sold Item (line of a committed sale).

    Product fields are copied at commit time. ``product_id`` is a plain
    reference without a foreign key: products may be edited or deleted
    after the sale without touching its history.
    """

    __tablename__ = 'sold_item'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    sale_id = Column(String(36), ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(36), nullable=False, index=True)
    product_code = Column(String(64), nullable=False)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='sold_items')

    def __repr__(self):
        return f"<SoldItem(id={self.id}, product_code='{self.product_code}', quantity={self.quantity})>"

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        return {
            'productId': self.product_id,
            'productCode': self.product_code,
            'name': self.name,
            'price': str(self.price),
            'quantity': self.quantity,
        }
