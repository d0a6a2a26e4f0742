"""Sale model."""
from sqlalchemy import Column, String, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pos_app.database import Base
from pos_app.models.product import new_id


class Sale(Base):
    """Sale (committed, immutable)."""

    __tablename__ = 'sale'

    id = Column(String(36), primary_key=True, default=new_id)
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    subtotal = Column(Numeric(14, 4), nullable=False)
    tax = Column(Numeric(14, 4), nullable=False, default=0)
    total_amount = Column(Numeric(14, 4), nullable=False)

    # Relationships
    sold_items = relationship(
        'SoldItem',
        back_populates='sale',
        cascade='all, delete-orphan',
        order_by='SoldItem.position'
    )

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total_amount}, items={len(self.sold_items)})>"

    @property
    def invoice_number(self):
        """Short human-facing number printed on receipts."""
        return self.id.replace('-', '')[-6:].upper()

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date.isoformat() if self.date else None,
            'subtotal': str(self.subtotal),
            'tax': str(self.tax),
            'totalAmount': str(self.total_amount),
            'soldItems': [item.to_dict() for item in self.sold_items],
        }
