"""Models package - exports all SQLAlchemy models."""
from pos_app.models.app_user import AppUser, UserRole
from pos_app.models.product import Product
from pos_app.models.sale import Sale
from pos_app.models.sold_item import SoldItem

__all__ = [
    'AppUser', 'UserRole',
    'Product',
    'Sale', 'SoldItem',
]
