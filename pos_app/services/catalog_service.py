"""Catalog service - product CRUD and manual stock adjustments."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pos_app.exceptions import (
    BusinessLogicError, DuplicateProductCodeError, PersistenceError, ProductNotFoundError
)
from pos_app.models import Product
from pos_app.services.cart_service import parse_quantity

logger = logging.getLogger(__name__)

# API field name -> model attribute
EDITABLE_FIELDS = {
    'productCode': 'product_code',
    'name': 'name',
    'price': 'price',
    'stockQuantity': 'stock_quantity',
    'imageUrl': 'image_url',
}


def _clean_fields(fields: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    """Validate API fields and map them to model attributes."""
    errors = []
    cleaned = {}

    for api_name, attr in EDITABLE_FIELDS.items():
        if api_name not in fields:
            if not partial and api_name != 'imageUrl':
                errors.append(f'{api_name} is required')
            continue
        cleaned[attr] = fields[api_name]

    if 'product_code' in cleaned:
        cleaned['product_code'] = str(cleaned['product_code'] or '').strip()
        if not cleaned['product_code']:
            errors.append('productCode is required')

    if 'name' in cleaned:
        cleaned['name'] = str(cleaned['name'] or '').strip()
        if not cleaned['name']:
            errors.append('name is required')

    if 'price' in cleaned:
        try:
            price = Decimal(str(cleaned['price']).strip())
            if not price.is_finite() or price <= 0:
                raise InvalidOperation
            cleaned['price'] = price.quantize(Decimal('0.01'))
        except (InvalidOperation, ValueError, TypeError):
            errors.append('Price must be a positive number.')

    if 'stock_quantity' in cleaned:
        try:
            stock = Decimal(str(cleaned['stock_quantity']).strip())
            if not stock.is_finite() or stock != stock.to_integral_value() or stock < 0:
                raise InvalidOperation
            cleaned['stock_quantity'] = int(stock)
        except (InvalidOperation, ValueError, TypeError):
            errors.append('Stock must be a whole number greater than or equal to 0.')

    if 'image_url' in cleaned and cleaned['image_url'] is not None:
        cleaned['image_url'] = str(cleaned['image_url']).strip() or None

    if errors:
        raise BusinessLogicError('; '.join(errors), payload={'errors': errors})
    return cleaned


def _ensure_code_available(session: Session, product_code: str, exclude_id: Optional[str] = None) -> None:
    query = session.query(Product.id).filter(
        func.lower(Product.product_code) == product_code.lower()
    )
    if exclude_id:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise DuplicateProductCodeError(product_code)


def _commit(session: Session, action: str, product_code: Optional[str] = None) -> None:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if product_code:
            # Lost a race against a concurrent create with the same code
            raise DuplicateProductCodeError(product_code) from e
        raise PersistenceError(f'Failed to {action}') from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise PersistenceError(f'Failed to {action}') from e


def list_products(session: Session, search: str = '') -> List[Product]:
    """Newest first; optional substring filter on name or code."""
    query = session.query(Product)
    search = (search or '').strip()[:100]
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(
            func.lower(Product.name).like(pattern),
            func.lower(Product.product_code).like(pattern)
        ))
    return query.order_by(Product.created_at.desc(), Product.name).all()


def get_product(session: Session, product_id: str) -> Product:
    product = session.get(Product, str(product_id))
    if not product:
        raise ProductNotFoundError(str(product_id))
    return product


def get_product_by_code(session: Session, product_code: str) -> Product:
    """Exact, case-insensitive lookup of a scanned code."""
    code = (product_code or '').strip()
    if not code:
        raise ProductNotFoundError()
    product = session.query(Product).filter(
        func.lower(Product.product_code) == code.lower()
    ).first()
    if not product:
        raise ProductNotFoundError(code)
    return product


def create_product(session: Session, fields: Dict[str, Any]) -> Product:
    cleaned = _clean_fields(fields, partial=False)
    _ensure_code_available(session, cleaned['product_code'])

    product = Product(**cleaned)
    session.add(product)
    _commit(session, 'create product', cleaned['product_code'])

    logger.info(f"Product created: id={product.id}, code={product.product_code}")
    return product


def update_product(session: Session, product_id: str, fields: Dict[str, Any]) -> Product:
    """Partial update; only the given fields change."""
    product = get_product(session, product_id)
    cleaned = _clean_fields(fields, partial=True)

    if 'product_code' in cleaned:
        _ensure_code_available(session, cleaned['product_code'], exclude_id=product.id)

    for attr, value in cleaned.items():
        setattr(product, attr, value)
    _commit(session, 'update product', cleaned.get('product_code'))

    logger.info(f"Product updated: id={product.id}, fields={sorted(cleaned)}")
    return product


def delete_product(session: Session, product_id: str) -> None:
    """Delete a product. Past sales keep their copied product fields."""
    product = get_product(session, product_id)
    session.delete(product)
    _commit(session, 'delete product')
    logger.info(f"Product deleted: id={product_id}")


def adjust_stock(session: Session, product_id: str, delta: int) -> Product:
    """
    Add (positive delta) or deduct (negative delta) stock.

    Deductions floor at zero. The row is locked for the read-modify-write.
    """
    delta = parse_quantity(delta, allow_non_positive=True)
    if delta == 0:
        raise BusinessLogicError('Adjustment amount must be a whole number greater than 0.')

    product = session.query(Product).filter(
        Product.id == str(product_id)
    ).with_for_update().first()
    if not product:
        raise ProductNotFoundError(str(product_id))

    old_stock = product.stock_quantity
    product.stock_quantity = max(old_stock + delta, 0)
    _commit(session, 'adjust stock')

    logger.info(f"Stock adjusted: id={product.id}, {old_stock} -> {product.stock_quantity}")
    return product


def is_low_stock(product: Product, threshold: int) -> bool:
    return product.stock_quantity <= threshold
