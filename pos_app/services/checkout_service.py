"""
Checkout service - turns a cart into a committed sale.

Two phases inside one database transaction:

1. Validate: lock the cart's product rows and check every line against the
   current stock. Nothing is written until every line passes.
2. Apply: decrement stock with a guarded UPDATE (``stock_quantity >= qty``),
   append the sale to the ledger, commit.

Any error rolls the whole transaction back. The cart passed in is never
modified; clearing it after success is the caller's job.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos_app.exceptions import (
    EmptyCartError, InsufficientStockError, PersistenceError, PosError, ProductNotFoundError
)
from pos_app.models import Product
from pos_app.services.cart_service import Cart, CartLine
from pos_app.services.sales_ledger_service import append_sale

logger = logging.getLogger(__name__)


def validate_cart(cart: Cart, catalog: Mapping[str, Any]) -> List[Tuple[CartLine, Any]]:
    """
    Check every cart line against a catalog snapshot keyed by product id.

    Returns the (line, product) pairs to apply, in cart order.

    Raises:
        EmptyCartError: the cart has no lines
        ProductNotFoundError: a line's product no longer exists
        InsufficientStockError: a line exceeds the product's current stock
    """
    if cart.is_empty():
        raise EmptyCartError()

    plan = []
    for line in cart.lines:
        product = catalog.get(line.product_id)
        if product is None:
            raise ProductNotFoundError(line.product_code)
        if line.quantity > product.stock_quantity:
            raise InsufficientStockError(line.name, line.quantity, product.stock_quantity)
        plan.append((line, product))
    return plan


def sold_items_from_cart(cart: Cart) -> List[Dict[str, Any]]:
    """Sold item records copied from the cart line snapshots."""
    return [
        {
            'product_id': line.product_id,
            'product_code': line.product_code,
            'name': line.name,
            'price': line.price,
            'quantity': line.quantity,
        }
        for line in cart.lines
    ]


def _lock_products(session: Session, product_ids: List[str]) -> Dict[str, Product]:
    """Lock product rows FOR UPDATE and return them by id."""
    if not product_ids:
        return {}
    products = session.query(Product).filter(
        Product.id.in_(product_ids)
    ).with_for_update().populate_existing().all()
    return {p.id: p for p in products}


def _decrement_stock(session: Session, product: Product, qty: int) -> None:
    """Guarded decrement; refuses to go below the quantity just validated."""
    updated = session.query(Product).filter(
        Product.id == product.id,
        Product.stock_quantity >= qty
    ).update(
        {Product.stock_quantity: Product.stock_quantity - qty},
        synchronize_session='fetch'
    )
    if updated != 1:
        session.refresh(product)
        raise InsufficientStockError(product.name, qty, product.stock_quantity)


def complete_sale(cart: Cart, session: Session, tax_rate: Optional[Decimal] = None) -> str:
    """
    Commit ``cart`` as a sale (validate-then-apply, all or nothing).

    ``tax_rate`` overrides the cart's own rate when given.

    Returns:
        The new sale id.
    """
    if cart.is_empty():
        raise EmptyCartError()

    if tax_rate is not None:
        cart = cart.copy()
        cart.tax_rate = Decimal(str(tax_rate))

    try:
        # 1. Validate against locked, current stock
        catalog = _lock_products(session, [line.product_id for line in cart.lines])
        plan = validate_cart(cart, catalog)

        # 2. Apply
        for line, product in plan:
            _decrement_stock(session, product, line.quantity)

        totals = cart.compute_totals()
        sale = append_sale(
            session,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total_amount=totals.total,
            sold_items=sold_items_from_cart(cart)
        )
        sale_id = sale.id

        session.commit()

    except PosError as e:
        session.rollback()
        logger.warning(f"Checkout rejected: {e.message}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Checkout failed: {e}", exc_info=True)
        raise PersistenceError('Failed to record sale') from e
    except Exception:
        session.rollback()
        logger.error("Checkout aborted, transaction rolled back", exc_info=True)
        raise

    logger.info(f"Sale committed: id={sale_id}, lines={len(cart)}, total={totals.total}")
    return sale_id
