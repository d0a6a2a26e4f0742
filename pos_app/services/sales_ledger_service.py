"""Sales ledger service - append-only store of committed sales."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from sqlalchemy.orm import Session, selectinload

from pos_app.exceptions import BusinessLogicError, NotFoundError
from pos_app.models import Sale, SoldItem

AMOUNT_PLACES = Decimal('0.0001')


def _amount(value) -> Decimal:
    return Decimal(str(value)).quantize(AMOUNT_PLACES)


def list_sales(session: Session) -> List[Sale]:
    """All sales, most recent first, with their sold items."""
    return (session.query(Sale)
            .options(selectinload(Sale.sold_items))
            .order_by(Sale.date.desc())
            .all())


def get_sale(session: Session, sale_id: str) -> Sale:
    sale = session.query(Sale).options(selectinload(Sale.sold_items)).filter(
        Sale.id == str(sale_id)
    ).first()
    if not sale:
        raise NotFoundError(f'Sale {sale_id} not found.')
    return sale


def append_sale(
    session: Session,
    subtotal,
    tax,
    total_amount,
    sold_items: Iterable[Dict[str, Any]]
) -> Sale:
    """
    Add a sale and its items to the session (flushed, not committed).

    The ledger assigns id and timestamp. ``sold_items`` are dicts with
    product_id, product_code, name, price and quantity, copied as given.
    The caller owns the transaction.
    """
    subtotal = _amount(subtotal)
    tax = _amount(tax)
    total_amount = _amount(total_amount)
    if total_amount != subtotal + tax:
        raise BusinessLogicError(
            f'Total {total_amount} does not match subtotal {subtotal} + tax {tax}'
        )

    items = list(sold_items)
    if not items:
        raise BusinessLogicError('A sale needs at least one sold item.')

    sale = Sale(
        date=datetime.now(),
        subtotal=subtotal,
        tax=tax,
        total_amount=total_amount
    )
    for position, item in enumerate(items):
        sale.sold_items.append(SoldItem(
            position=position,
            product_id=str(item['product_id']),
            product_code=item['product_code'],
            name=item['name'],
            price=Decimal(str(item['price'])),
            quantity=int(item['quantity'])
        ))

    session.add(sale)
    session.flush()
    return sale
