"""POS blueprint - session cart and checkout."""
import logging
from typing import Optional, Union

from flask import Blueprint, request, session, jsonify, current_app, url_for, g, Response
from flask_wtf.csrf import generate_csrf

from pos_app.database import get_session
from pos_app.exceptions import BusinessLogicError
from pos_app.middleware import require_login
from pos_app.services import catalog_service
from pos_app.services.cart_service import Cart, parse_quantity, parse_tax_rate
from pos_app.services.checkout_service import complete_sale
from pos_app.services.sales_ledger_service import get_sale
from pos_app.utils.formatters import money

logger = logging.getLogger(__name__)

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')

CART_SESSION_KEY = 'cart'


def _tax_rate():
    return parse_tax_rate(current_app.config.get('TAX_RATE'))


def get_cart() -> Cart:
    """Load this session's cart (empty if none yet)."""
    return Cart.from_dict(session.get(CART_SESSION_KEY), _tax_rate())


def save_cart(cart: Cart) -> None:
    """Store the cart back into the session."""
    session[CART_SESSION_KEY] = cart.to_dict()
    session.modified = True


def _payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _cart_json(cart: Cart, message: Optional[str] = None) -> dict:
    totals = cart.compute_totals()
    return {
        'status': 'ok',
        'message': message,
        'cart': {
            'lines': [
                dict(line.to_dict(), lineTotal=str(line.line_total))
                for line in cart.lines
            ],
            'totals': totals.to_dict(),
            'display': {
                'subtotal': money(totals.subtotal),
                'tax': money(totals.tax),
                'total': money(totals.total),
                'taxRate': str(cart.tax_rate),
            },
        },
    }


@pos_bp.route('/csrf-token', methods=['GET'])
@require_login
def csrf_token() -> Response:
    """Token for the X-CSRFToken header of the cart forms."""
    return jsonify({'csrfToken': generate_csrf()})


@pos_bp.route('/cart', methods=['GET'])
@require_login
def show_cart() -> Response:
    return jsonify(_cart_json(get_cart()))


@pos_bp.route('/cart/add', methods=['POST'])
@require_login
def cart_add() -> Response:
    """Add a scanned code (or product_id) with a quantity, default 1."""
    db_session = get_session()
    payload = _payload()

    code = str(payload.get('code') or '').strip()
    product_id = str(payload.get('product_id') or '').strip()
    if not code and not product_id:
        raise BusinessLogicError('Enter or scan a product code to proceed.')

    qty = parse_quantity(payload.get('qty', 1))

    if code:
        product = catalog_service.get_product_by_code(db_session, code)
    else:
        product = catalog_service.get_product(db_session, product_id)

    cart = get_cart()
    cart.add_line(product, qty)
    save_cart(cart)

    logger.info(f"[cart_add] user={g.user_id} product={product.id} qty={qty} lines={len(cart)}")
    return jsonify(_cart_json(cart, f'{product.name} added to cart.'))


@pos_bp.route('/cart/update', methods=['POST'])
@require_login
def cart_update() -> Response:
    """Set a line's quantity; zero or less removes the line."""
    db_session = get_session()
    payload = _payload()

    product_id = str(payload.get('product_id') or '').strip()
    if not product_id:
        raise BusinessLogicError('Missing product_id.')

    qty = parse_quantity(payload.get('qty'), allow_non_positive=True)

    cart = get_cart()
    if qty <= 0:
        cart.set_line_quantity(product_id, qty)
        message = 'Item removed from cart.'
    else:
        product = catalog_service.get_product(db_session, product_id)
        cart.set_line_quantity(product_id, qty, product)
        message = None
    save_cart(cart)

    return jsonify(_cart_json(cart, message))


@pos_bp.route('/cart/remove', methods=['POST'])
@require_login
def cart_remove() -> Response:
    product_id = str(_payload().get('product_id') or '').strip()

    cart = get_cart()
    removed = cart.remove_line(product_id)
    save_cart(cart)

    return jsonify(_cart_json(cart, 'Item removed from cart.' if removed else None))


@pos_bp.route('/cart/clear', methods=['POST'])
@require_login
def cart_clear() -> Response:
    cart = get_cart()
    cart.clear()
    save_cart(cart)
    return jsonify(_cart_json(cart))


@pos_bp.route('/checkout', methods=['POST'])
@require_login
def checkout() -> Union[Response, tuple]:
    """Commit the cart as a sale; the cart is cleared only on success."""
    db_session = get_session()
    cart = get_cart()

    sale_id = complete_sale(cart, db_session)

    cart.clear()
    save_cart(cart)

    sale = get_sale(db_session, sale_id)
    return jsonify({
        'status': 'ok',
        'message': 'Sale completed successfully.',
        'saleId': sale_id,
        'sale': sale.to_dict(),
        'receiptUrl': url_for('sales.receipt_pdf', sale_id=sale_id),
    }), 201
