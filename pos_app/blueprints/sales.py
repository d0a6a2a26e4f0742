"""Sales blueprint - ledger listing, API checkout and receipts."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Union

from flask import Blueprint, request, jsonify, current_app, send_file, Response

from pos_app.database import get_session
from pos_app.exceptions import BusinessLogicError
from pos_app.middleware import require_login
from pos_app.services import catalog_service
from pos_app.services.cart_service import Cart, CartLine, parse_quantity, parse_tax_rate
from pos_app.services.checkout_service import complete_sale
from pos_app.services.receipt_service import render_receipt_pdf
from pos_app.services.sales_ledger_service import list_sales, get_sale

logger = logging.getLogger(__name__)

sales_bp = Blueprint('sales', __name__)

CENT = Decimal('0.01')


def _client_price(item) -> Decimal:
    try:
        price = Decimal(str(item['price']).strip())
    except (KeyError, InvalidOperation):
        raise BusinessLogicError('Each sold item needs a price.') from None
    if not price.is_finite() or price <= 0:
        raise BusinessLogicError(f"Price {item['price']} must be a positive number.")
    return price


def _cart_from_sold_items(session, sold_items, tax_rate) -> Cart:
    """
    Rebuild a cart from the soldItems of an API request (one line per product).

    Lines are built from the catalog product, so code, name and price are
    the server's. A client line that disagrees with the catalog is rejected.
    """
    if not isinstance(sold_items, list):
        raise BusinessLogicError('soldItems must be a list.')

    lines = []
    seen = set()
    for item in sold_items:
        if not isinstance(item, dict) or not item.get('productId'):
            raise BusinessLogicError('Each sold item needs productId, productCode, name, price and quantity.')

        price = _client_price(item)
        qty = parse_quantity(item.get('quantity'))
        product = catalog_service.get_product(session, item['productId'])

        code = str(item.get('productCode') or '').strip()
        if code.lower() != product.product_code.lower():
            raise BusinessLogicError(
                f'Product code {code or "(blank)"} does not match {product.product_code}.'
            )
        if item.get('name') is not None and str(item['name']).strip() != product.name:
            raise BusinessLogicError(f'Name {item["name"]} does not match {product.name}.')
        if price != product.price:
            raise BusinessLogicError(
                f'Price {price} for {product.product_code} does not match the catalog price {product.price}.'
            )

        if product.id in seen:
            raise BusinessLogicError(f'Product {product.product_code} appears more than once.')
        seen.add(product.id)
        lines.append(CartLine.from_product(product, qty))

    return Cart(lines, tax_rate)


def _check_client_totals(cart: Cart, payload: dict) -> None:
    """Reject requests whose totals disagree with the server's computation."""
    totals = cart.compute_totals()
    expected = {'subtotal': totals.subtotal, 'tax': totals.tax, 'totalAmount': totals.total}
    for key, value in expected.items():
        if payload.get(key) is None:
            continue
        try:
            sent = Decimal(str(payload[key])).quantize(CENT)
            computed = value.quantize(CENT)
        except InvalidOperation:
            raise BusinessLogicError(f'{key} is not a number.') from None
        if sent != computed:
            raise BusinessLogicError(f'{key} {payload[key]} does not match the computed {computed}.')


@sales_bp.route('/api/sales', methods=['GET'])
@require_login
def api_list_sales() -> Response:
    """Sales, most recent first, with sold items."""
    session = get_session()
    return jsonify([sale.to_dict() for sale in list_sales(session)])


@sales_bp.route('/api/sales', methods=['POST'])
@require_login
def api_create_sale() -> Union[Response, tuple]:
    """
    Record a sale from a client-held cart.

    Body: {soldItems: [...], subtotal, tax, totalAmount}. Stock is
    re-validated and decremented here, exactly as for the session cart.
    """
    session = get_session()
    payload = request.get_json(silent=True) or {}

    cart = _cart_from_sold_items(
        session,
        payload.get('soldItems'),
        parse_tax_rate(current_app.config.get('TAX_RATE'))
    )
    _check_client_totals(cart, payload)

    sale_id = complete_sale(cart, session)
    return jsonify(get_sale(session, sale_id).to_dict()), 201


@sales_bp.route('/api/sales/<sale_id>', methods=['GET'])
@require_login
def api_get_sale(sale_id: str) -> Response:
    session = get_session()
    return jsonify(get_sale(session, sale_id).to_dict())


@sales_bp.route('/sales/<sale_id>/receipt.pdf', methods=['GET'])
@require_login
def receipt_pdf(sale_id: str) -> Response:
    """Printable invoice for a committed sale."""
    session = get_session()
    sale = get_sale(session, sale_id)

    business_info = {
        'name': current_app.config.get('BUSINESS_NAME', 'POS Stock'),
        'address': current_app.config.get('BUSINESS_ADDRESS', ''),
        'phone': current_app.config.get('BUSINESS_PHONE', ''),
        'email': current_app.config.get('BUSINESS_EMAIL', ''),
    }

    pdf_buffer = render_receipt_pdf(sale, business_info)
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=False,
        download_name=f"invoice_{sale.invoice_number}.pdf"
    )
