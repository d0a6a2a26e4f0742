"""Catalog blueprint - product records and stock adjustments (JSON API)."""
import logging
from typing import Union

from flask import Blueprint, request, jsonify, current_app, Response

from pos_app.database import get_session
from pos_app.middleware import require_login
from pos_app.models import Product
from pos_app.services import catalog_service

logger = logging.getLogger(__name__)

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api/products')


def _payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _product_json(product: Product) -> dict:
    data = product.to_dict()
    data['lowStock'] = catalog_service.is_low_stock(
        product, current_app.config.get('LOW_STOCK_THRESHOLD', 10)
    )
    return data


@catalog_bp.route('', methods=['GET'])
@require_login
def list_products() -> Response:
    """List products, newest first (optional ?q= filter on name/code)."""
    session = get_session()
    products = catalog_service.list_products(session, request.args.get('q', ''))
    return jsonify([_product_json(p) for p in products])


@catalog_bp.route('', methods=['POST'])
@require_login
def create_product() -> Union[Response, tuple]:
    session = get_session()
    product = catalog_service.create_product(session, _payload())
    return jsonify(_product_json(product)), 201


@catalog_bp.route('/by-code/<path:product_code>', methods=['GET'])
@require_login
def get_product_by_code(product_code: str) -> Response:
    """Scanner lookup: exact, case-insensitive code match."""
    session = get_session()
    return jsonify(_product_json(catalog_service.get_product_by_code(session, product_code)))


@catalog_bp.route('/<product_id>', methods=['GET'])
@require_login
def get_product(product_id: str) -> Response:
    session = get_session()
    return jsonify(_product_json(catalog_service.get_product(session, product_id)))


@catalog_bp.route('/<product_id>', methods=['PUT', 'PATCH'])
@require_login
def update_product(product_id: str) -> Response:
    """Partial update: only the fields present in the body change."""
    session = get_session()
    product = catalog_service.update_product(session, product_id, _payload())
    return jsonify(_product_json(product))


@catalog_bp.route('/<product_id>', methods=['DELETE'])
@require_login
def delete_product(product_id: str) -> Response:
    session = get_session()
    catalog_service.delete_product(session, product_id)
    return jsonify({'ok': True})


@catalog_bp.route('/<product_id>/stock', methods=['POST'])
@require_login
def adjust_stock(product_id: str) -> Response:
    """Manual stock adjustment: body {delta: +n | -n}, floored at zero."""
    session = get_session()
    payload = _payload()
    product = catalog_service.adjust_stock(session, product_id, payload.get('delta'))
    return jsonify(_product_json(product))
