"""
Integration tests for the session cart and checkout endpoints.
"""

from decimal import Decimal

import pytest

from pos_app.models import Product, Sale


def _add(client, code, qty=1):
    return client.post('/pos/cart/add', json={'code': code, 'qty': qty})


class TestCart:
    """Cart endpoints backed by the Flask session."""

    def test_requires_login(self, client):
        response = client.get('/pos/cart')
        assert response.status_code == 401

    def test_add_by_code(self, cashier_client, product_ids):
        response = _add(cashier_client, 'esp-1001', 5)

        assert response.status_code == 200
        data = response.get_json()
        assert data['message'] == 'Espresso Shot added to cart.'
        line = data['cart']['lines'][0]
        assert line['product_id'] == product_ids['ESP-1001']
        assert line['quantity'] == 5
        assert Decimal(line['lineTotal']) == Decimal('15.00')
        assert data['cart']['display']['total'] == '15.00'

    def test_cart_persists_between_requests(self, cashier_client, product_ids):
        _add(cashier_client, 'ESP-1001', 2)
        _add(cashier_client, 'ESP-1001', 1)

        data = cashier_client.get('/pos/cart').get_json()
        assert len(data['cart']['lines']) == 1
        assert data['cart']['lines'][0]['quantity'] == 3

    def test_add_by_form_post(self, cashier_client, product_ids):
        response = cashier_client.post('/pos/cart/add', data={'product_id': product_ids['CAP-2002'], 'qty': '2'})
        assert response.status_code == 200
        assert response.get_json()['cart']['display']['subtotal'] == '9.00'

    def test_unknown_code(self, cashier_client, product_ids):
        response = _add(cashier_client, 'NOPE-0')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'product_not_found'

    def test_blank_code(self, cashier_client, product_ids):
        response = cashier_client.post('/pos/cart/add', json={'code': '  '})
        assert response.status_code == 400

    def test_invalid_quantity(self, cashier_client, product_ids):
        response = _add(cashier_client, 'ESP-1001', 'two')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'invalid_quantity'

    def test_reservation_exceeds_stock(self, cashier_client, product_ids):
        _add(cashier_client, 'BG-3003', 4)
        response = _add(cashier_client, 'BG-3003', 2)

        assert response.status_code == 409
        data = response.get_json()
        assert data['error'] == 'insufficient_stock'
        assert data['available'] == 1

    def test_update_and_remove(self, cashier_client, product_ids):
        espresso_id = product_ids['ESP-1001']
        _add(cashier_client, 'ESP-1001', 1)

        response = cashier_client.post('/pos/cart/update', json={'product_id': espresso_id, 'qty': 4})
        assert response.get_json()['cart']['lines'][0]['quantity'] == 4

        response = cashier_client.post('/pos/cart/update', json={'product_id': espresso_id, 'qty': 0})
        assert response.get_json()['cart']['lines'] == []

    def test_update_above_stock(self, cashier_client, product_ids):
        _add(cashier_client, 'BG-3003', 1)
        response = cashier_client.post('/pos/cart/update', json={'product_id': product_ids['BG-3003'], 'qty': 6})
        assert response.status_code == 409

    def test_remove_and_clear(self, cashier_client, product_ids):
        _add(cashier_client, 'ESP-1001')
        _add(cashier_client, 'CAP-2002')

        response = cashier_client.post('/pos/cart/remove', json={'product_id': product_ids['ESP-1001']})
        assert [line['product_code'] for line in response.get_json()['cart']['lines']] == ['CAP-2002']

        response = cashier_client.post('/pos/cart/clear')
        assert response.get_json()['cart']['lines'] == []


class TestCheckout:
    """Checkout through the session cart."""

    def test_checkout_commits_sale_and_clears_cart(self, cashier_client, session, product_ids):
        _add(cashier_client, 'ESP-1001', 5)

        response = cashier_client.post('/pos/checkout')

        assert response.status_code == 201
        data = response.get_json()
        assert data['receiptUrl'] == f"/sales/{data['saleId']}/receipt.pdf"
        assert Decimal(data['sale']['totalAmount']) == Decimal('15')

        assert cashier_client.get('/pos/cart').get_json()['cart']['lines'] == []
        assert session.get(Product, product_ids['ESP-1001']).stock_quantity == 25
        assert session.query(Sale).count() == 1

    def test_checkout_with_tax(self, app, cashier_client, monkeypatch, product_ids):
        monkeypatch.setitem(app.config, 'TAX_RATE', '0.08')
        _add(cashier_client, 'ESP-1001', 5)

        sale = cashier_client.post('/pos/checkout').get_json()['sale']

        assert Decimal(sale['tax']) == Decimal('1.20')
        assert Decimal(sale['totalAmount']) == Decimal('16.20')

    def test_empty_cart(self, cashier_client, product_ids):
        response = cashier_client.post('/pos/checkout')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'empty_cart'

    def test_stale_cart_keeps_lines_and_stock(self, cashier_client, session, product_ids):
        _add(cashier_client, 'ESP-1001', 5)
        cashier_client.post(f"/api/products/{product_ids['ESP-1001']}/stock", json={'delta': -27})

        response = cashier_client.post('/pos/checkout')

        assert response.status_code == 409
        assert cashier_client.get('/pos/cart').get_json()['cart']['lines'][0]['quantity'] == 5
        assert session.get(Product, product_ids['ESP-1001']).stock_quantity == 3
        assert session.query(Sale).count() == 0

    def test_receipt_pdf(self, cashier_client, product_ids):
        _add(cashier_client, 'CAP-2002', 2)
        receipt_url = cashier_client.post('/pos/checkout').get_json()['receiptUrl']

        response = cashier_client.get(receipt_url)

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')


class TestSalesApi:
    """Client-held carts posted to /api/sales."""

    def _payload(self, product_ids, qty=2, **overrides):
        payload = {
            'soldItems': [{
                'productId': product_ids['CAP-2002'],
                'productCode': 'CAP-2002',
                'name': 'Cappuccino',
                'price': '4.50',
                'quantity': qty,
            }],
            'subtotal': str(Decimal('4.50') * qty),
            'tax': '0',
            'totalAmount': str(Decimal('4.50') * qty),
        }
        payload.update(overrides)
        return payload

    def test_create_and_list(self, cashier_client, session, product_ids):
        response = cashier_client.post('/api/sales', json=self._payload(product_ids))

        assert response.status_code == 201
        sale_id = response.get_json()['id']

        sales = cashier_client.get('/api/sales').get_json()
        assert [s['id'] for s in sales] == [sale_id]
        assert sales[0]['soldItems'][0]['quantity'] == 2
        assert cashier_client.get(f'/api/sales/{sale_id}').status_code == 200
        assert session.get(Product, product_ids['CAP-2002']).stock_quantity == 22

    def test_mismatched_totals_rejected(self, cashier_client, product_ids):
        response = cashier_client.post('/api/sales', json=self._payload(product_ids, totalAmount='1.00'))
        assert response.status_code == 400

    def test_oversell_rejected(self, cashier_client, product_ids):
        response = cashier_client.post('/api/sales', json=self._payload(product_ids, qty=25))

        assert response.status_code == 409
        assert response.get_json()['error'] == 'insufficient_stock'

    def test_duplicate_lines_rejected(self, cashier_client, product_ids):
        payload = self._payload(product_ids)
        payload['soldItems'] *= 2
        response = cashier_client.post('/api/sales', json=payload)
        assert response.status_code == 400

    def test_sold_items_come_from_catalog(self, cashier_client, product_ids):
        sale = cashier_client.post('/api/sales', json=self._payload(product_ids, qty=1)).get_json()

        item = sale['soldItems'][0]
        assert item['productCode'] == 'CAP-2002'
        assert item['name'] == 'Cappuccino'
        assert Decimal(item['price']) == Decimal('4.50')

    @pytest.mark.parametrize('price', ['-3.00', '0', 'Infinity', 'NaN', 'free'])
    def test_non_positive_price_rejected(self, cashier_client, session, product_ids, price):
        payload = self._payload(product_ids, qty=1, subtotal=None, totalAmount=None)
        payload['soldItems'][0]['price'] = price

        response = cashier_client.post('/api/sales', json=payload)

        assert response.status_code == 400
        assert session.query(Sale).count() == 0
        assert session.get(Product, product_ids['CAP-2002']).stock_quantity == 24

    @pytest.mark.parametrize('field, value', [
        ('productCode', 'FAKE'),
        ('name', 'Renamed'),
        ('price', '0.01'),
    ])
    def test_lines_disagreeing_with_catalog_rejected(self, cashier_client, session, product_ids, field, value):
        payload = self._payload(product_ids, qty=5, subtotal=None, totalAmount=None)
        payload['soldItems'][0][field] = value

        response = cashier_client.post('/api/sales', json=payload)

        assert response.status_code == 400
        assert session.query(Sale).count() == 0
        assert session.get(Product, product_ids['CAP-2002']).stock_quantity == 24

    def test_unknown_product_id(self, cashier_client, product_ids):
        payload = self._payload(product_ids)
        payload['soldItems'][0]['productId'] = 'missing-id'

        response = cashier_client.post('/api/sales', json=payload)

        assert response.status_code == 404
        assert response.get_json()['error'] == 'product_not_found'

    def test_unknown_sale(self, cashier_client, product_ids):
        assert cashier_client.get('/api/sales/nope').status_code == 404
