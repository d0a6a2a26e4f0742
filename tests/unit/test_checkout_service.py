"""
Unit tests for the checkout coordinator.
"""

from decimal import Decimal, InvalidOperation

import pytest

from pos_app.exceptions import EmptyCartError, InsufficientStockError, ProductNotFoundError
from pos_app.models import Product, Sale, SoldItem
from pos_app.services import catalog_service
from pos_app.services.cart_service import Cart, CartLine, ProductSnapshot
from pos_app.services.checkout_service import _decrement_stock, complete_sale, validate_cart


def _stock(session, product_id):
    session.expire_all()
    return session.get(Product, product_id).stock_quantity


class TestCompleteSale:
    """Validate-then-apply checkout."""

    def test_single_line_sale(self, session, products):
        espresso = products['ESP-1001']
        cart = Cart()
        cart.add_line(espresso, 5)

        sale_id = complete_sale(cart, session)

        assert _stock(session, espresso.id) == 25
        sale = session.get(Sale, sale_id)
        assert sale.subtotal == Decimal('15.00')
        assert sale.tax == Decimal('0')
        assert sale.total_amount == Decimal('15.00')
        assert len(sale.sold_items) == 1
        item = sale.sold_items[0]
        assert item.product_code == 'ESP-1001'
        assert item.quantity == 5
        assert item.price == Decimal('3.00')

    def test_cart_is_not_modified(self, session, products):
        cart = Cart()
        cart.add_line(products['ESP-1001'], 2)

        complete_sale(cart, session)

        assert len(cart) == 1
        assert cart.get_line(products['ESP-1001'].id).quantity == 2

    def test_multi_line_sale_keeps_cart_order(self, session, products):
        cart = Cart()
        cart.add_line(products['CAP-2002'], 2)
        cart.add_line(products['ESP-1001'], 1)
        cart.add_line(products['BG-3003'], 5)

        sale_id = complete_sale(cart, session)

        sale = session.get(Sale, sale_id)
        assert [item.product_code for item in sale.sold_items] == ['CAP-2002', 'ESP-1001', 'BG-3003']
        assert sale.total_amount == Decimal('23.25')
        assert _stock(session, products['BG-3003'].id) == 0

    def test_tax_rate_applied(self, session, products):
        cart = Cart(tax_rate=Decimal('0.08'))
        cart.add_line(products['ESP-1001'], 5)

        sale = session.get(Sale, complete_sale(cart, session))

        assert sale.subtotal == Decimal('15.00')
        assert sale.tax == Decimal('1.20')
        assert sale.total_amount == Decimal('16.20')

    def test_tax_rate_override(self, session, products):
        cart = Cart()
        cart.add_line(products['ESP-1001'], 5)

        sale = session.get(Sale, complete_sale(cart, session, tax_rate=Decimal('0.1')))

        assert sale.tax == Decimal('1.50')
        assert cart.tax_rate == Decimal('0')

    def test_empty_cart_rejected(self, session, products):
        with pytest.raises(EmptyCartError):
            complete_sale(Cart(), session)
        assert session.query(Sale).count() == 0

    def test_stale_stock_rolls_back_everything(self, session, products):
        espresso_id = products['ESP-1001'].id
        cappuccino_id = products['CAP-2002'].id
        cart = Cart()
        cart.add_line(products['ESP-1001'], 5)
        cart.add_line(products['CAP-2002'], 4)

        # Another terminal sold cappuccinos after they were carted
        catalog_service.adjust_stock(session, cappuccino_id, -22)

        with pytest.raises(InsufficientStockError) as exc:
            complete_sale(cart, session)

        assert exc.value.product_name == 'Cappuccino'
        assert exc.value.available == 2
        assert _stock(session, espresso_id) == 30
        assert _stock(session, cappuccino_id) == 2
        assert session.query(Sale).count() == 0
        assert session.query(SoldItem).count() == 0

    def test_deleted_product_rejected(self, session, products):
        cart = Cart()
        cart.add_line(products['ESP-1001'], 1)
        cart.add_line(products['BG-3003'], 1)

        catalog_service.delete_product(session, products['BG-3003'].id)

        with pytest.raises(ProductNotFoundError) as exc:
            complete_sale(cart, session)

        assert 'BG-3003' in exc.value.message
        assert _stock(session, products['ESP-1001'].id) == 30
        assert session.query(Sale).count() == 0

    def test_sold_items_keep_cart_snapshot(self, session, products):
        espresso_id = products['ESP-1001'].id
        cart = Cart()
        cart.add_line(products['ESP-1001'], 2)

        catalog_service.update_product(session, espresso_id, {'name': 'Double Espresso', 'price': '5.00'})

        sale = session.get(Sale, complete_sale(cart, session))
        item = sale.sold_items[0]
        assert item.name == 'Espresso Shot'
        assert item.price == Decimal('3.00')
        assert sale.total_amount == Decimal('6.00')

    def test_unexpected_error_after_decrement_rolls_back(self, session, products):
        espresso_id = products['ESP-1001'].id
        cart = Cart([CartLine(espresso_id, 'ESP-1001', 'Espresso Shot', Decimal('Infinity'), 1)])

        with pytest.raises(InvalidOperation):
            complete_sale(cart, session)

        assert _stock(session, espresso_id) == 30
        assert session.query(Sale).count() == 0

    def test_history_survives_product_deletion(self, session, products):
        cart = Cart()
        cart.add_line(products['CAP-2002'], 1)
        sale_id = complete_sale(cart, session)

        catalog_service.delete_product(session, products['CAP-2002'].id)

        session.expire_all()
        sale = session.get(Sale, sale_id)
        assert sale.sold_items[0].product_code == 'CAP-2002'
        assert sale.sold_items[0].name == 'Cappuccino'


class TestGuardedDecrement:

    def test_refuses_to_oversell(self, session, products):
        espresso = products['ESP-1001']

        with pytest.raises(InsufficientStockError) as exc:
            _decrement_stock(session, espresso, 31)

        assert exc.value.available == 30
        session.rollback()
        assert _stock(session, espresso.id) == 30

    def test_decrements_in_place(self, session, products):
        espresso = products['ESP-1001']
        _decrement_stock(session, espresso, 30)
        session.commit()
        assert _stock(session, espresso.id) == 0


class TestValidateCart:
    """Validation against a plain catalog snapshot."""

    def test_returns_plan_in_cart_order(self):
        a = ProductSnapshot('a', 'A-1', 'Alpha', '1.00', 3)
        b = ProductSnapshot('b', 'B-1', 'Beta', '2.00', 3)
        cart = Cart()
        cart.add_line(b, 1)
        cart.add_line(a, 2)

        plan = validate_cart(cart, {'a': a, 'b': b})

        assert [(line.product_id, product.id) for line, product in plan] == [('b', 'b'), ('a', 'a')]

    def test_empty_cart(self):
        with pytest.raises(EmptyCartError):
            validate_cart(Cart(), {})

    def test_lower_stock_in_snapshot(self):
        a = ProductSnapshot('a', 'A-1', 'Alpha', '1.00', 3)
        cart = Cart()
        cart.add_line(a, 3)

        with pytest.raises(InsufficientStockError):
            validate_cart(cart, {'a': ProductSnapshot('a', 'A-1', 'Alpha', '1.00', 2)})
