"""
Cart engine - pending line items for one checkout session.

The cart is a plain value object: blueprints load it from the Flask session,
apply one operation and store it back. It never touches persisted stock;
reservations are only checked against the stock figures of the products
handed in by the caller.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from pos_app.exceptions import InvalidQuantityError, InsufficientStockError, ProductNotFoundError

DEFAULT_TAX_RATE = Decimal('0')


def parse_quantity(value: Any, allow_non_positive: bool = False) -> int:
    """
    Parse a quantity input into an int.

    Accepts ints, integral floats/Decimals and numeric strings ("3", "3.0").
    Raises InvalidQuantityError for anything else, and for values <= 0
    unless ``allow_non_positive`` is set.
    """
    if isinstance(value, bool):
        raise InvalidQuantityError(value)

    if isinstance(value, int):
        qty = value
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidQuantityError(value) from None
        if not number.is_finite() or number != number.to_integral_value():
            raise InvalidQuantityError(value)
        qty = int(number)

    if qty <= 0 and not allow_non_positive:
        raise InvalidQuantityError(value)
    return qty


def parse_tax_rate(value: Any) -> Decimal:
    """Parse the configured tax rate; blank means no tax."""
    if value is None or str(value).strip() == '':
        return DEFAULT_TAX_RATE
    rate = Decimal(str(value).strip())
    if rate < 0:
        raise ValueError(f'TAX_RATE must be >= 0, got {value}')
    return rate


def find_product_by_code(products: Iterable[Any], product_code: str):
    """Case-insensitive exact match of a scanned code against a catalog snapshot."""
    code = (product_code or '').strip().lower()
    if not code:
        raise ProductNotFoundError()
    for product in products:
        if product.product_code.strip().lower() == code:
            return product
    raise ProductNotFoundError(product_code.strip())


class ProductSnapshot:
    """Read-only product view for callers that do not hold ORM objects."""

    __slots__ = ('id', 'product_code', 'name', 'price', 'stock_quantity')

    def __init__(self, id, product_code, name, price, stock_quantity):
        self.id = str(id)
        self.product_code = product_code
        self.name = name
        self.price = Decimal(str(price))
        self.stock_quantity = int(stock_quantity)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'ProductSnapshot':
        return cls(
            data['id'], data['productCode'], data['name'],
            data['price'], data['stockQuantity']
        )

    def __repr__(self):
        return f"<ProductSnapshot(id={self.id}, code='{self.product_code}', stock={self.stock_quantity})>"


class CartLine:
    """One product in the cart with the code/name/price copied at add time."""

    __slots__ = ('product_id', 'product_code', 'name', 'price', 'quantity')

    def __init__(self, product_id, product_code, name, price, quantity):
        self.product_id = str(product_id)
        self.product_code = product_code
        self.name = name
        self.price = Decimal(str(price))
        self.quantity = int(quantity)

    @classmethod
    def from_product(cls, product, quantity: int) -> 'CartLine':
        return cls(product.id, product.product_code, product.name, product.price, quantity)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'product_code': self.product_code,
            'name': self.name,
            'price': str(self.price),
            'quantity': self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        return cls(data['product_id'], data['product_code'], data['name'], data['price'], data['quantity'])

    def __eq__(self, other):
        if not isinstance(other, CartLine):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"<CartLine(product_id={self.product_id}, code='{self.product_code}', qty={self.quantity})>"


class CartTotals:
    """Subtotal, tax and total of a cart, kept at full precision."""

    __slots__ = ('subtotal', 'tax', 'total')

    def __init__(self, subtotal: Decimal, tax: Decimal, total: Decimal):
        self.subtotal = subtotal
        self.tax = tax
        self.total = total

    def to_dict(self) -> Dict[str, str]:
        return {'subtotal': str(self.subtotal), 'tax': str(self.tax), 'total': str(self.total)}

    def __repr__(self):
        return f"<CartTotals(subtotal={self.subtotal}, tax={self.tax}, total={self.total})>"


class Cart:
    """Pending line items of one checkout session, at most one line per product."""

    def __init__(self, lines: Optional[Iterable[CartLine]] = None, tax_rate: Decimal = DEFAULT_TAX_RATE):
        self._lines: List[CartLine] = list(lines or [])
        self.tax_rate = Decimal(str(tax_rate))

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    def __len__(self):
        return len(self._lines)

    def __iter__(self):
        return iter(self.lines)

    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, product_id) -> Optional[CartLine]:
        product_id = str(product_id)
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def reserved(self, product_id) -> int:
        """Quantity currently held in the cart for a product."""
        product_id = str(product_id)
        return sum(line.quantity for line in self._lines if line.product_id == product_id)

    def add_line(self, product, requested_qty) -> CartLine:
        """
        Reserve ``requested_qty`` units of ``product``.

        Raises:
            InvalidQuantityError: quantity is not a positive whole number
            InsufficientStockError: not enough stock left once the cart's
                own reservation is counted (reports the available amount)
        """
        qty = parse_quantity(requested_qty)

        available = product.stock_quantity - self.reserved(product.id)
        if qty > available:
            raise InsufficientStockError(product.name, qty, max(available, 0))

        line = self.get_line(product.id)
        if line:
            line.quantity += qty
            return line

        line = CartLine.from_product(product, qty)
        self._lines.append(line)
        return line

    def set_line_quantity(self, product_id, quantity, product=None) -> Optional[CartLine]:
        """
        Replace a line's quantity.

        ``quantity <= 0`` removes the line (no product needed). Otherwise the
        authoritative ``product`` must be given and its stock must cover the
        new quantity. Returns the updated line, or None when nothing remains.
        """
        qty = parse_quantity(quantity, allow_non_positive=True)
        if qty <= 0:
            self.remove_line(product_id)
            return None

        if product is None:
            raise ProductNotFoundError(str(product_id))
        if qty > product.stock_quantity:
            raise InsufficientStockError(product.name, qty, product.stock_quantity)

        line = self.get_line(product_id)
        if line is None:
            return None
        line.quantity = qty
        return line

    def remove_line(self, product_id) -> bool:
        """Drop the line for a product; returns whether one was present."""
        product_id = str(product_id)
        before = len(self._lines)
        self._lines = [line for line in self._lines if line.product_id != product_id]
        return len(self._lines) != before

    def compute_totals(self) -> CartTotals:
        subtotal = sum((line.line_total for line in self._lines), Decimal('0'))
        tax = subtotal * self.tax_rate
        return CartTotals(subtotal, tax, subtotal + tax)

    def clear(self) -> None:
        self._lines = []

    def copy(self) -> 'Cart':
        return Cart([CartLine.from_dict(line.to_dict()) for line in self._lines], self.tax_rate)

    def to_dict(self) -> Dict[str, Any]:
        """Session-safe representation (no Decimals)."""
        return {'lines': [line.to_dict() for line in self._lines]}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], tax_rate: Decimal = DEFAULT_TAX_RATE) -> 'Cart':
        data = data or {}
        return cls([CartLine.from_dict(item) for item in data.get('lines', [])], tax_rate)

    def __repr__(self):
        return f"<Cart(lines={len(self._lines)}, tax_rate={self.tax_rate})>"
