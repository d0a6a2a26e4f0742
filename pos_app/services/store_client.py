"""
Store client - optimistic local view of the catalog and sales ledger.

Used by terminals that talk to the JSON API. Every mutating call updates the
local lists right away and returns a PendingWrite. The request then runs on
a single worker thread (so writes reach the server in call order):

- on success the local record is replaced by the server's (temporary ids
  become server ids);
- on failure the local state goes back to what it was before the call and
  the PendingWrite raises PersistenceError.

Nothing is retried automatically.
"""
import copy
import logging
import threading
import uuid
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from pos_app.exceptions import PersistenceError
from pos_app.services.cart_service import Cart, ProductSnapshot, find_product_by_code
from pos_app.services.checkout_service import validate_cart

logger = logging.getLogger(__name__)


def _temp_id() -> str:
    return f'tmp-{uuid.uuid4().hex}'


class PendingWrite:
    """Handle on an optimistic change awaiting server confirmation."""

    def __init__(self, local_id: Optional[str], future: Future):
        self.local_id = local_id
        self.future = future

    @property
    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None):
        """Server record on success; raises PersistenceError after rollback."""
        return self.future.result(timeout)

    def exception(self, timeout: Optional[float] = None):
        return self.future.exception(timeout)

    def __repr__(self):
        return f"<PendingWrite(local_id={self.local_id}, done={self.done})>"


class StoreClient:
    """Optimistic client for the products and sales API."""

    def __init__(
        self,
        base_url: str,
        http: Optional[requests.Session] = None,
        executor: Optional[Executor] = None,
        timeout: float = 10.0
    ):
        self.base_url = base_url.rstrip('/')
        self.http = http or requests.Session()
        self.timeout = timeout
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='store-client')
        self._lock = threading.RLock()
        self.products: List[Dict[str, Any]] = []
        self.sales: List[Dict[str, Any]] = []
        self.ready = False

    @classmethod
    def from_config(cls, config, **kwargs) -> 'StoreClient':
        return cls(config['STORE_API_URL'], timeout=config.get('STORE_API_TIMEOUT', 10.0), **kwargs)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, payload: Optional[dict] = None):
        url = f'{self.base_url}{path}'
        try:
            response = self.http.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise PersistenceError(f'{method} {path} failed: {e}') from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = f'{method} {path} failed with status {response.status_code}'
            error_code = None
            if isinstance(body, dict):
                message = body.get('message') or message
                error_code = body.get('error')
            raise PersistenceError(message, status_code=response.status_code, payload={'error': error_code})
        return body

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def login(self, username: str, password: str) -> Dict[str, Any]:
        return self._request('POST', '/auth/login', {'username': username, 'password': password})['user']

    def refresh(self) -> None:
        """Replace local state with the server's products and sales."""
        products = self._request('GET', '/api/products')
        sales = self._request('GET', '/api/sales')
        with self._lock:
            self.products = list(products or [])
            self.sales = list(sales or [])
            self.ready = True

    # ------------------------------------------------------------------
    # Local lookups
    # ------------------------------------------------------------------

    def _index_of(self, records: List[Dict[str, Any]], record_id: str) -> Optional[int]:
        for index, record in enumerate(records):
            if record['id'] == record_id:
                return index
        return None

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            index = self._index_of(self.products, product_id)
            return copy.deepcopy(self.products[index]) if index is not None else None

    def product_snapshots(self) -> List[ProductSnapshot]:
        with self._lock:
            return [ProductSnapshot.from_api(p) for p in self.products]

    def find_by_code(self, product_code: str) -> ProductSnapshot:
        return find_product_by_code(self.product_snapshots(), product_code)

    # ------------------------------------------------------------------
    # Optimistic writes
    # ------------------------------------------------------------------

    def _submit(
        self,
        local_id: Optional[str],
        remote: Callable[[], Any],
        confirm: Callable[[Any], Any],
        rollback: Callable[[], None]
    ) -> PendingWrite:
        def run():
            try:
                result = remote()
                with self._lock:
                    return confirm(result)
            except PersistenceError as e:
                with self._lock:
                    rollback()
                logger.warning(f"Optimistic write {local_id} rolled back: {e.message}")
                raise
            except (KeyError, TypeError, ValueError) as e:
                with self._lock:
                    rollback()
                logger.warning(f"Optimistic write {local_id} rolled back, malformed reply: {e!r}")
                raise PersistenceError(f'Malformed server reply: {e!r}', status_code=502) from e

        return PendingWrite(local_id, self._executor.submit(run))

    def _server_record(self, body: Any) -> Dict[str, Any]:
        """A server record must be an object carrying its id."""
        if not isinstance(body, dict) or not body.get('id'):
            raise ValueError(f'expected a record with an id, got {body!r}')
        return body

    def _replace(self, records: List[Dict[str, Any]], record_id: str, new_record: Dict[str, Any]) -> Dict[str, Any]:
        index = self._index_of(records, record_id)
        if index is not None:
            records[index] = new_record
        return new_record

    def add_product(self, fields: Dict[str, Any]) -> PendingWrite:
        """Show the product at once under a temporary id, then create it."""
        local_id = _temp_id()
        temp = dict(fields, id=local_id)
        with self._lock:
            self.products.append(temp)

        def rollback():
            self.products = [p for p in self.products if p['id'] != local_id]

        return self._submit(
            local_id,
            lambda: self._request('POST', '/api/products', fields),
            lambda created: self._replace(self.products, local_id, self._server_record(created)),
            rollback
        )

    def update_product(self, product_id: str, updates: Dict[str, Any]) -> PendingWrite:
        with self._lock:
            index = self._index_of(self.products, product_id)
            if index is None:
                raise KeyError(product_id)
            previous = copy.deepcopy(self.products[index])
            self.products[index] = dict(previous, **updates)

        return self._submit(
            product_id,
            lambda: self._request('PUT', f'/api/products/{product_id}', updates),
            lambda updated: self._replace(self.products, product_id, self._server_record(updated)),
            lambda: self._replace(self.products, product_id, previous)
        )

    def adjust_stock(self, product_id: str, delta: int) -> PendingWrite:
        """Local stock floors at zero like the server's."""
        with self._lock:
            index = self._index_of(self.products, product_id)
            if index is None:
                raise KeyError(product_id)
            previous = copy.deepcopy(self.products[index])
            self.products[index] = dict(
                previous, stockQuantity=max(int(previous['stockQuantity']) + int(delta), 0)
            )

        return self._submit(
            product_id,
            lambda: self._request('POST', f'/api/products/{product_id}/stock', {'delta': delta}),
            lambda updated: self._replace(self.products, product_id, self._server_record(updated)),
            lambda: self._replace(self.products, product_id, previous)
        )

    def delete_product(self, product_id: str) -> PendingWrite:
        with self._lock:
            index = self._index_of(self.products, product_id)
            if index is None:
                raise KeyError(product_id)
            removed = self.products.pop(index)

        def rollback():
            if self._index_of(self.products, product_id) is None:
                self.products.insert(min(index, len(self.products)), removed)

        return self._submit(
            product_id,
            lambda: self._request('DELETE', f'/api/products/{product_id}'),
            lambda result: result,
            rollback
        )

    def complete_sale(self, cart: Cart) -> PendingWrite:
        """
        Validate the cart against local stock, then record the sale.

        Local stock drops and a temporary sale is listed first right away.
        On success the temporary sale becomes the server's and products are
        refreshed; on failure both are restored. Validation errors
        (EmptyCartError, InsufficientStockError, ProductNotFoundError) are
        raised synchronously, before anything changes.
        """
        with self._lock:
            catalog = {p.id: p for p in self.product_snapshots()}
            validate_cart(cart, catalog)

            totals = cart.compute_totals()
            payload = {
                'soldItems': [
                    {
                        'productId': line.product_id,
                        'productCode': line.product_code,
                        'name': line.name,
                        'price': str(line.price),
                        'quantity': line.quantity,
                    }
                    for line in cart.lines
                ],
                'subtotal': str(totals.subtotal),
                'tax': str(totals.tax),
                'totalAmount': str(totals.total),
            }

            local_id = _temp_id()
            previous_stock = {}
            for line in cart.lines:
                index = self._index_of(self.products, line.product_id)
                product = self.products[index]
                previous_stock[line.product_id] = product['stockQuantity']
                self.products[index] = dict(
                    product, stockQuantity=int(product['stockQuantity']) - line.quantity
                )
            self.sales.insert(0, dict(payload, id=local_id, date=datetime.now().isoformat()))

        def remote():
            created = self._server_record(self._request('POST', '/api/sales', payload))
            try:
                products = self._request('GET', '/api/products')
            except PersistenceError as e:
                logger.warning(f"Sale {created['id']} recorded but product refresh failed: {e.message}")
                products = None
            return created, products

        def confirm(result):
            created, products = result
            self._replace(self.sales, local_id, created)
            if isinstance(products, list):
                self.products = list(products)
            return created

        def rollback():
            self.sales = [s for s in self.sales if s['id'] != local_id]
            for product_id, stock in previous_stock.items():
                index = self._index_of(self.products, product_id)
                if index is not None:
                    self.products[index] = dict(self.products[index], stockQuantity=stock)

        return self._submit(local_id, remote, confirm, rollback)
