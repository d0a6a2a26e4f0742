import os
import tempfile

import pytest

# Point the app at a throwaway SQLite file unless a test database is given
_DB_DIR = tempfile.mkdtemp(prefix='pos-tests-')
os.environ['DATABASE_URL'] = os.getenv(
    'TEST_DATABASE_URL', f"sqlite:///{os.path.join(_DB_DIR, 'pos_test.db')}"
)

from pos_app import create_app
from pos_app.database import db_session, create_all, drop_all
from pos_app.models import AppUser, UserRole
from pos_app.services import catalog_service


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['TAX_RATE'] = '0'
    app.config['LOW_STOCK_THRESHOLD'] = 10
    return app


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema per test; yields the scoped session."""
    db_session.remove()
    drop_all()
    create_all()
    yield db_session
    db_session.rollback()
    db_session.remove()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def products(session):
    """Sample catalog keyed by product code."""
    created = {}
    for fields in (
        {'productCode': 'ESP-1001', 'name': 'Espresso Shot', 'price': '3.00', 'stockQuantity': 30},
        {'productCode': 'CAP-2002', 'name': 'Cappuccino', 'price': '4.50', 'stockQuantity': 24},
        {'productCode': 'BG-3003', 'name': 'Fresh Bagel', 'price': '2.25', 'stockQuantity': 5},
    ):
        product = catalog_service.create_product(session, fields)
        created[product.product_code] = product
    return created


@pytest.fixture(scope='function')
def product_ids(products):
    """Product ids by code (stable across requests, unlike ORM instances)."""
    return {code: product.id for code, product in products.items()}


def _make_user(session, username, role):
    user = AppUser(username=username, name=username.title(), role=role, active=True)
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user.id


@pytest.fixture(scope='function')
def admin_id(session):
    return _make_user(session, 'admin', UserRole.ADMIN.value)


@pytest.fixture(scope='function')
def cashier_id(session):
    return _make_user(session, 'cashier', UserRole.CASHIER.value)


def _login(client, user_id):
    with client.session_transaction() as sess:
        sess['user_id'] = user_id
    return client


@pytest.fixture(scope='function')
def cashier_client(client, cashier_id):
    """Test client logged in as a cashier."""
    return _login(client, cashier_id)


@pytest.fixture(scope='function')
def admin_client(client, admin_id):
    """Test client logged in as an admin."""
    return _login(client, admin_id)
