"""
Pytest fixtures for back-office tests.

Provides an in-memory database, a temporary upload folder, users per role,
a category with prefix and a product, plus login helpers.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Product, ProductCategory
from backoffice.models.auth import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_STAFF
from backoffice.services.auth_service import create_user

PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
        'BCRYPT_LOG_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(email: str, role: str):
    return create_user(
        email=email,
        password=PASSWORD,
        first_name=role.title(),
        last_name="Tester",
        role=role,
    )


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("admin@test.local", ROLE_ADMIN)


@pytest.fixture(scope='function')
def staff_user(db_session):
    return _make_user("staff@test.local", ROLE_STAFF)


@pytest.fixture(scope='function')
def customer_user(db_session):
    return _make_user("customer@test.local", ROLE_CUSTOMER)


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email, PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email, PASSWORD))


@pytest.fixture(scope='function')
def customer_headers(client, customer_user):
    return auth_headers(get_auth_token(client, customer_user.email, PASSWORD))


@pytest.fixture(scope='function')
def category(db_session):
    """Category with prefix DRES."""
    category = ProductCategory(name="ชุดเดรส", prefix="DRES", description="Dresses", status="active")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product(db_session, category):
    """Active product DRES00001: 100.00 ex VAT, 7% VAT, 20 in stock."""
    product = Product(
        sku="DRES00001",
        name="Floral Dress",
        category_id=category.id,
        price_excluding_vat=Decimal("100.00"),
        vat_rate=Decimal("7.00"),
        vat_amount=Decimal("7.00"),
        price_including_vat=Decimal("107.00"),
        stock_quantity=20,
        low_stock_threshold=5,
        status="active",
    )
    db_session.add(product)
    db_session.commit()
    return product


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def fail_commit_for(monkeypatch, model):
    """Make db.session.commit raise while a `model` row is pending; other commits go through."""
    real_commit = db.session.commit

    def commit():
        pending = list(db.session.new) + list(db.session.dirty)
        if any(isinstance(obj, model) for obj in pending):
            raise OperationalError('COMMIT', {}, Exception('database is locked'))
        return real_commit()

    monkeypatch.setattr(db.session, 'commit', commit)
