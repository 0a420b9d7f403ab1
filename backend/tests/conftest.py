"""
Pytest fixtures for stockroom backend tests.

Provides test database setup, users of each role, catalog items, a
recording notification sink, and bearer-token helpers.
"""

import os
import tempfile

import pytest

from app import create_app
from app.extensions import db
from app.models import InventoryItem, User
from app.models.auth import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER
from app.services import session_service
from app.services.auth_service import hash_password
from app.services.notification_service import NotificationSink


TEST_PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'NOTIFICATIONS_ASYNC': False,
    'NOTIFICATION_WEBHOOK_URL': None,
    'PAYMENT_GATEWAY_URL': 'https://gateway.test/v1',
    'PAYMENT_SECRET_KEY': 'test-secret',
    'PAYMENT_CALLBACK_BASE_URL': 'http://stockroom.test',
    'PAYMENT_RETURN_URL': 'http://stockroom.test/thank-you',
    'LOG_LEVEL': 'WARNING',
}


class RecordingSink(NotificationSink):
    """Keeps every delivered notification for assertions."""

    name = "recording"

    def __init__(self):
        self.sent = []

    def send(self, kind, payload):
        self.sent.append((kind, payload))

    def of_kind(self, kind):
        return [payload for k, payload in self.sent if k == kind]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def notifications(app):
    """Swap the dispatcher sinks for a recorder for one test."""
    dispatcher = app.extensions["notifier"]
    original = dispatcher.sinks
    recorder = RecordingSink()
    dispatcher.sinks = [recorder]
    yield recorder
    dispatcher.sinks = original


def make_user(db_session, *, name, email, role, phone="0911000000"):
    user = User(
        name=name,
        email=email,
        phone=phone,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_item(db_session, author, *, name, quantity, price_cents=1000, threshold=10, category="Electronics"):
    item = InventoryItem(
        name=name,
        category=category,
        price_cents=price_cents,
        quantity=quantity,
        low_stock_threshold=threshold,
        author_id=author.id,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, name="Alex Admin", email="admin@stockroom.test", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager_user(db_session):
    return make_user(db_session, name="Morgan Manager", email="manager@stockroom.test", role=ROLE_MANAGER)


@pytest.fixture(scope='function')
def employee_user(db_session):
    return make_user(db_session, name="Eli Employee", email="employee@stockroom.test", role=ROLE_EMPLOYEE)


@pytest.fixture(scope='function')
def widget(db_session, admin_user):
    """15 on hand, threshold 10, 12.50 each."""
    return make_item(db_session, admin_user, name="Widget", quantity=15, price_cents=1250, threshold=10)


@pytest.fixture(scope='function')
def gadget(db_session, admin_user):
    """5 on hand, threshold 2, 1000.00 each."""
    return make_item(db_session, admin_user, name="Gadget", quantity=5, price_cents=100_000, threshold=2)


def auth_headers_for(user):
    _, token = session_service.create_session(user_id=user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers_for(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return auth_headers_for(manager_user)


@pytest.fixture(scope='function')
def employee_headers(employee_user):
    return auth_headers_for(employee_user)


@pytest.fixture(scope='function')
def file_app():
    """
    App on a file-backed SQLite database.

    Threads each get their own connection here; the in-memory app shares
    one connection and cannot exercise real lock contention.
    """
    fd, path = tempfile.mkstemp(suffix=".sqlite3")
    os.close(fd)

    config = dict(TEST_CONFIG)
    config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{path}"
    config['SQLALCHEMY_ENGINE_OPTIONS'] = {"connect_args": {"timeout": 30}}
    config['TRANSACTION_RETRY_ATTEMPTS'] = 5

    app = create_app(config)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    try:
        os.remove(path)
    except OSError:
        pass
