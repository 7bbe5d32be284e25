"""
Pytest fixtures for the portal backend tests.

Provides an in-memory database, a fresh schema per test, the in-memory
notification channel, a test client and a small org chart:

    manager  <- employee
    other_manager <- outsider
    admin
"""

from decimal import Decimal

import pytest
from portal import create_app
from portal.extensions import db
from portal.models import Item, Profile
from portal.services.notification_service import EXTENSION_KEY


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'NOTIFICATION_CHANNEL': 'memory',
        'NOTIFY_ASYNC': False,
        'LOW_STOCK_RECIPIENTS': '',
        'IDENTITY_HEADER': 'X-Authenticated-Email',
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
def outbox(app):
    """Notifications handed to the channel during the test."""
    channel = app.extensions[EXTENSION_KEY]
    channel.clear()
    return channel


@pytest.fixture(scope='function')
def db_session(app, outbox):
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
        db.session.remove()


def _profile(session, **fields):
    profile = Profile(**fields)
    session.add(profile)
    session.commit()
    return profile


@pytest.fixture(scope='function')
def manager(db_session):
    return _profile(db_session, full_name="Maria Manager", email="maria@example.com", role="manager",
                    branch="Head Office")


@pytest.fixture(scope='function')
def employee(db_session, manager):
    return _profile(db_session, full_name="Evan Employee", email="evan@example.com", role="employee",
                    branch="North", cost_centre="CC-100", manager_id=manager.id)


@pytest.fixture(scope='function')
def other_manager(db_session):
    return _profile(db_session, full_name="Oscar Other", email="oscar@example.com", role="manager")


@pytest.fixture(scope='function')
def outsider(db_session, other_manager):
    return _profile(db_session, full_name="Olga Outsider", email="olga@example.com", role="employee",
                    manager_id=other_manager.id)


@pytest.fixture(scope='function')
def admin(db_session):
    return _profile(db_session, full_name="Ada Admin", email="ada@example.com", role="admin")


@pytest.fixture(scope='function')
def hoodie(db_session):
    item = Item(name="Hoodie", category="Uniform", supplier="Acme Apparel",
                unit_cost=Decimal("20.00"), low_stock_threshold=5, stock_balance=10)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def laptop(db_session):
    item = Item(name="Laptop", category="Laptop", unit_cost=Decimal("800.00"), stock_balance=3)
    db_session.add(item)
    db_session.commit()
    return item


def auth_headers(profile) -> dict:
    """Helper to create identity headers for a profile."""
    return {'X-Authenticated-Email': profile.email}


@pytest.fixture(scope='function')
def employee_headers(employee):
    return auth_headers(employee)


@pytest.fixture(scope='function')
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture(scope='function')
def other_manager_headers(other_manager):
    return auth_headers(other_manager)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)
