"""
Pytest configuration and fixtures for KeyTrack tests
"""
import os

# Console logging only while testing
os.environ.setdefault('KEYTRACK_LOG_TO_FILE', 'False')

import pytest  # noqa: E402

from keytrack import create_app  # noqa: E402
from keytrack import db as _db  # noqa: E402
from keytrack.business.actor import Actor  # noqa: E402
from keytrack.business.lifecycle.asset_lifecycle_manager import AssetLifecycleManager  # noqa: E402
from keytrack.test.helpers import ORG_ID, FakeClock  # noqa: E402


@pytest.fixture(scope='function')
def app():
    """Create Flask application with an in-memory database"""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'RATELIMIT_ENABLED': False,
    })

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def db(app):
    return _db


@pytest.fixture(scope='function')
def client(app):
    """Create Flask test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def store(app):
    return app.extensions['keytrack_store']


@pytest.fixture(scope='function')
def clock():
    return FakeClock()


@pytest.fixture(scope='function')
def actor():
    return Actor(id='user-1', name='Dana Operator')


@pytest.fixture(scope='function')
def manager(store, actor, clock):
    return AssetLifecycleManager(store, ORG_ID, actor, clock=clock)
