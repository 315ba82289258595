import pytest

from bookhaven import create_app, db
from bookhaven.storage import MemoryStorage, SqlStorage, get_storage

STORES = {
    'memory': MemoryStorage,
    'sql': SqlStorage,
}


@pytest.fixture(params=sorted(STORES))
def app(request):
    """The testing app over each store in turn."""
    app = create_app('testing', storage=STORES[request.param]())
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def storage(app):
    # Storage tests hold one app context; API tests must not, since
    # Flask-Login caches the current user on it.
    with app.app_context():
        yield get_storage()


@pytest.fixture
def client(app):
    return app.test_client()
