from flask import current_app

from bookhaven.storage.base import Storage, SORT_KEYS
from bookhaven.storage.memory import MemoryStorage
from bookhaven.storage.sql import SqlStorage

BACKENDS = {
    MemoryStorage.name: MemoryStorage,
    SqlStorage.name: SqlStorage,
}

EXTENSION_KEY = 'bookhaven.storage'


def create_storage(backend):
    try:
        return BACKENDS[backend]()
    except KeyError:
        raise ValueError(f'Unknown storage backend {backend!r}; expected one of {sorted(BACKENDS)}')


def init_storage(app, storage=None):
    """Attach the store chosen by ``STORAGE_BACKEND`` (or the one given) to the app."""
    if storage is None:
        storage = create_storage(app.config['STORAGE_BACKEND'])
    storage.init_app(app)
    app.extensions[EXTENSION_KEY] = storage
    return storage


def get_storage():
    return current_app.extensions[EXTENSION_KEY]


__all__ = ['Storage', 'MemoryStorage', 'SqlStorage', 'SORT_KEYS', 'create_storage',
           'init_storage', 'get_storage']
