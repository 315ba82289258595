from bookhaven.errors import BookNotFound
from bookhaven.storage.base import SORT_KEYS, POPULAR


def normalize_sort(sort):
    """Unknown or missing sort keys fall back to ``popular``."""
    return sort if sort in SORT_KEYS else POPULAR


def search_books(storage, search=None, category_id=None, sort=None):
    """Books matching ``search`` in title, author or description (any of them),
    optionally limited to one category, in ``sort`` order.
    """
    return storage.list_books(search=search or None, category_id=category_id,
                              sort=normalize_sort(sort))


def get_book(storage, book_id):
    book = storage.get_book(book_id)
    if book is None:
        raise BookNotFound()
    return book


def related_books(storage, book_id, limit=4):
    book = get_book(storage, book_id)
    return storage.get_related_books(book.category_id, book.id, limit=limit)

