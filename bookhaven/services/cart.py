import logging
from decimal import Decimal

from bookhaven.errors import BookNotFound, NotFound, OutOfStock, ValidationError
from bookhaven.models.base import to_money
from bookhaven.services.checkout import (FREE_SHIPPING_THRESHOLD, SHIPPING_FEE, ZERO,
                                         shipping_fee_for, subtotal_of)

logger = logging.getLogger(__name__)

ESTIMATED_TAX_RATE = Decimal('0.08')

ADDITIVE = 'additive'
REPLACE = 'replace'
MERGE_STRATEGIES = (ADDITIVE, REPLACE)


def _available_book(storage, book_id):
    book = storage.get_book(book_id)
    if book is None:
        raise BookNotFound()
    if not book.in_stock:
        raise OutOfStock(f'{book.title} is out of stock', book_id=book.id)
    return book


def add_or_increment(storage, user_id, book_id, quantity=1):
    """Add ``quantity`` of a book, merging into the existing line if there is one.

    Returns ``(item, created)``; ``created`` is False when a line was incremented.
    """
    if quantity < 1:
        raise ValidationError('Quantity must be at least 1')
    with storage.transaction():
        _available_book(storage, book_id)
        existing = storage.get_cart_item_by_book(user_id, book_id)
        if existing:
            item = storage.update_cart_item(existing.id, {'quantity': existing.quantity + quantity})
            return item, False
        item = storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': quantity})
        return item, True


def set_quantity(storage, user_id, book_id, quantity):
    """Set a line's quantity; zero or less removes the line. Returns None on removal."""
    with storage.transaction():
        existing = storage.get_cart_item_by_book(user_id, book_id)
        if quantity <= 0:
            if existing:
                storage.remove_from_cart(existing.id)
            return None
        if existing:
            return storage.update_cart_item(existing.id, {'quantity': quantity})
        _available_book(storage, book_id)
        return storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': quantity})


def remove(storage, user_id, book_id):
    with storage.transaction():
        existing = storage.get_cart_item_by_book(user_id, book_id)
        if existing is None:
            raise NotFound('Item not found in cart')
        storage.remove_from_cart(existing.id)


def clear(storage, user_id):
    storage.clear_cart(user_id)


def cart_summary(storage, user_id, free_shipping_threshold=FREE_SHIPPING_THRESHOLD,
                 shipping_fee=SHIPPING_FEE, tax_rate=ESTIMATED_TAX_RATE):
    """Cart lines with their books and the totals shown before checkout.

    The tax figure is an estimate for display; checkout never charges it.
    """
    lines = []
    for item in storage.get_cart_items(user_id):
        book = storage.get_book(item.book_id)
        if book is not None:
            lines.append((item, book))

    subtotal = subtotal_of(lines)
    shipping = shipping_fee_for(subtotal, free_shipping_threshold, shipping_fee) if lines else ZERO
    tax = to_money(subtotal * Decimal(str(tax_rate)))
    return {
        'items': [dict(item.to_dict(), book=book.to_dict()) for item, book in lines],
        'count': sum(item.quantity for item, _ in lines),
        'subtotal': float(subtotal),
        'shipping': float(shipping),
        'estimated_tax': float(tax),
        'estimated_total': float(subtotal + shipping + tax),
    }


def _parse_guest_items(items):
    if not isinstance(items, list):
        raise ValidationError('items must be a list')
    quantities = {}
    for entry in items:
        if not isinstance(entry, dict):
            raise ValidationError('Each item needs a book_id and a quantity')
        book_id = entry.get('book_id')
        quantity = entry.get('quantity', 1)
        if isinstance(book_id, bool) or not isinstance(book_id, int):
            raise ValidationError('book_id must be an integer')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError('quantity must be a positive integer')
        quantities[book_id] = quantities.get(book_id, 0) + quantity
    return quantities


def merge_guest_cart(storage, user_id, items, strategy=ADDITIVE):
    """Fold a client-side guest cart into the user's stored cart.

    ``additive`` adds guest quantities to existing lines; ``replace`` lets the
    guest quantity win for every book the guest cart names. Books that are
    gone or out of stock are skipped and reported.
    """
    if strategy not in MERGE_STRATEGIES:
        raise ValueError(f'Unknown cart merge strategy {strategy!r}')
    quantities = _parse_guest_items(items)

    skipped = []
    with storage.transaction():
        for book_id, quantity in quantities.items():
            book = storage.get_book(book_id)
            if book is None:
                skipped.append({'book_id': book_id, 'reason': 'not_found'})
                continue
            if not book.in_stock:
                skipped.append({'book_id': book_id, 'reason': 'out_of_stock'})
                continue
            existing = storage.get_cart_item_by_book(user_id, book_id)
            if existing is None:
                storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': quantity})
            elif strategy == ADDITIVE:
                storage.update_cart_item(existing.id, {'quantity': existing.quantity + quantity})
            else:
                storage.update_cart_item(existing.id, {'quantity': quantity})

    logger.info('Merged %d guest cart line(s) for user %s (%s), skipped %d',
                len(quantities) - len(skipped), user_id, strategy, len(skipped))
    return skipped
