"""Turning a user's cart into an order.

The whole workflow runs in one storage transaction: validation happens before
anything is written, and a failure while writing rolls back the order, its
items and the cart clearing together.
"""
import logging
from decimal import Decimal

from bookhaven.errors import BookNotFound, EmptyCart, OutOfStock
from bookhaven.models.base import to_money

logger = logging.getLogger(__name__)

FREE_SHIPPING_THRESHOLD = Decimal('35.00')
SHIPPING_FEE = Decimal('5.99')
ZERO = Decimal('0.00')


def shipping_fee_for(subtotal, threshold=FREE_SHIPPING_THRESHOLD, fee=SHIPPING_FEE):
    return to_money(fee) if subtotal < to_money(threshold) else ZERO


def subtotal_of(lines):
    """Sum of price x quantity over ``(cart_item, book)`` pairs."""
    return to_money(sum((to_money(book.price) * item.quantity for item, book in lines), ZERO))


def load_cart_lines(storage, user_id):
    """Pair each cart line with its book, failing on missing or unavailable books."""
    lines = []
    for item in storage.get_cart_items(user_id):
        book = storage.get_book(item.book_id)
        if book is None:
            raise BookNotFound(f'Book with ID {item.book_id} not found')
        if not book.in_stock:
            raise OutOfStock(f'{book.title} is out of stock', book_id=book.id)
        lines.append((item, book))
    return lines


def checkout(storage, user_id, shipping_address, payment_method,
             free_shipping_threshold=FREE_SHIPPING_THRESHOLD, shipping_fee=SHIPPING_FEE):
    """Create an order from the user's cart and empty the cart.

    Returns the new order id. Raises ``EmptyCart``, ``BookNotFound`` or
    ``OutOfStock`` before any write happens.
    """
    with storage.transaction():
        storage.lock_cart(user_id)
        lines = load_cart_lines(storage, user_id)
        if not lines:
            raise EmptyCart()

        subtotal = subtotal_of(lines)
        total = to_money(subtotal + shipping_fee_for(subtotal, free_shipping_threshold, shipping_fee))

        order = storage.create_order({
            'user_id': user_id,
            'status': 'pending',
            'total_amount': total,
            'shipping_address': shipping_address,
            'payment_method': payment_method,
        })
        order_id = order.id
        for item, book in lines:
            storage.create_order_item({
                'order_id': order_id,
                'book_id': book.id,
                'quantity': item.quantity,
                'price': book.price,
            })
        storage.clear_cart(user_id)

    logger.info('Order %s placed by user %s: %d line(s), total %s',
                order_id, user_id, len(lines), total)
    return order_id
