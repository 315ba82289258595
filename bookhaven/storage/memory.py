import logging
import threading
from contextlib import contextmanager

from bookhaven.errors import Conflict, NotFound, ValidationError
from bookhaven.models import (User, Category, Book, CartItem, Order, OrderItem, Subscriber,
                              ORDER_STATUSES)
from bookhaven.models.base import utcnow, to_money
from bookhaven.storage.base import (Storage, pick, check_ranges, LATEST, PRICE_LOW,
                                    PRICE_HIGH, RATING, USER_FIELDS, CATEGORY_FIELDS, BOOK_FIELDS,
                                    CART_ITEM_FIELDS, ORDER_FIELDS, ORDER_ITEM_FIELDS,
                                    SUBSCRIBER_FIELDS)

logger = logging.getLogger(__name__)


class MemoryStorage(Storage):
    """Process-lifetime store over plain dicts, one per table.

    Rows are kept as dicts and handed out as detached model instances, so
    callers never hold a reference into the store. A re-entrant lock guards
    every operation; ``transaction()`` saves each table before its first write
    and restores the saved tables if the block raises.
    """

    name = 'memory'

    MODELS = {
        'users': User,
        'categories': Category,
        'books': Book,
        'cart_items': CartItem,
        'orders': Order,
        'order_items': OrderItem,
        'subscribers': Subscriber,
    }

    DEFAULTS = {
        'users': {'is_admin': False},
        'categories': {'icon': ''},
        'books': {'rating': 0.0, 'review_count': 0, 'in_stock': True},
        'cart_items': {'quantity': 1},
        'orders': {'status': 'pending'},
        'order_items': {},
        'subscribers': {},
    }

    TIMESTAMPED = ('users', 'books', 'cart_items', 'orders', 'subscribers')

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._undo = None
        self._tables = {table: {} for table in self.MODELS}
        self._counters = {table: 0 for table in self.MODELS}

    @contextmanager
    def transaction(self):
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._undo = {}
            self._depth += 1
            try:
                yield
            except Exception:
                if outermost:
                    self._rollback()
                raise
            finally:
                self._depth -= 1
                if outermost:
                    self._undo = None

    def _rollback(self):
        for table, (rows, counter) in self._undo.items():
            self._tables[table] = rows
            self._counters[table] = counter
        logger.debug('Memory transaction rolled back: %s',
                     ', '.join(sorted(self._undo)) or 'no writes')

    def _writable(self, table):
        """The live table, saved once per transaction before its first write."""
        if table not in self._undo:
            # row values are immutable, so copying each row dict is enough
            saved = {row_id: dict(row) for row_id, row in self._tables[table].items()}
            self._undo[table] = (saved, self._counters[table])
        return self._tables[table]

    def _require_writable(self, table, row_id, label):
        self._require(table, row_id, label)
        return self._writable(table)[row_id]

    def lock_cart(self, user_id):
        # the store lock is already held for the whole transaction
        if self._depth == 0:
            raise RuntimeError('lock_cart() must be called inside transaction()')

    # Row helpers
    def _entity(self, table, row):
        if row is None:
            return None
        return self.MODELS[table](**row)

    def _entities(self, table, rows):
        return [self._entity(table, row) for row in rows]

    def _rows(self, table):
        return sorted(self._tables[table].values(), key=lambda row: row['id'])

    def _require(self, table, row_id, label):
        row = self._tables[table].get(row_id)
        if row is None:
            raise NotFound(f'{label} with ID {row_id} not found')
        return row

    def _insert(self, table, values):
        rows = self._writable(table)
        self._counters[table] += 1
        row = dict(self.DEFAULTS[table])
        row.update(values)
        row['id'] = self._counters[table]
        if table in self.TIMESTAMPED:
            row['created_at'] = utcnow()
        rows[row['id']] = row
        return row

    # User operations
    def get_user(self, user_id):
        with self._lock:
            return self._entity('users', self._tables['users'].get(user_id))

    def _find_user(self, field, value, exclude_id=None):
        value = value.lower()
        for row in self._rows('users'):
            if row['id'] != exclude_id and row[field].lower() == value:
                return row
        return None

    def get_user_by_username(self, username):
        with self._lock:
            return self._entity('users', self._find_user('username', username))

    def get_user_by_email(self, email):
        with self._lock:
            return self._entity('users', self._find_user('email', email))

    def _check_user_unique(self, values, exclude_id=None):
        if 'username' in values and self._find_user('username', values['username'], exclude_id):
            raise Conflict('Username already taken')
        if 'email' in values and self._find_user('email', values['email'], exclude_id):
            raise Conflict('Email already in use')

    def create_user(self, data):
        values = pick(data, USER_FIELDS)
        with self.transaction():
            self._check_user_unique(values)
            return self._entity('users', self._insert('users', values))

    def update_user(self, user_id, data):
        values = pick(data, USER_FIELDS)
        with self.transaction():
            row = self._require_writable('users', user_id, 'User')
            self._check_user_unique(values, exclude_id=user_id)
            row.update(values)
            return self._entity('users', row)

    # Category operations
    def list_categories(self):
        with self._lock:
            return self._entities('categories', self._rows('categories'))

    def get_category(self, category_id):
        with self._lock:
            return self._entity('categories', self._tables['categories'].get(category_id))

    def _find_category(self, name, exclude_id=None):
        name = name.lower()
        for row in self._rows('categories'):
            if row['id'] != exclude_id and row['name'].lower() == name:
                return row
        return None

    def get_category_by_name(self, name):
        with self._lock:
            return self._entity('categories', self._find_category(name))

    def create_category(self, data):
        values = pick(data, CATEGORY_FIELDS)
        values['book_count'] = 0
        with self.transaction():
            if self._find_category(values['name']):
                raise Conflict('Category already exists')
            return self._entity('categories', self._insert('categories', values))

    def update_category(self, category_id, data):
        values = pick(data, ('name', 'icon'))
        with self.transaction():
            row = self._require_writable('categories', category_id, 'Category')
            if 'name' in values and self._find_category(values['name'], exclude_id=category_id):
                raise Conflict('Category already exists')
            row.update(values)
            return self._entity('categories', row)

    def delete_category(self, category_id):
        with self.transaction():
            self._require('categories', category_id, 'Category')
            book_ids = [row['id'] for row in self._rows('books')
                        if row['category_id'] == category_id]
            for book_id in book_ids:
                if self._is_ordered(book_id):
                    raise Conflict('Category has books that were ordered and cannot be deleted')
            for book_id in book_ids:
                self._delete_cart_lines_for_book(book_id)
                del self._writable('books')[book_id]
            del self._writable('categories')[category_id]

    def _adjust_book_count(self, category_id, delta):
        row = self._require_writable('categories', category_id, 'Category')
        row['book_count'] = max(0, row['book_count'] + delta)

    def increment_category_book_count(self, category_id):
        with self.transaction():
            self._adjust_book_count(category_id, 1)

    def decrement_category_book_count(self, category_id):
        with self.transaction():
            self._adjust_book_count(category_id, -1)

    # Book operations
    def list_books(self, search=None, category_id=None, sort=None):
        with self._lock:
            rows = self._rows('books')
            if search:
                term = search.lower()
                rows = [row for row in rows
                        if term in row['title'].lower()
                        or term in row['author'].lower()
                        or term in row['description'].lower()]
            if category_id is not None:
                rows = [row for row in rows if row['category_id'] == category_id]

            # rows are in id order; sort() is stable, so ties keep it
            if sort == LATEST:
                rows.sort(key=lambda row: (row['created_at'], row['id']), reverse=True)
            elif sort == PRICE_LOW:
                rows.sort(key=lambda row: row['price'])
            elif sort == PRICE_HIGH:
                rows.sort(key=lambda row: row['price'], reverse=True)
            elif sort == RATING:
                rows.sort(key=lambda row: row['rating'], reverse=True)
            else:
                rows.sort(key=lambda row: row['review_count'], reverse=True)
            return self._entities('books', rows)

    def get_book(self, book_id):
        with self._lock:
            return self._entity('books', self._tables['books'].get(book_id))

    def create_book(self, data):
        values = pick(data, BOOK_FIELDS)
        values['price'] = to_money(values['price'])
        check_ranges(values)
        with self.transaction():
            self._require('categories', values['category_id'], 'Category')
            row = self._insert('books', values)
            self._adjust_book_count(row['category_id'], 1)
            return self._entity('books', row)

    def update_book(self, book_id, data):
        values = pick(data, BOOK_FIELDS)
        if 'price' in values:
            values['price'] = to_money(values['price'])
        check_ranges(values)
        with self.transaction():
            row = self._require_writable('books', book_id, 'Book')
            old_category_id = row['category_id']
            new_category_id = values.get('category_id', old_category_id)
            if new_category_id != old_category_id:
                self._require('categories', new_category_id, 'Category')
                self._adjust_book_count(old_category_id, -1)
                self._adjust_book_count(new_category_id, 1)
            row.update(values)
            return self._entity('books', row)

    def _is_ordered(self, book_id):
        return any(row['book_id'] == book_id for row in self._tables['order_items'].values())

    def _delete_cart_lines_for_book(self, book_id):
        for row in self._rows('cart_items'):
            if row['book_id'] == book_id:
                del self._writable('cart_items')[row['id']]

    def delete_book(self, book_id):
        with self.transaction():
            row = self._require('books', book_id, 'Book')
            if self._is_ordered(book_id):
                raise Conflict('Book has been ordered and cannot be deleted')
            self._delete_cart_lines_for_book(book_id)
            del self._writable('books')[book_id]
            self._adjust_book_count(row['category_id'], -1)

    def get_related_books(self, category_id, exclude_id, limit=4):
        with self._lock:
            rows = [row for row in self._rows('books')
                    if row['category_id'] == category_id and row['id'] != exclude_id]
            return self._entities('books', rows[:limit])

    # Cart operations
    def get_cart_items(self, user_id):
        with self._lock:
            rows = [row for row in self._rows('cart_items') if row['user_id'] == user_id]
            return self._entities('cart_items', rows)

    def get_cart_item(self, item_id):
        with self._lock:
            return self._entity('cart_items', self._tables['cart_items'].get(item_id))

    def _find_cart_line(self, user_id, book_id):
        for row in self._rows('cart_items'):
            if row['user_id'] == user_id and row['book_id'] == book_id:
                return row
        return None

    def get_cart_item_by_book(self, user_id, book_id):
        with self._lock:
            return self._entity('cart_items', self._find_cart_line(user_id, book_id))

    def add_to_cart(self, data):
        values = pick(data, CART_ITEM_FIELDS)
        check_ranges(values)
        with self.transaction():
            self._require('users', values['user_id'], 'User')
            self._require('books', values['book_id'], 'Book')
            if self._find_cart_line(values['user_id'], values['book_id']):
                raise Conflict('Book is already in the cart')
            return self._entity('cart_items', self._insert('cart_items', values))

    def update_cart_item(self, item_id, data):
        values = pick(data, ('quantity',))
        check_ranges(values)
        with self.transaction():
            row = self._require_writable('cart_items', item_id, 'Cart item')
            row.update(values)
            return self._entity('cart_items', row)

    def remove_from_cart(self, item_id):
        with self.transaction():
            self._require('cart_items', item_id, 'Cart item')
            del self._writable('cart_items')[item_id]

    def clear_cart(self, user_id):
        with self.transaction():
            for row in self._rows('cart_items'):
                if row['user_id'] == user_id:
                    del self._writable('cart_items')[row['id']]

    # Order operations
    def create_order(self, data):
        values = pick(data, ORDER_FIELDS)
        values['total_amount'] = to_money(values['total_amount'])
        check_ranges(values)
        if values.setdefault('status', 'pending') not in ORDER_STATUSES:
            raise ValidationError('Invalid status')
        with self.transaction():
            self._require('users', values['user_id'], 'User')
            return self._entity('orders', self._insert('orders', values))

    def get_order(self, order_id):
        with self._lock:
            return self._entity('orders', self._tables['orders'].get(order_id))

    def _newest_orders(self, rows):
        return sorted(rows, key=lambda row: (row['created_at'], row['id']), reverse=True)

    def get_user_orders(self, user_id):
        with self._lock:
            rows = [row for row in self._tables['orders'].values() if row['user_id'] == user_id]
            return self._entities('orders', self._newest_orders(rows))

    def list_orders(self, status=None):
        with self._lock:
            rows = [row for row in self._tables['orders'].values()
                    if status is None or row['status'] == status]
            return self._entities('orders', self._newest_orders(rows))

    def update_order_status(self, order_id, status):
        if status not in ORDER_STATUSES:
            raise ValidationError('Invalid status')
        with self.transaction():
            row = self._require_writable('orders', order_id, 'Order')
            row['status'] = status
            return self._entity('orders', row)

    def create_order_item(self, data):
        values = pick(data, ORDER_ITEM_FIELDS)
        values['price'] = to_money(values['price'])
        check_ranges(values)
        with self.transaction():
            self._require('orders', values['order_id'], 'Order')
            self._require('books', values['book_id'], 'Book')
            return self._entity('order_items', self._insert('order_items', values))

    def get_order_items(self, order_id):
        with self._lock:
            rows = [row for row in self._rows('order_items') if row['order_id'] == order_id]
            return self._entities('order_items', rows)

    # Subscriber operations
    def get_subscriber_by_email(self, email):
        email = email.lower()
        with self._lock:
            for row in self._rows('subscribers'):
                if row['email'].lower() == email:
                    return self._entity('subscribers', row)
        return None

    def create_subscriber(self, data):
        values = pick(data, SUBSCRIBER_FIELDS)
        with self.transaction():
            if self.get_subscriber_by_email(values['email']):
                raise Conflict('Email already subscribed')
            return self._entity('subscribers', self._insert('subscribers', values))
