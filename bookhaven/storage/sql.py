import logging
import sqlite3
from contextlib import contextmanager

from sqlalchemy import case, event, func, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from bookhaven import db
from bookhaven.errors import Conflict, NotFound, ValidationError
from bookhaven.models import (User, Category, Book, CartItem, Order, OrderItem, Subscriber,
                              ORDER_STATUSES)
from bookhaven.models.base import to_money
from bookhaven.storage.base import (Storage, pick, check_ranges, LATEST, PRICE_LOW,
                                    PRICE_HIGH, RATING, USER_FIELDS, CATEGORY_FIELDS, BOOK_FIELDS,
                                    CART_ITEM_FIELDS, ORDER_FIELDS, ORDER_ITEM_FIELDS,
                                    SUBSCRIBER_FIELDS)

logger = logging.getLogger(__name__)


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


BOOK_ORDERING = {
    LATEST: (Book.created_at.desc(), Book.id.desc()),
    PRICE_LOW: (Book.price.asc(), Book.id.asc()),
    PRICE_HIGH: (Book.price.desc(), Book.id.asc()),
    RATING: (Book.rating.desc(), Book.id.asc()),
}
POPULAR_ORDERING = (Book.review_count.desc(), Book.id.asc())

categories_table = Category.__table__


class SqlStorage(Storage):
    """Relational store on the Flask-SQLAlchemy session.

    Transaction depth is tracked in ``session.info`` so nested
    ``transaction()`` blocks join the outermost one, which alone commits or
    rolls back.
    """

    name = 'sql'

    def init_app(self, app):
        with app.app_context():
            db.create_all()

    @contextmanager
    def transaction(self):
        info = db.session.info
        depth = info.get('transaction_depth', 0)
        info['transaction_depth'] = depth + 1
        try:
            yield
            if depth == 0:
                db.session.commit()
        except Exception:
            if depth == 0:
                db.session.rollback()
                logger.debug('SQL transaction rolled back')
            raise
        finally:
            info['transaction_depth'] = depth

    def lock_cart(self, user_id):
        db.session.execute(select(User.id).where(User.id == user_id).with_for_update())

    # Helpers
    def _require(self, model, row_id, label):
        obj = db.session.get(model, row_id)
        if obj is None:
            raise NotFound(f'{label} with ID {row_id} not found')
        return obj

    def _add(self, obj):
        db.session.add(obj)
        self._flush()
        return obj

    def _flush(self):
        try:
            db.session.flush()
        except IntegrityError as exc:
            # CHECK and NOT NULL failures are bad input, the rest are clashes
            message = str(exc.orig).upper()
            if 'CHECK' in message or 'NULL' in message:
                raise ValidationError('Invalid value') from exc
            raise Conflict('Conflicts with an existing record') from exc

    def _first(self, query):
        return db.session.scalars(query.limit(1)).first()

    # User operations
    def get_user(self, user_id):
        return db.session.get(User, user_id)

    def _find_user(self, column, value, exclude_id=None):
        query = select(User).where(func.lower(column) == value.lower())
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        return self._first(query)

    def get_user_by_username(self, username):
        return self._find_user(User.username, username)

    def get_user_by_email(self, email):
        return self._find_user(User.email, email)

    def _check_user_unique(self, values, exclude_id=None):
        if 'username' in values and self._find_user(User.username, values['username'], exclude_id):
            raise Conflict('Username already taken')
        if 'email' in values and self._find_user(User.email, values['email'], exclude_id):
            raise Conflict('Email already in use')

    def create_user(self, data):
        values = pick(data, USER_FIELDS)
        with self.transaction():
            self._check_user_unique(values)
            user = self._add(User(**values))
        return user

    def update_user(self, user_id, data):
        values = pick(data, USER_FIELDS)
        with self.transaction():
            user = self._require(User, user_id, 'User')
            self._check_user_unique(values, exclude_id=user_id)
            for key, value in values.items():
                setattr(user, key, value)
            self._flush()
        return user

    # Category operations
    def list_categories(self):
        return list(db.session.scalars(select(Category).order_by(Category.id)))

    def get_category(self, category_id):
        return db.session.get(Category, category_id)

    def _find_category(self, name, exclude_id=None):
        query = select(Category).where(func.lower(Category.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        return self._first(query)

    def get_category_by_name(self, name):
        return self._find_category(name)

    def create_category(self, data):
        values = pick(data, CATEGORY_FIELDS)
        values['book_count'] = 0
        with self.transaction():
            if self._find_category(values['name']):
                raise Conflict('Category already exists')
            category = self._add(Category(**values))
        return category

    def update_category(self, category_id, data):
        values = pick(data, ('name', 'icon'))
        with self.transaction():
            category = self._require(Category, category_id, 'Category')
            if 'name' in values and self._find_category(values['name'], exclude_id=category_id):
                raise Conflict('Category already exists')
            for key, value in values.items():
                setattr(category, key, value)
            self._flush()
        return category

    def delete_category(self, category_id):
        with self.transaction():
            category = self._require(Category, category_id, 'Category')
            ordered = db.session.scalar(
                select(func.count(OrderItem.id))
                .join(Book, Book.id == OrderItem.book_id)
                .where(Book.category_id == category_id)
            )
            if ordered:
                raise Conflict('Category has books that were ordered and cannot be deleted')
            # cascades to the category's books and their cart lines
            db.session.delete(category)
            self._flush()

    def _set_book_count(self, category_id, value):
        self._flush()
        result = db.session.execute(
            update(categories_table)
            .where(categories_table.c.id == category_id)
            .values(book_count=value)
        )
        if result.rowcount == 0:
            raise NotFound(f'Category with ID {category_id} not found')
        cached = db.session.identity_map.get(db.session.identity_key(Category, category_id))
        if cached is not None:
            db.session.expire(cached, ['book_count'])

    def _increment(self, category_id):
        self._set_book_count(category_id, categories_table.c.book_count + 1)

    def _decrement(self, category_id):
        count = categories_table.c.book_count
        self._set_book_count(category_id, case((count > 0, count - 1), else_=0))

    def increment_category_book_count(self, category_id):
        with self.transaction():
            self._increment(category_id)

    def decrement_category_book_count(self, category_id):
        with self.transaction():
            self._decrement(category_id)

    # Book operations
    def list_books(self, search=None, category_id=None, sort=None):
        query = select(Book)
        if search:
            query = query.where(or_(
                Book.title.icontains(search, autoescape=True),
                Book.author.icontains(search, autoescape=True),
                Book.description.icontains(search, autoescape=True),
            ))
        if category_id is not None:
            query = query.where(Book.category_id == category_id)
        query = query.order_by(*BOOK_ORDERING.get(sort, POPULAR_ORDERING))
        return list(db.session.scalars(query))

    def get_book(self, book_id):
        return db.session.get(Book, book_id)

    def create_book(self, data):
        values = pick(data, BOOK_FIELDS)
        values['price'] = to_money(values['price'])
        check_ranges(values)
        with self.transaction():
            self._require(Category, values['category_id'], 'Category')
            book = self._add(Book(**values))
            self._increment(book.category_id)
        return book

    def update_book(self, book_id, data):
        values = pick(data, BOOK_FIELDS)
        if 'price' in values:
            values['price'] = to_money(values['price'])
        check_ranges(values)
        with self.transaction():
            book = self._require(Book, book_id, 'Book')
            old_category_id = book.category_id
            new_category_id = values.get('category_id', old_category_id)
            if new_category_id != old_category_id:
                self._require(Category, new_category_id, 'Category')
            for key, value in values.items():
                setattr(book, key, value)
            self._flush()
            if new_category_id != old_category_id:
                self._decrement(old_category_id)
                self._increment(new_category_id)
        return book

    def _is_ordered(self, book_id):
        return self._first(select(OrderItem.id).where(OrderItem.book_id == book_id)) is not None

    def delete_book(self, book_id):
        with self.transaction():
            book = self._require(Book, book_id, 'Book')
            if self._is_ordered(book_id):
                raise Conflict('Book has been ordered and cannot be deleted')
            category_id = book.category_id
            db.session.delete(book)
            self._flush()
            self._decrement(category_id)

    def get_related_books(self, category_id, exclude_id, limit=4):
        query = (select(Book)
                 .where(Book.category_id == category_id, Book.id != exclude_id)
                 .order_by(Book.id)
                 .limit(limit))
        return list(db.session.scalars(query))

    # Cart operations
    def get_cart_items(self, user_id):
        query = select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        return list(db.session.scalars(query))

    def get_cart_item(self, item_id):
        return db.session.get(CartItem, item_id)

    def get_cart_item_by_book(self, user_id, book_id):
        return self._first(select(CartItem).where(CartItem.user_id == user_id,
                                                  CartItem.book_id == book_id))

    def add_to_cart(self, data):
        values = pick(data, CART_ITEM_FIELDS)
        check_ranges(values)
        with self.transaction():
            self._require(User, values['user_id'], 'User')
            self._require(Book, values['book_id'], 'Book')
            if self.get_cart_item_by_book(values['user_id'], values['book_id']):
                raise Conflict('Book is already in the cart')
            item = self._add(CartItem(**values))
        return item

    def update_cart_item(self, item_id, data):
        values = pick(data, ('quantity',))
        check_ranges(values)
        with self.transaction():
            item = self._require(CartItem, item_id, 'Cart item')
            for key, value in values.items():
                setattr(item, key, value)
            self._flush()
        return item

    def remove_from_cart(self, item_id):
        with self.transaction():
            item = self._require(CartItem, item_id, 'Cart item')
            db.session.delete(item)
            self._flush()

    def clear_cart(self, user_id):
        with self.transaction():
            for item in self.get_cart_items(user_id):
                db.session.delete(item)
            self._flush()

    # Order operations
    def create_order(self, data):
        values = pick(data, ORDER_FIELDS)
        values['total_amount'] = to_money(values['total_amount'])
        check_ranges(values)
        if values.setdefault('status', 'pending') not in ORDER_STATUSES:
            raise ValidationError('Invalid status')
        with self.transaction():
            self._require(User, values['user_id'], 'User')
            order = self._add(Order(**values))
        return order

    def get_order(self, order_id):
        return db.session.get(Order, order_id)

    def get_user_orders(self, user_id):
        query = (select(Order)
                 .where(Order.user_id == user_id)
                 .order_by(Order.created_at.desc(), Order.id.desc()))
        return list(db.session.scalars(query))

    def list_orders(self, status=None):
        query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            query = query.where(Order.status == status)
        return list(db.session.scalars(query))

    def update_order_status(self, order_id, status):
        if status not in ORDER_STATUSES:
            raise ValidationError('Invalid status')
        with self.transaction():
            order = self._require(Order, order_id, 'Order')
            order.status = status
            self._flush()
        return order

    def create_order_item(self, data):
        values = pick(data, ORDER_ITEM_FIELDS)
        values['price'] = to_money(values['price'])
        check_ranges(values)
        with self.transaction():
            self._require(Order, values['order_id'], 'Order')
            self._require(Book, values['book_id'], 'Book')
            item = self._add(OrderItem(**values))
        return item

    def get_order_items(self, order_id):
        query = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        return list(db.session.scalars(query))

    # Subscriber operations
    def get_subscriber_by_email(self, email):
        return self._first(select(Subscriber).where(func.lower(Subscriber.email) == email.lower()))

    def create_subscriber(self, data):
        values = pick(data, SUBSCRIBER_FIELDS)
        with self.transaction():
            if self.get_subscriber_by_email(values['email']):
                raise Conflict('Email already subscribed')
            subscriber = self._add(Subscriber(**values))
        return subscriber
