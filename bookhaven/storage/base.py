import abc

from bookhaven.errors import ValidationError

POPULAR = 'popular'
LATEST = 'latest'
PRICE_LOW = 'price-low'
PRICE_HIGH = 'price-high'
RATING = 'rating'

SORT_KEYS = (POPULAR, LATEST, PRICE_LOW, PRICE_HIGH, RATING)

USER_FIELDS = ('username', 'password', 'first_name', 'last_name', 'email', 'is_admin')
CATEGORY_FIELDS = ('name', 'icon', 'book_count')
BOOK_FIELDS = ('title', 'author', 'description', 'price', 'cover_image', 'rating',
               'review_count', 'pages', 'publisher', 'publication_date', 'language',
               'isbn', 'category_id', 'in_stock')
CART_ITEM_FIELDS = ('user_id', 'book_id', 'quantity')
ORDER_FIELDS = ('user_id', 'status', 'total_amount', 'shipping_address', 'payment_method')
ORDER_ITEM_FIELDS = ('order_id', 'book_id', 'quantity', 'price')
SUBSCRIBER_FIELDS = ('email',)


def pick(data, fields):
    """Keep only the writable columns of an entity."""
    return {key: data[key] for key in fields if key in data}


# lowest and highest allowed value per numeric column; None means unbounded
VALUE_RANGES = {
    'price': (0, None),
    'rating': (0, 5),
    'review_count': (0, None),
    'pages': (1, None),
    'quantity': (1, None),
    'total_amount': (0, None),
    'book_count': (0, None),
}


def check_ranges(values):
    """Raise ``ValidationError`` for the first numeric column out of range."""
    for field, (low, high) in VALUE_RANGES.items():
        value = values.get(field)
        if value is None:
            continue
        if value < low or (high is not None and value > high):
            if high is None:
                raise ValidationError(f'{field} must be at least {low}')
            raise ValidationError(f'{field} must be between {low} and {high}')
    return values


class Storage(abc.ABC):
    """Persistence contract shared by the in-memory and relational stores.

    Reads return ``None`` or an empty list when nothing matches. Writes raise
    ``ValidationError`` for a numeric column outside ``VALUE_RANGES``,
    ``NotFound`` for a missing referenced id and ``Conflict`` for a unique or
    restrict-delete violation. Every write joins the surrounding
    ``transaction()`` when there is one and commits on its own otherwise.
    """

    name = None

    def init_app(self, app):
        """Hook for stores that need the application (schema creation)."""

    @abc.abstractmethod
    def transaction(self):
        """Context manager: everything inside commits or rolls back together."""

    @abc.abstractmethod
    def lock_cart(self, user_id):
        """Serialize checkouts of one user's cart; call inside ``transaction()``."""

    # User operations
    @abc.abstractmethod
    def get_user(self, user_id): ...

    @abc.abstractmethod
    def get_user_by_username(self, username): ...

    @abc.abstractmethod
    def get_user_by_email(self, email): ...

    @abc.abstractmethod
    def create_user(self, data): ...

    @abc.abstractmethod
    def update_user(self, user_id, data): ...

    # Category operations
    @abc.abstractmethod
    def list_categories(self): ...

    @abc.abstractmethod
    def get_category(self, category_id): ...

    @abc.abstractmethod
    def get_category_by_name(self, name): ...

    @abc.abstractmethod
    def create_category(self, data): ...

    @abc.abstractmethod
    def update_category(self, category_id, data): ...

    @abc.abstractmethod
    def delete_category(self, category_id): ...

    @abc.abstractmethod
    def increment_category_book_count(self, category_id): ...

    @abc.abstractmethod
    def decrement_category_book_count(self, category_id):
        """Lower the count by one, never below zero."""

    # Book operations
    @abc.abstractmethod
    def list_books(self, search=None, category_id=None, sort=POPULAR): ...

    @abc.abstractmethod
    def get_book(self, book_id): ...

    @abc.abstractmethod
    def create_book(self, data):
        """Insert a book and bump its category's count in one transaction."""

    @abc.abstractmethod
    def update_book(self, book_id, data):
        """Update a book, moving the count when the category changes."""

    @abc.abstractmethod
    def delete_book(self, book_id):
        """Delete a book with its cart lines and lower its category's count."""

    @abc.abstractmethod
    def get_related_books(self, category_id, exclude_id, limit=4): ...

    # Cart operations
    @abc.abstractmethod
    def get_cart_items(self, user_id): ...

    @abc.abstractmethod
    def get_cart_item(self, item_id): ...

    @abc.abstractmethod
    def get_cart_item_by_book(self, user_id, book_id): ...

    @abc.abstractmethod
    def add_to_cart(self, data): ...

    @abc.abstractmethod
    def update_cart_item(self, item_id, data): ...

    @abc.abstractmethod
    def remove_from_cart(self, item_id): ...

    @abc.abstractmethod
    def clear_cart(self, user_id): ...

    # Order operations
    @abc.abstractmethod
    def create_order(self, data): ...

    @abc.abstractmethod
    def get_order(self, order_id): ...

    @abc.abstractmethod
    def get_user_orders(self, user_id):
        """Orders of one user, newest first."""

    @abc.abstractmethod
    def list_orders(self, status=None): ...

    @abc.abstractmethod
    def update_order_status(self, order_id, status): ...

    @abc.abstractmethod
    def create_order_item(self, data): ...

    @abc.abstractmethod
    def get_order_items(self, order_id): ...

    # Subscriber operations
    @abc.abstractmethod
    def get_subscriber_by_email(self, email): ...

    @abc.abstractmethod
    def create_subscriber(self, data): ...
