from bookhaven.models.user import User
from bookhaven.models.category import Category
from bookhaven.models.book import Book
from bookhaven.models.cart import CartItem
from bookhaven.models.order import Order, OrderItem, ORDER_STATUSES
from bookhaven.models.subscriber import Subscriber

__all__ = ['User', 'Category', 'Book', 'CartItem', 'Order', 'OrderItem', 'Subscriber', 'ORDER_STATUSES']
