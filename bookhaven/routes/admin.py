from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from bookhaven.errors import NotFound, ValidationError
from bookhaven.forms import BookForm, CategoryForm, OrderStatusForm, validate_form
from bookhaven.models import ORDER_STATUSES
from bookhaven.storage.base import LATEST
from bookhaven.storage import get_storage
from bookhaven.utils.decorators import admin_required
from bookhaven.utils.email import send_order_status_update

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/books')
@login_required
@admin_required
def books():
    """All books, optionally for one category"""
    books = get_storage().list_books(category_id=request.args.get('category', type=int),
                                     sort=LATEST)
    return jsonify([book.to_dict() for book in books])


@admin_bp.route('/books', methods=['POST'])
@login_required
@admin_required
def add_book():
    """Add a book; its category's book count goes up by one"""
    form = validate_form(BookForm)
    book = get_storage().create_book(form.to_record())
    current_app.logger.info('Book %s "%s" added', book.id, book.title)
    return jsonify(book.to_dict()), 201


@admin_bp.route('/books/<int:book_id>', methods=['PUT'])
@login_required
@admin_required
def edit_book(book_id):
    form = validate_form(BookForm)
    book = get_storage().update_book(book_id, form.to_record())
    current_app.logger.info('Book %s updated', book_id)
    return jsonify(book.to_dict())


@admin_bp.route('/books/<int:book_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_book(book_id):
    """Delete a book that nobody has ordered"""
    get_storage().delete_book(book_id)
    current_app.logger.info('Book %s deleted', book_id)
    return jsonify({'message': 'Book deleted successfully'})


@admin_bp.route('/categories', methods=['POST'])
@login_required
@admin_required
def add_category():
    """Add category"""
    form = validate_form(CategoryForm)
    category = get_storage().create_category({'name': form.name.data.strip(),
                                              'icon': form.icon.data.strip()})
    current_app.logger.info('Category %s "%s" added', category.id, category.name)
    return jsonify(category.to_dict()), 201


@admin_bp.route('/categories/<int:category_id>', methods=['PUT'])
@login_required
@admin_required
def edit_category(category_id):
    """Edit category"""
    form = validate_form(CategoryForm)
    category = get_storage().update_category(category_id, {'name': form.name.data.strip(),
                                                           'icon': form.icon.data.strip()})
    return jsonify(category.to_dict())


@admin_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_category(category_id):
    """Delete category together with its books"""
    get_storage().delete_category(category_id)
    current_app.logger.info('Category %s deleted', category_id)
    return jsonify({'message': 'Category deleted successfully'})


@admin_bp.route('/orders')
@login_required
@admin_required
def orders():
    """All orders, newest first: ?status="""
    status = request.args.get('status') or None
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError('Invalid status')
    return jsonify([order.to_dict() for order in get_storage().list_orders(status=status)])


@admin_bp.route('/orders/<int:order_id>/status', methods=['PATCH'])
@login_required
@admin_required
def update_order_status(order_id):
    """Update order status; the customer hears about real changes"""
    form = validate_form(OrderStatusForm)
    storage = get_storage()
    order = storage.get_order(order_id)
    if order is None:
        raise NotFound('Order not found')

    old_status = order.status
    order = storage.update_order_status(order_id, form.status.data)
    current_app.logger.info('Order %s status %s -> %s', order_id, old_status, order.status)

    if old_status != order.status:
        customer = storage.get_user(order.user_id)
        if customer is not None:
            send_order_status_update(order, customer)
    return jsonify(order.to_dict())
