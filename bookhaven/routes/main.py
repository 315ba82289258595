from flask import Blueprint, current_app, jsonify, request

from bookhaven.forms import SubscribeForm, validate_form
from bookhaven.services import catalog
from bookhaven.storage import get_storage
from bookhaven.utils.email import send_subscription_confirmation

main_bp = Blueprint('main', __name__)


@main_bp.route('/categories')
def categories():
    """All categories with their book counts"""
    return jsonify([category.to_dict() for category in get_storage().list_categories()])


@main_bp.route('/books')
def books():
    """Book catalog: ?search=&category=&sort="""
    books = catalog.search_books(
        get_storage(),
        search=request.args.get('search', ''),
        category_id=request.args.get('category', type=int),
        sort=request.args.get('sort'),
    )
    return jsonify([book.to_dict() for book in books])


@main_bp.route('/books/<int:book_id>')
def book_detail(book_id):
    return jsonify(catalog.get_book(get_storage(), book_id).to_dict())


@main_bp.route('/books/related/<int:book_id>')
def related_books(book_id):
    """Other books from the same category"""
    books = catalog.related_books(get_storage(), book_id,
                                  limit=current_app.config['RELATED_BOOKS_LIMIT'])
    return jsonify([book.to_dict() for book in books])


@main_bp.route('/newsletter/subscribe', methods=['POST'])
def subscribe():
    """Newsletter subscription"""
    form = validate_form(SubscribeForm)
    subscriber = get_storage().create_subscriber({'email': form.email.data.strip().lower()})
    current_app.logger.info('New newsletter subscriber %s', subscriber.id)
    send_subscription_confirmation(subscriber)
    return jsonify(subscriber.to_dict()), 201
