from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user

from bookhaven.errors import NotFound
from bookhaven.forms import CartItemForm, CartQuantityForm, CheckoutForm, validate_form
from bookhaven.services import cart as cart_service
from bookhaven.services.checkout import checkout as place_order
from bookhaven.storage import get_storage
from bookhaven.utils.decorators import owner_or_admin_required
from bookhaven.utils.email import send_order_confirmation

customer_bp = Blueprint('customer', __name__)


def _cart_summary():
    config = current_app.config
    return cart_service.cart_summary(
        get_storage(), current_user.id,
        free_shipping_threshold=config['FREE_SHIPPING_THRESHOLD'],
        shipping_fee=config['SHIPPING_FEE'],
        tax_rate=config['ESTIMATED_TAX_RATE'],
    )


@customer_bp.route('/cart')
@login_required
def cart():
    """View shopping cart"""
    return jsonify(_cart_summary())


@customer_bp.route('/cart', methods=['POST'])
@login_required
def add_to_cart():
    """Add book to cart, or bump the quantity of its line"""
    form = validate_form(CartItemForm)
    item, created = cart_service.add_or_increment(get_storage(), current_user.id,
                                                  form.book_id.data, form.quantity.data)
    return jsonify(item.to_dict()), 201 if created else 200


@customer_bp.route('/cart/merge', methods=['POST'])
@login_required
def merge_cart():
    """Fold the guest cart kept by the client into the stored cart"""
    payload = request.get_json(silent=True) or {}
    skipped = cart_service.merge_guest_cart(get_storage(), current_user.id, payload.get('items'),
                                            strategy=current_app.config['CART_MERGE_STRATEGY'])
    return jsonify(dict(_cart_summary(), skipped=skipped))


@customer_bp.route('/cart/<int:book_id>', methods=['PATCH'])
@login_required
def update_cart_item(book_id):
    """Set cart line quantity; zero or less removes it"""
    form = validate_form(CartQuantityForm)
    item = cart_service.set_quantity(get_storage(), current_user.id, book_id, form.quantity.data)
    if item is None:
        return jsonify({'message': 'Item removed from cart'})
    return jsonify(item.to_dict())


@customer_bp.route('/cart/<int:book_id>', methods=['DELETE'])
@login_required
def remove_from_cart(book_id):
    """Remove item from cart"""
    cart_service.remove(get_storage(), current_user.id, book_id)
    return jsonify({'message': 'Item removed from cart'})


@customer_bp.route('/cart', methods=['DELETE'])
@login_required
def clear_cart():
    cart_service.clear(get_storage(), current_user.id)
    return jsonify({'message': 'Cart cleared'})


@customer_bp.route('/checkout', methods=['POST'])
@login_required
def checkout():
    """Place an order from the cart"""
    form = validate_form(CheckoutForm)
    storage = get_storage()
    order_id = place_order(
        storage, current_user.id,
        shipping_address=form.shipping_address.data.strip(),
        payment_method=form.payment_method.data,
        free_shipping_threshold=current_app.config['FREE_SHIPPING_THRESHOLD'],
        shipping_fee=current_app.config['SHIPPING_FEE'],
    )
    order = storage.get_order(order_id)
    lines = [(item, storage.get_book(item.book_id)) for item in storage.get_order_items(order_id)]
    send_order_confirmation(order, current_user, lines)
    return jsonify({'order_id': order_id}), 201


@customer_bp.route('/orders')
@login_required
def orders():
    """Order history, newest first"""
    return jsonify([order.to_dict() for order in get_storage().get_user_orders(current_user.id)])


@customer_bp.route('/orders/<int:order_id>')
@login_required
def order_detail(order_id):
    """Order with its items and their books"""
    storage = get_storage()
    order = storage.get_order(order_id)
    if order is None:
        raise NotFound('Order not found')
    owner_or_admin_required(order.user_id)

    items = []
    for item in storage.get_order_items(order_id):
        book = storage.get_book(item.book_id)
        items.append(dict(item.to_dict(), book=book.to_dict() if book else None))
    return jsonify(dict(order.to_dict(), items=items))
