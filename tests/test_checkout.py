from decimal import Decimal

import pytest

from bookhaven.errors import EmptyCart, OutOfStock
from bookhaven.services import cart
from bookhaven.services.checkout import checkout, shipping_fee_for
from tests.factories import create_book, create_category, create_user


@pytest.fixture
def shop(storage):
    category_id = create_category(storage).id
    return {
        'user': create_user(storage).id,
        'ten': create_book(storage, category_id, 'Ten', price='10.00').id,
        'twenty': create_book(storage, category_id, 'Twenty', price='20.00').id,
        'forty': create_book(storage, category_id, 'Forty', price='40.00').id,
    }


def place(storage, user_id):
    return checkout(storage, user_id, '221B Baker Street', 'credit-card')


def test_small_order_pays_shipping(storage, shop):
    cart.add_or_increment(storage, shop['user'], shop['ten'])
    cart.add_or_increment(storage, shop['user'], shop['twenty'])

    order = storage.get_order(place(storage, shop['user']))

    assert order.total_amount == Decimal('35.99')
    assert order.status == 'pending'
    assert order.shipping_address == '221B Baker Street'
    assert order.payment_method == 'credit-card'


def test_large_order_ships_free(storage, shop):
    cart.add_or_increment(storage, shop['user'], shop['forty'])
    order = storage.get_order(place(storage, shop['user']))
    assert order.total_amount == Decimal('40.00')


def test_cart_summary_quotes_what_checkout_charges(storage, shop):
    cart.add_or_increment(storage, shop['user'], shop['ten'], 3)
    summary = cart.cart_summary(storage, shop['user'])

    order = storage.get_order(place(storage, shop['user']))

    quoted = Decimal(str(summary['subtotal'])) + Decimal(str(summary['shipping']))
    assert quoted == order.total_amount == Decimal('35.99')


@pytest.mark.parametrize('subtotal, fee', [
    ('34.99', '5.99'),
    ('35.00', '0.00'),
    ('35.01', '0.00'),
])
def test_shipping_threshold(subtotal, fee):
    assert shipping_fee_for(Decimal(subtotal)) == Decimal(fee)


def test_checkout_snapshots_prices_and_empties_cart(storage, shop):
    cart.add_or_increment(storage, shop['user'], shop['ten'], 2)
    cart.add_or_increment(storage, shop['user'], shop['forty'])

    order_id = place(storage, shop['user'])
    storage.update_book(shop['ten'], {'price': Decimal('99.00')})

    items = storage.get_order_items(order_id)
    assert [(item.book_id, item.quantity, item.price) for item in items] == [
        (shop['ten'], 2, Decimal('10.00')),
        (shop['forty'], 1, Decimal('40.00')),
    ]
    assert storage.get_order(order_id).total_amount == Decimal('60.00')
    assert storage.get_cart_items(shop['user']) == []


def test_empty_cart_cannot_check_out(storage, shop):
    with pytest.raises(EmptyCart):
        place(storage, shop['user'])
    assert storage.get_user_orders(shop['user']) == []


def test_out_of_stock_book_blocks_the_whole_order(storage, shop):
    cart.add_or_increment(storage, shop['user'], shop['ten'])
    cart.add_or_increment(storage, shop['user'], shop['twenty'])
    storage.update_book(shop['twenty'], {'in_stock': False})

    with pytest.raises(OutOfStock) as excinfo:
        place(storage, shop['user'])

    assert excinfo.value.book_id == shop['twenty']
    assert storage.get_user_orders(shop['user']) == []
    assert storage.list_orders() == []
    assert len(storage.get_cart_items(shop['user'])) == 2


def test_failure_before_cart_is_cleared_rolls_back(storage, shop, monkeypatch):
    cart.add_or_increment(storage, shop['user'], shop['ten'])
    cart.add_or_increment(storage, shop['user'], shop['twenty'])

    def fail(user_id):
        raise RuntimeError('disk full')

    monkeypatch.setattr(storage, 'clear_cart', fail)
    with pytest.raises(RuntimeError):
        place(storage, shop['user'])
    monkeypatch.undo()

    assert storage.list_orders() == []
    assert [item.book_id for item in storage.get_cart_items(shop['user'])] == [
        shop['ten'], shop['twenty']]

    # and the cart still checks out afterwards
    order_id = place(storage, shop['user'])
    assert len(storage.get_order_items(order_id)) == 2
    assert storage.get_cart_items(shop['user']) == []


def test_orders_only_see_their_owner(storage, shop):
    other = create_user(storage, 'other').id
    cart.add_or_increment(storage, shop['user'], shop['ten'])
    order_id = place(storage, shop['user'])
    assert [order.id for order in storage.get_user_orders(shop['user'])] == [order_id]
    assert storage.get_user_orders(other) == []
