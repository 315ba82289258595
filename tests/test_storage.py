from decimal import Decimal

import pytest

from bookhaven.errors import Conflict, NotFound, ValidationError
from bookhaven.models import Book
from tests.factories import create_book, create_category, create_user


def book_count(storage, category_id):
    return storage.get_category(category_id).book_count


def books_in(storage, category_id):
    return len(storage.list_books(category_id=category_id))


def test_new_category_starts_empty(storage):
    category = storage.create_category({'name': 'Poetry', 'icon': '', 'book_count': 7})
    assert category.book_count == 0


def test_book_count_follows_book_mutations(storage):
    fiction = create_category(storage, 'Fiction').id
    mystery = create_category(storage, 'Mystery').id

    first = create_book(storage, fiction, 'One').id
    create_book(storage, fiction, 'Two')
    create_book(storage, mystery, 'Three')
    assert book_count(storage, fiction) == 2
    assert book_count(storage, mystery) == 1

    storage.update_book(first, {'category_id': mystery})
    assert book_count(storage, fiction) == books_in(storage, fiction) == 1
    assert book_count(storage, mystery) == books_in(storage, mystery) == 2

    storage.update_book(first, {'title': 'One, revised'})
    assert book_count(storage, mystery) == 2

    storage.delete_book(first)
    assert book_count(storage, fiction) == books_in(storage, fiction) == 1
    assert book_count(storage, mystery) == books_in(storage, mystery) == 1


def test_create_then_delete_restores_count(storage):
    for name in ('Fiction', 'Non-Fiction', 'Sci-Fi'):
        create_category(storage, name)
    third = storage.get_category_by_name('sci-fi')
    before = third.book_count

    book_id = create_book(storage, third.id).id
    assert book_count(storage, third.id) == before + 1
    storage.delete_book(book_id)
    assert book_count(storage, third.id) == before


def test_decrement_never_goes_negative(storage):
    category_id = create_category(storage).id
    storage.decrement_category_book_count(category_id)
    assert book_count(storage, category_id) == 0

    storage.increment_category_book_count(category_id)
    storage.decrement_category_book_count(category_id)
    storage.decrement_category_book_count(category_id)
    assert book_count(storage, category_id) == 0


def test_counter_on_missing_category(storage):
    with pytest.raises(NotFound):
        storage.increment_category_book_count(404)


def test_book_needs_existing_category(storage):
    with pytest.raises(NotFound):
        create_book(storage, 404)


def test_price_is_stored_as_money(storage):
    category_id = create_category(storage).id
    book = create_book(storage, category_id, price=Decimal('12.345'))
    assert storage.get_book(book.id).price == Decimal('12.35')


def test_usernames_and_emails_are_unique_in_any_case(storage):
    create_user(storage, 'alice', 'alice@bookhaven.com')
    with pytest.raises(Conflict, match='Username already taken'):
        create_user(storage, 'ALICE', 'other@bookhaven.com')
    with pytest.raises(Conflict, match='Email already in use'):
        create_user(storage, 'alice2', 'Alice@BookHaven.com')
    assert storage.get_user_by_email('ALICE@bookhaven.com').username == 'alice'


def test_update_user_keeps_own_email(storage):
    user_id = create_user(storage, 'alice').id
    create_user(storage, 'bob')
    storage.update_user(user_id, {'email': 'alice@bookhaven.com', 'first_name': 'Al'})
    assert storage.get_user(user_id).first_name == 'Al'
    with pytest.raises(Conflict):
        storage.update_user(user_id, {'email': 'bob@bookhaven.com'})


def test_category_names_are_unique(storage):
    create_category(storage, 'Fiction')
    with pytest.raises(Conflict):
        create_category(storage, 'fiction')
    other = create_category(storage, 'Mystery')
    with pytest.raises(Conflict):
        storage.update_category(other.id, {'name': 'FICTION'})


def test_one_cart_line_per_book(storage):
    user_id = create_user(storage).id
    book_id = create_book(storage, create_category(storage).id).id
    storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': 1})
    with pytest.raises(Conflict):
        storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': 2})
    with pytest.raises(ValidationError):
        storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': 0})


def test_cart_line_needs_existing_book(storage):
    user_id = create_user(storage).id
    with pytest.raises(NotFound):
        storage.add_to_cart({'user_id': user_id, 'book_id': 404, 'quantity': 1})


def place_order(storage, user_id, book_id):
    order = storage.create_order({
        'user_id': user_id,
        'total_amount': Decimal('10.00'),
        'shipping_address': '1 Main St',
        'payment_method': 'paypal',
    })
    storage.create_order_item({'order_id': order.id, 'book_id': book_id,
                               'quantity': 1, 'price': Decimal('10.00')})
    return order.id


def test_ordered_book_cannot_be_deleted(storage):
    user_id = create_user(storage).id
    category_id = create_category(storage).id
    book_id = create_book(storage, category_id).id
    place_order(storage, user_id, book_id)

    with pytest.raises(Conflict):
        storage.delete_book(book_id)
    assert storage.get_book(book_id) is not None
    assert book_count(storage, category_id) == 1


def test_deleting_category_removes_its_books_and_cart_lines(storage):
    user_id = create_user(storage).id
    doomed = create_category(storage, 'Doomed').id
    kept = create_category(storage, 'Kept').id
    first = create_book(storage, doomed, 'First').id
    create_book(storage, doomed, 'Second')
    survivor = create_book(storage, kept, 'Survivor').id
    storage.add_to_cart({'user_id': user_id, 'book_id': first, 'quantity': 1})
    storage.add_to_cart({'user_id': user_id, 'book_id': survivor, 'quantity': 1})

    storage.delete_category(doomed)

    assert storage.get_category(doomed) is None
    assert storage.get_book(first) is None
    assert [book.title for book in storage.list_books()] == ['Survivor']
    assert [item.book_id for item in storage.get_cart_items(user_id)] == [survivor]


def test_category_with_ordered_books_cannot_be_deleted(storage):
    user_id = create_user(storage).id
    category_id = create_category(storage).id
    book_id = create_book(storage, category_id).id
    place_order(storage, user_id, book_id)

    with pytest.raises(Conflict):
        storage.delete_category(category_id)
    assert storage.get_book(book_id) is not None


def test_orders_newest_first_and_status_filter(storage):
    user_id = create_user(storage).id
    book_id = create_book(storage, create_category(storage).id).id
    first = place_order(storage, user_id, book_id)
    second = place_order(storage, user_id, book_id)
    storage.update_order_status(first, 'shipped')

    assert [order.id for order in storage.get_user_orders(user_id)] == [second, first]
    assert [order.id for order in storage.list_orders(status='shipped')] == [first]
    assert [order.id for order in storage.list_orders(status='pending')] == [second]


def test_order_status_must_be_known(storage):
    user_id = create_user(storage).id
    order_id = place_order(storage, user_id, create_book(storage, create_category(storage).id).id)
    with pytest.raises(ValidationError):
        storage.update_order_status(order_id, 'lost')
    with pytest.raises(NotFound):
        storage.update_order_status(404, 'shipped')


def test_subscriber_emails_are_unique(storage):
    storage.create_subscriber({'email': 'fan@bookhaven.com'})
    with pytest.raises(Conflict, match='Email already subscribed'):
        storage.create_subscriber({'email': 'FAN@bookhaven.com'})


def test_transaction_rolls_back_every_write(storage):
    category_id = create_category(storage).id

    with pytest.raises(RuntimeError):
        with storage.transaction():
            create_book(storage, category_id, 'Ghost')
            create_category(storage, 'Phantom')
            raise RuntimeError('boom')

    assert storage.list_books() == []
    assert storage.get_category_by_name('Phantom') is None
    assert book_count(storage, category_id) == 0


def test_cart_lines_by_id_and_by_book(storage):
    user_id = create_user(storage).id
    book_id = create_book(storage, create_category(storage).id).id
    item = storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': 2})

    assert storage.get_cart_item(item.id).quantity == 2
    assert storage.get_cart_item_by_book(user_id, book_id).id == item.id
    storage.update_cart_item(item.id, {'quantity': 5})
    assert storage.get_cart_item(item.id).quantity == 5
    storage.remove_from_cart(item.id)
    assert storage.get_cart_item(item.id) is None
    with pytest.raises(NotFound):
        storage.remove_from_cart(item.id)


@pytest.mark.parametrize('field, value', [
    ('price', Decimal('-1.00')),
    ('rating', 9.0),
    ('rating', -0.5),
    ('review_count', -1),
    ('pages', 0),
])
def test_book_values_out_of_range_are_rejected(storage, field, value):
    category_id = create_category(storage).id
    with pytest.raises(ValidationError, match=field):
        create_book(storage, category_id, 'Broken', **{field: value})

    book = create_book(storage, category_id, 'Kept')
    original = getattr(book, field)
    with pytest.raises(ValidationError, match=field):
        storage.update_book(book.id, {field: value})

    assert [listed.title for listed in storage.list_books()] == ['Kept']
    assert getattr(storage.get_book(book.id), field) == original
    assert book_count(storage, category_id) == 1


def test_book_range_edges_are_accepted(storage):
    category_id = create_category(storage).id
    book = create_book(storage, category_id, price=Decimal('0.00'), rating=5.0,
                       review_count=0, pages=1)
    assert storage.update_book(book.id, {'rating': 0.0}).rating == 0.0


def test_cart_and_order_values_out_of_range_are_rejected(storage):
    user_id = create_user(storage).id
    book_id = create_book(storage, create_category(storage).id).id
    order = {
        'user_id': user_id,
        'total_amount': Decimal('-1.00'),
        'shipping_address': '1 Main St',
        'payment_method': 'paypal',
    }
    with pytest.raises(ValidationError, match='total_amount'):
        storage.create_order(order)
    assert storage.list_orders() == []

    order_id = storage.create_order(dict(order, total_amount=Decimal('10.00'))).id
    line = {'order_id': order_id, 'book_id': book_id, 'quantity': 1, 'price': Decimal('10.00')}
    with pytest.raises(ValidationError, match='quantity'):
        storage.create_order_item(dict(line, quantity=0))
    with pytest.raises(ValidationError, match='price'):
        storage.create_order_item(dict(line, price=Decimal('-0.01')))
    assert storage.get_order_items(order_id) == []

    item = storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': 2})
    with pytest.raises(ValidationError, match='quantity'):
        storage.update_cart_item(item.id, {'quantity': -3})
    assert storage.get_cart_item(item.id).quantity == 2


def test_transaction_rolls_back_updates_and_deletes(storage):
    user_id = create_user(storage).id
    category_id = create_category(storage).id
    book_id = create_book(storage, category_id, 'Original').id
    item_id = storage.add_to_cart({'user_id': user_id, 'book_id': book_id, 'quantity': 2}).id

    with pytest.raises(RuntimeError):
        with storage.transaction():
            storage.update_book(book_id, {'title': 'Rewritten', 'price': Decimal('99.00')})
            storage.update_cart_item(item_id, {'quantity': 7})
            storage.remove_from_cart(item_id)
            storage.delete_book(create_book(storage, category_id, 'Brief').id)
            raise RuntimeError('boom')

    book = storage.get_book(book_id)
    assert (book.title, book.price) == ('Original', Decimal('10.00'))
    assert storage.get_cart_item(item_id).quantity == 2
    assert [listed.title for listed in storage.list_books()] == ['Original']
    assert book_count(storage, category_id) == 1


def test_memory_list_books_reads_under_the_lock(storage, monkeypatch):
    if storage.name != 'memory':
        pytest.skip('the SQL store reads through the session')
    category_id = create_category(storage).id
    create_book(storage, category_id, 'Cheap', price=Decimal('5.00'))
    create_book(storage, category_id, 'Dear', price=Decimal('50.00'))

    held = []
    build = storage._entities

    def entities(table, rows):
        held.append(storage._lock._is_owned())
        return build(table, rows)

    monkeypatch.setattr(storage, '_entities', entities)
    books = storage.list_books(search='e', sort='price-high')

    assert [book.title for book in books] == ['Dear', 'Cheap']
    assert held == [True]


def test_sql_check_constraint_is_a_validation_error(storage):
    if storage.name != 'sql':
        pytest.skip('only the SQL store enforces database constraints')
    category_id = create_category(storage).id
    book = Book(title='Broken', author='A', description='B', price=Decimal('1.00'),
                cover_image='c', rating=9.0, review_count=0, pages=10, publisher='P',
                publication_date='May 1, 2023', language='English', isbn='978-0000000000',
                category_id=category_id)

    with pytest.raises(ValidationError):
        with storage.transaction():
            storage._add(book)

    assert storage.list_books() == []
