from decimal import Decimal

import pytest

from bookhaven.errors import BookNotFound
from bookhaven.services import catalog
from tests.factories import create_book, create_category


@pytest.fixture
def shelf(storage):
    category_id = create_category(storage, 'Fiction').id
    other_id = create_category(storage, 'Mystery').id
    create_book(storage, category_id, 'Dragon Song', author='Emily Hart',
                price='30.00', rating=4.5, review_count=10,
                description='Wings over the mountains.')
    create_book(storage, category_id, 'Quiet Waters', author='Ann Dragonetti',
                price='10.00', rating=4.9, review_count=50,
                description='A lake in winter.')
    create_book(storage, other_id, 'The Silent Witness', author='James Patterson',
                price='20.00', rating=4.2, review_count=30,
                description='No dragon here, 100% crime.')
    return {'fiction': category_id, 'mystery': other_id}


def titles(books):
    return [book.title for book in books]


def test_sort_by_price(storage, shelf):
    books = catalog.search_books(storage, sort='price-low')
    assert [book.price for book in books] == [Decimal('10.00'), Decimal('20.00'), Decimal('30.00')]
    books = catalog.search_books(storage, sort='price-high')
    assert [book.price for book in books] == [Decimal('30.00'), Decimal('20.00'), Decimal('10.00')]


def test_sort_by_rating(storage, shelf):
    books = catalog.search_books(storage, sort='rating')
    assert [book.rating for book in books] == [4.9, 4.5, 4.2]


def test_popular_is_the_default(storage, shelf):
    expected = ['Quiet Waters', 'The Silent Witness', 'Dragon Song']
    assert titles(catalog.search_books(storage)) == expected
    assert titles(catalog.search_books(storage, sort='bestselling')) == expected


def test_latest_first(storage, shelf):
    assert titles(catalog.search_books(storage, sort='latest')) == [
        'The Silent Witness', 'Quiet Waters', 'Dragon Song']


def test_ties_break_on_id(storage):
    category_id = create_category(storage).id
    for title in ('First', 'Second', 'Third'):
        create_book(storage, category_id, title, price='15.00', rating=4.0)
    assert titles(catalog.search_books(storage, sort='price-low')) == ['First', 'Second', 'Third']
    assert titles(catalog.search_books(storage, sort='rating')) == ['First', 'Second', 'Third']


def test_search_matches_title_author_or_description(storage, shelf):
    books = catalog.search_books(storage, search='DRAGON', sort='price-low')
    assert titles(books) == ['Quiet Waters', 'The Silent Witness', 'Dragon Song']
    assert titles(catalog.search_books(storage, search='winter')) == ['Quiet Waters']
    assert catalog.search_books(storage, search='nothing like this') == []


def test_search_wildcards_are_literal(storage, shelf):
    assert titles(catalog.search_books(storage, search='100%')) == ['The Silent Witness']
    assert titles(catalog.search_books(storage, search='%_')) == []


def test_category_filter_combines_with_search(storage, shelf):
    books = catalog.search_books(storage, search='dragon', category_id=shelf['fiction'],
                                 sort='price-low')
    assert titles(books) == ['Quiet Waters', 'Dragon Song']
    assert titles(catalog.search_books(storage, category_id=shelf['mystery'])) == [
        'The Silent Witness']


def test_get_book_raises_when_missing(storage):
    with pytest.raises(BookNotFound):
        catalog.get_book(storage, 404)


def test_related_books_share_the_category(storage, shelf):
    fiction = catalog.search_books(storage, category_id=shelf['fiction'], sort='price-low')
    cheap = fiction[0]
    related = catalog.related_books(storage, cheap.id)
    assert titles(related) == ['Dragon Song']


def test_related_books_are_limited(storage):
    category_id = create_category(storage).id
    ids = [create_book(storage, category_id, f'Book {n}').id for n in range(6)]
    related = catalog.related_books(storage, ids[0], limit=4)
    assert [book.id for book in related] == ids[1:5]
