from decimal import Decimal

from bookhaven.services.auth import hash_password

PASSWORD = 'correct-horse'


def create_user(storage, username='reader', email=None, password=PASSWORD, is_admin=False):
    return storage.create_user({
        'username': username,
        'email': email or f'{username}@bookhaven.com',
        'password': hash_password(password),
        'first_name': username.title(),
        'last_name': 'Tester',
        'is_admin': is_admin,
    })


def create_category(storage, name='Fiction', icon=''):
    return storage.create_category({'name': name, 'icon': icon})


def create_book(storage, category_id, title='A Book', **overrides):
    data = {
        'title': title,
        'author': 'Jane Author',
        'description': 'A story.',
        'price': Decimal('10.00'),
        'cover_image': 'https://covers.bookhaven.com/book.jpg',
        'rating': 4.0,
        'review_count': 0,
        'pages': 200,
        'publisher': 'House',
        'publication_date': 'May 1, 2023',
        'language': 'English',
        'isbn': '978-0000000000',
        'category_id': category_id,
        'in_stock': True,
    }
    data.update(overrides)
    if not isinstance(data['price'], Decimal):
        data['price'] = Decimal(str(data['price']))
    return storage.create_book(data)
