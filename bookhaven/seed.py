"""Demo catalog and default admin account."""
import logging
from decimal import Decimal

from bookhaven.services.auth import hash_password

logger = logging.getLogger(__name__)

DEMO_CATEGORIES = [
    ('Fiction', '<i class="ri-book-mark-line"></i>'),
    ('Non-Fiction', '<i class="ri-article-line"></i>'),
    ('Sci-Fi', '<i class="ri-rocket-line"></i>'),
    ('Mystery', '<i class="ri-spy-line"></i>'),
    ('Biography', '<i class="ri-user-star-line"></i>'),
    ('Children', '<i class="ri-emotion-happy-line"></i>'),
]

COVER = 'https://images.unsplash.com/photo-{}?ixlib=rb-4.0.3&auto=format&fit=crop&w=300&h=400'

DEMO_BOOKS = [
    {
        'title': "The Dragon's Revenge", 'author': 'Emily Winters', 'category': 'Fiction',
        'description': 'A fantasy adventure about a kingdom under siege. When ancient dragons '
                       'return seeking revenge, young Aria discovers forgotten magic that may '
                       'save her people.',
        'price': Decimal('24.99'), 'cover_image': COVER.format('1544947950-fa07a98d237f'),
        'rating': 4.7, 'review_count': 124, 'pages': 342, 'publisher': 'Mystic Press',
        'publication_date': 'June 15, 2023', 'isbn': '978-1234567890',
    },
    {
        'title': 'Mindful Living', 'author': 'Dr. Sarah Johnson', 'category': 'Non-Fiction',
        'description': 'Mindfulness practices for a more balanced life, combining research '
                       'with practical techniques to reduce stress and improve focus.',
        'price': Decimal('18.50'), 'cover_image': COVER.format('1589998059171-988d887df646'),
        'rating': 4.9, 'review_count': 89, 'pages': 276, 'publisher': 'Wellness Books',
        'publication_date': 'March 22, 2023', 'isbn': '978-9876543210',
    },
    {
        'title': 'The Silent Witness', 'author': 'James Patterson', 'category': 'Mystery',
        'description': 'A detective tracks a serial killer who leaves no evidence behind, '
                       'and the only witness is a child who will not speak.',
        'price': Decimal('21.75'), 'cover_image': COVER.format('1541963463532-d68292c34b19'),
        'rating': 4.6, 'review_count': 156, 'pages': 320, 'publisher': 'Mystery House',
        'publication_date': 'October 5, 2022', 'isbn': '978-5678901234',
    },
    {
        'title': 'Global Kitchen', 'author': 'Chef Marco Lee', 'category': 'Non-Fiction',
        'description': '100 recipes from around the world with simple instructions for '
                       'cooks of all levels.',
        'price': Decimal('29.99'), 'cover_image': COVER.format('1476275466078-4007374efbbe'),
        'rating': 4.8, 'review_count': 72, 'pages': 248, 'publisher': 'Culinary Arts',
        'publication_date': 'May 12, 2023', 'isbn': '978-2345678901',
    },
    {
        'title': 'Cosmos Explained', 'author': 'Dr. Neil Adams', 'category': 'Non-Fiction',
        'description': 'An accessible journey through the mysteries of the universe, from '
                       'quantum physics to black holes.',
        'price': Decimal('26.50'), 'cover_image': COVER.format('1532012197267-da84d127e765'),
        'rating': 4.5, 'review_count': 63, 'pages': 412, 'publisher': 'Science Today',
        'publication_date': 'January 18, 2023', 'isbn': '978-3456789012',
    },
    {
        'title': "The Queen's Gambit", 'author': 'Elizabeth Harris', 'category': 'Fiction',
        'description': 'Political intrigue in Tudor England: a lady-in-waiting uncovers a '
                       'plot against the crown.',
        'price': Decimal('22.95'),
        'cover_image': 'https://cdn.pixabay.com/photo/2015/11/19/21/10/glasses-1052010_1280.jpg',
        'rating': 4.7, 'review_count': 108, 'pages': 368, 'publisher': 'Historical Press',
        'publication_date': 'August 30, 2022', 'isbn': '978-4567890123',
    },
    {
        'title': 'Start-Up Mindset', 'author': 'Mark Robertson', 'category': 'Non-Fiction',
        'description': 'Strategies for entrepreneurs building businesses in the digital '
                       'economy, drawn from several tech start-ups.',
        'price': Decimal('19.99'), 'cover_image': COVER.format('1550399105-c4db5fb85c18'),
        'rating': 4.6, 'review_count': 94, 'pages': 286, 'publisher': 'Business Edge',
        'publication_date': 'February 4, 2023', 'isbn': '978-5678901235',
    },
    {
        'title': 'The Magical Forest', 'author': 'Lisa Wilson', 'category': 'Children',
        'description': 'An illustrated story about friendship and courage: Max and Lily find '
                       'a magical forest behind their new home.',
        'price': Decimal('16.99'), 'cover_image': COVER.format('1629992101753-56d196c8aabb'),
        'rating': 4.9, 'review_count': 127, 'pages': 48, 'publisher': 'Kids Wonder',
        'publication_date': 'April 2, 2023', 'isbn': '978-6789012345',
    },
]


def create_default_admin(storage, email, password):
    admin = storage.get_user_by_email(email)
    if admin is None:
        admin = storage.create_user({
            'username': 'admin',
            'email': email.lower(),
            'password': hash_password(password),
            'first_name': 'Admin',
            'last_name': 'User',
            'is_admin': True,
        })
        logger.info('Created default admin %s', email)
    return admin


def create_default_categories(storage):
    categories = {}
    for name, icon in DEMO_CATEGORIES:
        category = storage.get_category_by_name(name)
        if category is None:
            category = storage.create_category({'name': name, 'icon': icon})
        categories[name] = category.id
    return categories


def seed_demo_data(storage, admin_email, admin_password):
    """Populate an empty store. Does nothing once the admin account exists.

    Returns True when data was inserted.
    """
    if storage.get_user_by_email(admin_email) is not None:
        return False

    with storage.transaction():
        create_default_admin(storage, admin_email, admin_password)
        categories = create_default_categories(storage)
        for data in DEMO_BOOKS:
            book = dict(data, language='English', in_stock=True)
            book['category_id'] = categories[book.pop('category')]
            storage.create_book(book)

    logger.info('Seeded %d categories and %d books', len(DEMO_CATEGORIES), len(DEMO_BOOKS))
    return True
