from bookhaven import db
from bookhaven.models.base import utcnow


class Book(db.Model):
    __tablename__ = 'books'
    
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    author = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    cover_image = db.Column(db.String(500), nullable=False)
    rating = db.Column(db.Float, default=0.0, nullable=False)
    review_count = db.Column(db.Integer, default=0, nullable=False)
    pages = db.Column(db.Integer, nullable=False)
    publisher = db.Column(db.String(150), nullable=False)
    publication_date = db.Column(db.String(50), nullable=False)
    language = db.Column(db.String(50), nullable=False)
    isbn = db.Column(db.String(20), nullable=False)
    in_stock = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    
    # Foreign keys
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    
    # Relationships
    cart_items = db.relationship('CartItem', backref='book',
                                 cascade='all, delete')
    order_items = db.relationship('OrderItem', backref='book',
                                  passive_deletes='all')
    
    __table_args__ = (
        db.CheckConstraint('price >= 0', name='ck_books_price_nonneg'),
        db.CheckConstraint('rating >= 0 AND rating <= 5', name='ck_books_rating_range'),
        db.CheckConstraint('review_count >= 0', name='ck_books_review_count_nonneg'),
        db.CheckConstraint('pages > 0', name='ck_books_pages_pos'),
    )
    
    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'author': self.author,
            'description': self.description,
            'price': float(self.price),
            'cover_image': self.cover_image,
            'rating': self.rating,
            'review_count': self.review_count,
            'pages': self.pages,
            'publisher': self.publisher,
            'publication_date': self.publication_date,
            'language': self.language,
            'isbn': self.isbn,
            'category_id': self.category_id,
            'in_stock': self.in_stock,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
    
    def __repr__(self):
        return f'<Book {self.title}>'
