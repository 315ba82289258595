from bookhaven import db


class Category(db.Model):
    __tablename__ = 'categories'
    
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    icon = db.Column(db.String(255), nullable=False, default='')
    book_count = db.Column(db.Integer, default=0, nullable=False)
    
    # Relationships
    books = db.relationship('Book', backref='category',
                            cascade='all, delete')
    
    __table_args__ = (
        db.CheckConstraint('book_count >= 0', name='ck_categories_book_count_nonneg'),
    )
    
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'icon': self.icon,
            'book_count': self.book_count,
        }
    
    def __repr__(self):
        return f'<Category {self.name}>'
