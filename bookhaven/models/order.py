from bookhaven import db
from bookhaven.models.base import utcnow

ORDER_STATUSES = ('pending', 'processing', 'shipped', 'delivered', 'cancelled')


class Order(db.Model):
    __tablename__ = 'orders'
    
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    status = db.Column(db.String(20), default='pending', nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)  # fixed at checkout
    shipping_address = db.Column(db.Text, nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    
    # Relationships
    items = db.relationship('OrderItem', backref='order',
                            cascade='all, delete')
    
    __table_args__ = (
        db.CheckConstraint('total_amount >= 0', name='ck_orders_total_nonneg'),
        db.Index('ix_orders_user_created', 'user_id', 'created_at'),
    )
    
    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'status': self.status,
            'total_amount': float(self.total_amount),
            'shipping_address': self.shipping_address,
            'payment_method': self.payment_method,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
    
    def __repr__(self):
        return f'<Order {self.id}>'


class OrderItem(db.Model):
    __tablename__ = 'order_items'
    
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    book_id = db.Column(db.Integer, db.ForeignKey('books.id', ondelete='RESTRICT'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)  # Price at time of purchase
    
    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_order_items_quantity_pos'),
        db.CheckConstraint('price >= 0', name='ck_order_items_price_nonneg'),
    )
    
    def get_subtotal(self):
        return self.quantity * self.price
    
    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'book_id': self.book_id,
            'quantity': self.quantity,
            'price': float(self.price),
        }
    
    def __repr__(self):
        return f'<OrderItem {self.id}>'
