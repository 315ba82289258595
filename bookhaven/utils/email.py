import logging

from flask_mail import Message

from bookhaven import mail

logger = logging.getLogger(__name__)


def send_email(to, subject, body, html=None):
    """Send an email; delivery problems are logged, never raised"""
    try:
        msg = Message(
            subject=subject,
            recipients=[to] if isinstance(to, str) else to,
            body=body,
            html=html
        )
        mail.send(msg)
        return True
    except Exception as e:
        logger.warning('Email to %s failed (%s): %s', to, subject, e)
        return False


def send_order_confirmation(order, user, lines):
    """Send order confirmation email; ``lines`` are (order_item, book) pairs"""
    subject = f"Order Confirmation - #{order.id}"
    body = f"""
Dear {user.first_name},

Thank you for your order!

Order Number: #{order.id}
Order Date: {order.created_at.strftime('%Y-%m-%d %H:%M')}
Total Amount: ${order.total_amount:.2f}

Order Items:
"""
    for item, book in lines:
        title = book.title if book else f'Book #{item.book_id}'
        body += f"  - {title} x {item.quantity} = ${item.get_subtotal():.2f}\n"
    
    body += f"""
Shipping Address: {order.shipping_address}
Payment Method: {order.payment_method}

We will notify you when your order ships.

Thank you for shopping with BookHaven!
"""
    
    sent = send_email(user.email, subject, body)
    logger.info('Order confirmation for order %s %s', order.id, 'sent' if sent else 'not sent')
    return sent


def send_order_status_update(order, user):
    """Send order status update email"""
    subject = f"Order Status Update - #{order.id}"
    body = f"""
Dear {user.first_name},

Your order status has been updated.

Order Number: #{order.id}
New Status: {order.status.upper()}

Thank you for shopping with BookHaven!
"""
    
    return send_email(user.email, subject, body)


def send_welcome_email(user):
    """Send welcome email to new user"""
    subject = "Welcome to BookHaven!"
    body = f"""
Dear {user.first_name},

Welcome to BookHaven - your online destination for books!

Your account has been successfully created.

Start browsing our collection and find your next great read!

Happy Reading!
BookHaven Team
"""
    
    return send_email(user.email, subject, body)


def send_subscription_confirmation(subscriber):
    """Confirm a newsletter subscription"""
    subject = "You're subscribed to the BookHaven newsletter"
    body = """
Thanks for subscribing!

You'll be the first to hear about new arrivals, author events and offers.

BookHaven Team
"""
    
    return send_email(subscriber.email, subject, body)
