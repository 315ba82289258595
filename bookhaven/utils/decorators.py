from functools import wraps
from flask_login import current_user

from bookhaven.errors import Forbidden, Unauthorized


def admin_required(f):
    """Decorator to require an authenticated admin"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            raise Unauthorized()
        if not current_user.is_admin:
            raise Forbidden('Admin access required')
        return f(*args, **kwargs)
    return decorated_function


def owner_or_admin_required(owner_id):
    """Raise unless the current user owns the record or is an admin"""
    if owner_id != current_user.id and not current_user.is_admin:
        raise Forbidden()
