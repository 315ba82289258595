import functools
import logging

from flask import current_app
from werkzeug.security import generate_password_hash, check_password_hash

from bookhaven.errors import InvalidCredentials, NotFound

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('first_name', 'last_name', 'email')


def hash_password(password):
    method = current_app.config.get('PASSWORD_HASH_METHOD', 'scrypt')
    return generate_password_hash(password, method=method)


@functools.lru_cache(maxsize=None)
def _dummy_hash(method):
    return generate_password_hash('not-a-real-password', method=method)


def register_user(storage, data):
    """Create a customer account. Username and email must be unused (any case)."""
    values = {
        'username': data['username'].strip(),
        'email': data['email'].strip().lower(),
        'first_name': data['first_name'].strip(),
        'last_name': data['last_name'].strip(),
        'password': hash_password(data['password']),
        'is_admin': False,
    }
    user = storage.create_user(values)
    logger.info('Registered user %s (%s)', user.id, user.username)
    return user


def authenticate(storage, email, password):
    """Return the user owning ``email`` and ``password``.

    Unknown email and wrong password fail the same way, and an unknown email
    still pays for one hash check.
    """
    user = storage.get_user_by_email(email.strip())
    if user is None:
        check_password_hash(_dummy_hash(current_app.config.get('PASSWORD_HASH_METHOD', 'scrypt')),
                            password)
        raise InvalidCredentials()
    if not user.check_password(password):
        raise InvalidCredentials()
    return user


def change_password(storage, user_id, current_password, new_password):
    user = storage.get_user(user_id)
    if user is None:
        raise NotFound('User not found')
    if not user.check_password(current_password):
        raise InvalidCredentials('Current password is incorrect')
    storage.update_user(user_id, {'password': hash_password(new_password)})
    logger.info('Password changed for user %s', user_id)


def update_profile(storage, user_id, data):
    values = {key: data[key].strip() for key in PROFILE_FIELDS if data.get(key) is not None}
    if 'email' in values:
        values['email'] = values['email'].lower()
    return storage.update_user(user_id, values)
