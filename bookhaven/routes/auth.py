from flask import Blueprint, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from bookhaven.forms import LoginForm, PasswordForm, ProfileForm, RegisterForm, validate_form
from bookhaven.services import auth as auth_service
from bookhaven.storage import get_storage
from bookhaven.utils.email import send_welcome_email

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token to send back in the X-CSRFToken header on mutating requests"""
    return jsonify({'csrf_token': generate_csrf()})


@auth_bp.route('/register', methods=['POST'])
def register():
    """User registration; the new user is logged in"""
    form = validate_form(RegisterForm)
    user = auth_service.register_user(get_storage(), form.data)
    login_user(user)
    send_welcome_email(user)
    return jsonify(user.to_dict()), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """User login"""
    form = validate_form(LoginForm)
    user = auth_service.authenticate(get_storage(), form.email.data, form.password.data)
    login_user(user, remember=form.remember.data)
    return jsonify(user.to_dict())


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """User logout"""
    logout_user()
    return jsonify({'message': 'Logged out successfully'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify(current_user.to_dict())


@auth_bp.route('/profile', methods=['PATCH'])
@login_required
def profile():
    """Update name and email"""
    form = validate_form(ProfileForm)
    user = auth_service.update_profile(get_storage(), current_user.id, form.data)
    return jsonify(user.to_dict())


@auth_bp.route('/password', methods=['PATCH'])
@login_required
def password():
    """Change password; the current one must be given again"""
    form = validate_form(PasswordForm)
    auth_service.change_password(get_storage(), current_user.id,
                                 form.current_password.data, form.new_password.data)
    return jsonify({'message': 'Password updated successfully'})
