"""
WTForms forms validating the JSON bodies of the API.

Flask-WTF binds a ``FlaskForm`` to ``request.get_json()`` when the request is
JSON. CSRF is checked once for the whole app by ``CSRFProtect``, so the forms
themselves skip it.
"""
from flask import request
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, IntegerField, FloatField, DecimalField, BooleanField
from wtforms.validators import (DataRequired, Email, EqualTo, Length, NumberRange, AnyOf,
                                StopValidation)

from bookhaven.errors import ValidationError
from bookhaven.models import ORDER_STATUSES

PAYMENT_METHODS = ('credit-card', 'paypal')


class Present:
    """Stop the chain with ``message`` when a numeric field was left out."""

    def __init__(self, message='This field is required.'):
        self.message = message

    def __call__(self, form, field):
        if field.data is None:
            # a value that failed to parse already carries its own error
            raise StopValidation(None if field.process_errors else self.message)


class JSONBooleanField(BooleanField):
    """Boolean that keeps its default when the key is absent from the body."""

    def process_formdata(self, valuelist):
        if valuelist:
            super().process_formdata(valuelist)


class APIForm(FlaskForm):
    class Meta:
        csrf = False


class RegisterForm(APIForm):
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=80)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=8, max=128)])
    confirm_password = PasswordField('Confirm password', validators=[
        DataRequired(), EqualTo('password', message='Passwords do not match')])
    first_name = StringField('First name', validators=[DataRequired(), Length(max=80)])
    last_name = StringField('Last name', validators=[DataRequired(), Length(max=80)])
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])
    terms = BooleanField('Terms', validators=[
        DataRequired(message='You must agree to the terms and conditions')])


class LoginForm(APIForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired()])
    remember = BooleanField('Remember me')


class ProfileForm(APIForm):
    first_name = StringField('First name', validators=[DataRequired(), Length(max=80)])
    last_name = StringField('Last name', validators=[DataRequired(), Length(max=80)])
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])


class PasswordForm(APIForm):
    current_password = PasswordField('Current password', validators=[DataRequired()])
    new_password = PasswordField('New password', validators=[DataRequired(), Length(min=8, max=128)])


class CategoryForm(APIForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    icon = StringField('Icon', validators=[DataRequired(), Length(max=255)])


class BookForm(APIForm):
    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    author = StringField('Author', validators=[DataRequired(), Length(max=150)])
    description = StringField('Description', validators=[DataRequired()])
    price = DecimalField('Price', places=2, validators=[Present(), NumberRange(min=0)])
    cover_image = StringField('Cover image', validators=[DataRequired(), Length(max=500)])
    rating = FloatField('Rating', default=0.0, validators=[Present(), NumberRange(min=0, max=5)])
    review_count = IntegerField('Reviews', default=0, validators=[Present(), NumberRange(min=0)])
    pages = IntegerField('Pages', validators=[Present(), NumberRange(min=1)])
    publisher = StringField('Publisher', validators=[DataRequired(), Length(max=150)])
    publication_date = StringField('Publication date', validators=[DataRequired(), Length(max=50)])
    language = StringField('Language', validators=[DataRequired(), Length(max=50)])
    isbn = StringField('ISBN', validators=[DataRequired(), Length(max=20)])
    category_id = IntegerField('Category', validators=[Present()])
    in_stock = JSONBooleanField('In stock', default=True)

    def to_record(self):
        return {name: field.data for name, field in self._fields.items()}


class CartItemForm(APIForm):
    book_id = IntegerField('Book', validators=[Present()])
    quantity = IntegerField('Quantity', default=1, validators=[Present(), NumberRange(min=1)])


class CartQuantityForm(APIForm):
    quantity = IntegerField('Quantity', validators=[Present()])


class CheckoutForm(APIForm):
    shipping_address = StringField('Shipping address', validators=[DataRequired(), Length(max=500)])
    payment_method = StringField('Payment method', validators=[
        DataRequired(), AnyOf(PAYMENT_METHODS, message='Unsupported payment method')])


class SubscribeForm(APIForm):
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])


class OrderStatusForm(APIForm):
    status = StringField('Status', validators=[
        DataRequired(), AnyOf(ORDER_STATUSES, message='Invalid status')])


def validate_form(form_class):
    """Bind ``form_class`` to the request body or raise ``ValidationError``."""
    if not request.is_json or not isinstance(request.get_json(silent=True), dict):
        raise ValidationError('Expected a JSON object')
    form = form_class()
    if not form.validate():
        field, messages = next(iter(form.errors.items()))
        raise ValidationError(f'{field}: {messages[0]}', errors=form.errors)
    return form
