"""Form validation for the add-book and borrow requests.

Each validator checks its rules in field order and raises
:class:`ValidationError` carrying the first violated rule's message, so the
caller can report it and skip the database call entirely.
"""

import re
from datetime import datetime

from email_validator import EmailNotValidError, validate_email

TITLE_MAX_LENGTH = 200
AUTHOR_MAX_LENGTH = 200
ISBN_MAX_LENGTH = 32
CATEGORY_MAX_LENGTH = 100
BORROWER_NAME_MAX_LENGTH = 100
BORROWER_EMAIL_MAX_LENGTH = 255
BORROWER_PHONE_MAX_LENGTH = 50


class ValidationError(ValueError):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


def _text(data, key, label, required=False):
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f"{label} is required" if required else f"{label} must be text")
    return value.strip()


def _check_length(value, label, max_length):
    if len(value) > max_length:
        raise ValidationError(f"{label} must be at most {max_length} characters")
    return value


def _optional(data, key, label, max_length):
    value = _text(data, key, label)
    return _check_length(value, label, max_length) if value else None


def _required_text(data, key, label, max_length):
    value = _text(data, key, label, required=True)
    if not value:
        raise ValidationError(f"{label} is required")
    return _check_length(value, label, max_length)


def _quantity(data):
    raw = data.get('quantity')
    if raw is None or raw == '':
        return 1
    if isinstance(raw, bool):
        raise ValidationError("Quantity must be a whole number")
    if isinstance(raw, int):
        quantity = raw
    elif isinstance(raw, float) and raw.is_integer():
        quantity = int(raw)
    elif isinstance(raw, str) and re.fullmatch(r"\s*-?\d+\s*", raw):
        quantity = int(raw)
    else:
        raise ValidationError("Quantity must be a whole number")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    return quantity


def is_valid_email(email):
    """Syntax check only; no DNS lookup."""
    if not email or not isinstance(email, str):
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def parse_due_date(raw):
    """Parse a ``YYYY-MM-DD`` due date into midnight of that day."""
    try:
        return datetime.strptime(raw, '%Y-%m-%d')
    except (TypeError, ValueError):
        raise ValidationError("Invalid due date")


def validate_book(data):
    """Validate an add-book payload and return the cleaned fields."""
    data = data if isinstance(data, dict) else {}
    title = _required_text(data, 'title', 'Title', TITLE_MAX_LENGTH)
    author = _required_text(data, 'author', 'Author', AUTHOR_MAX_LENGTH)
    return {
        'title': title,
        'author': author,
        'isbn': _optional(data, 'isbn', 'ISBN', ISBN_MAX_LENGTH),
        'category': _optional(data, 'category', 'Category', CATEGORY_MAX_LENGTH),
        'quantity': _quantity(data),
    }


def validate_borrow(data):
    """Validate a borrow payload.

    The due date only has to be present and well formed; whether it lies in
    the past is not checked here.
    """
    data = data if isinstance(data, dict) else {}
    borrower_name = _required_text(data, 'borrower_name', 'Borrower name', BORROWER_NAME_MAX_LENGTH)
    borrower_email = _optional(data, 'borrower_email', 'Email', BORROWER_EMAIL_MAX_LENGTH)
    if borrower_email and not is_valid_email(borrower_email):
        raise ValidationError("Invalid email address")
    borrower_phone = _optional(data, 'borrower_phone', 'Phone', BORROWER_PHONE_MAX_LENGTH)
    due_date = _text(data, 'due_date', 'Due date', required=True)
    if not due_date:
        raise ValidationError("Due date is required")
    return {
        'borrower_name': borrower_name,
        'borrower_email': borrower_email,
        'borrower_phone': borrower_phone,
        'due_date': parse_due_date(due_date),
    }
