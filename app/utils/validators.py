"""
Validation utilities
"""
import re
import uuid

from app.errors import ValidationError

EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
TIME_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')
SIRET_RE = re.compile(r'^[0-9]{14}$')
URL_RE = re.compile(r'^(https?|ftp)://[^\s/$.?#].[^\s]*$', re.IGNORECASE)


def validate_email(email):
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_RE.match(email.strip()))


def validate_phone(phone):
    """
    Validate a French phone number (0X XX XX XX XX or +33 X XX XX XX XX)

    Args:
        phone (str): Phone number to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not phone or not isinstance(phone, str):
        return False

    cleaned = re.sub(r'[\s\-\.\(\)]', '', phone)
    return bool(re.match(r'^(?:\+33|0033|0)[1-9]\d{8}$', cleaned))


def validate_time(value):
    """HH:MM on a 24h clock"""
    return isinstance(value, str) and bool(TIME_RE.match(value))


def validate_siret(value):
    return isinstance(value, str) and bool(SIRET_RE.match(value))


def validate_url(value):
    return isinstance(value, str) and bool(URL_RE.match(value))


def validate_uuid(uuid_string):
    try:
        uuid.UUID(str(uuid_string))
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def is_number(value, minimum=None):
    if isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (ValueError, TypeError):
        return False
    return minimum is None or number >= minimum


def is_integer(value, minimum=None):
    if isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (ValueError, TypeError):
        return False
    if number != int(number):
        return False
    return minimum is None or number >= minimum


def is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


class FieldErrors(list):
    """Collects {field, message} pairs and raises them as one 400"""

    def add(self, field, message):
        self.append({'field': field, 'message': message})

    def require(self, data, field, message=None):
        if is_blank(data.get(field)):
            self.add(field, message or f'{field} is required')
            return False
        return True

    def check(self, condition, field, message):
        if not condition:
            self.add(field, message)
        return condition

    def raise_if_any(self, message='Invalid data'):
        if self:
            raise ValidationError(message, errors=list(self))
