"""Utilities package"""
from .auth import (
    hash_password,
    verify_password,
    generate_access_token,
    generate_refresh_token,
    decode_token,
    require_auth,
    require_role,
)
from .helpers import utcnow, paginate_query, parse_datetime, get_json_body
from .validators import FieldErrors, validate_email

__all__ = [
    'hash_password',
    'verify_password',
    'generate_access_token',
    'generate_refresh_token',
    'decode_token',
    'require_auth',
    'require_role',
    'utcnow',
    'paginate_query',
    'parse_datetime',
    'get_json_body',
    'FieldErrors',
    'validate_email',
]
