"""
Helper utilities
"""
import json
import math
import re
from datetime import date, datetime, timezone


def utcnow():
    """Naive UTC timestamp, the form stored in DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_year(now=None):
    now = now or utcnow()
    return datetime(now.year, 1, 1)


def start_of_month(now=None):
    now = now or utcnow()
    return datetime(now.year, now.month, 1)


_CAMEL_RE = re.compile(r'_([a-z0-9])')


def to_camel(name):
    """snake_case -> camelCase"""
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


def format_currency(amount, currency='EUR'):
    """
    Format amount as currency

    Args:
        amount: Numeric amount
        currency (str): Currency code

    Returns:
        str: Formatted currency string
    """
    if isinstance(amount, (float, int)):
        formatted = f'{float(amount):,.2f}'.replace(',', ' ').replace('.', ',')
        if currency == 'EUR':
            return f'{formatted} €'
        return f'{formatted} {currency}'

    return str(amount)


def format_date(dt, format='%d/%m/%Y'):
    """Format a date or datetime, passing anything else through str()"""
    if isinstance(dt, (datetime, date)):
        return dt.strftime(format)
    if dt is None:
        return ''
    return str(dt)


def parse_datetime(value):
    """
    Parse an ISO 8601 date or datetime string

    Returns:
        datetime: Naive UTC datetime, or None if the value is empty or invalid
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_json_field(value, default=None):
    """Decode form fields that multipart clients send as JSON strings"""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return value if value is not None else default


def safe_float(value, default=0.0):
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def safe_int(value, default=0):
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def paginate_query(query, page=1, per_page=10, max_per_page=100):
    """
    Paginate a SQLAlchemy query

    Returns:
        tuple: (items, pagination dict with page, limit, total, pages)
    """
    page = max(1, safe_int(page, 1))
    per_page = min(max_per_page, max(1, safe_int(per_page, 10)))

    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()

    return items, {
        'page': page,
        'limit': per_page,
        'total': total,
        'pages': math.ceil(total / per_page) if total else 0,
    }


def get_json_body():
    """Request body as a dict, from JSON or from form fields"""
    from flask import request
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict() if request.form else {}
