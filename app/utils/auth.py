"""
Password hashing, JWT issuance/verification and the route guards built on them
"""
import uuid
from functools import wraps

import bcrypt
import jwt
from flask import current_app, jsonify, request

from .helpers import utcnow


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    rounds = current_app.config.get('BCRYPT_LOG_ROUNDS', 12)
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    if not password or not password_hash:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


def generate_access_token(user_id: str, role: str) -> str:
    """Short-lived credential sent as the Bearer token"""
    now = utcnow()
    payload = {
        'user_id': user_id,
        'role': role,
        'type': 'access',
        'exp': now + current_app.config['JWT_ACCESS_TOKEN_EXPIRES'],
        'iat': now,
    }
    return jwt.encode(
        payload,
        current_app.config['JWT_SECRET_KEY'],
        algorithm=current_app.config['JWT_ALGORITHM']
    )


def generate_refresh_token(user_id: str) -> str:
    """Long-lived credential, persisted on the user and rotated on refresh"""
    now = utcnow()
    payload = {
        'user_id': user_id,
        'type': 'refresh',
        'jti': uuid.uuid4().hex,
        'exp': now + current_app.config['JWT_REFRESH_TOKEN_EXPIRES'],
        'iat': now,
    }
    return jwt.encode(
        payload,
        current_app.config['JWT_REFRESH_SECRET_KEY'],
        algorithm=current_app.config['JWT_ALGORITHM']
    )


def decode_token(token: str, refresh: bool = False) -> dict:
    """
    Decode and verify a JWT

    Raises:
        ValueError: 'Token expired' or 'Invalid token'
    """
    secret_key = 'JWT_REFRESH_SECRET_KEY' if refresh else 'JWT_SECRET_KEY'
    try:
        payload = jwt.decode(
            token,
            current_app.config[secret_key],
            algorithms=[current_app.config['JWT_ALGORITHM']]
        )
    except jwt.ExpiredSignatureError:
        raise ValueError('Token expired')
    except jwt.InvalidTokenError:
        raise ValueError('Invalid token')

    expected_type = 'refresh' if refresh else 'access'
    if payload.get('type') != expected_type or not payload.get('user_id'):
        raise ValueError('Invalid token')
    return payload


def _unauthorized(message):
    return jsonify({'success': False, 'message': message}), 401


def require_auth(f):
    """Decorator requiring a valid access token that resolves to an active user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        from app import db
        from app.models.user import User

        auth_header = request.headers.get('Authorization', '')
        token = auth_header[7:].strip() if auth_header.startswith('Bearer ') else ''
        if not token:
            return _unauthorized('Access token required')

        try:
            payload = decode_token(token)
        except ValueError as e:
            return _unauthorized(str(e))

        user = db.session.get(User, payload['user_id'])
        if user is None:
            return _unauthorized('User not found')
        if not user.is_active:
            return _unauthorized('Account disabled')

        request.current_user = user
        request.user_id = user.id
        request.user_role = user.role

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Decorator to require specific role(s) for routes; stack below require_auth"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(request, 'user_role'):
                return _unauthorized('Access token required')

            if request.user_role not in roles:
                return jsonify({
                    'success': False,
                    'message': 'Access not authorized for this role'
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
