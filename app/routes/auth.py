from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError

from app import db
from app.extensions import limiter
from app.models import User
from app.utils import (
    require_auth, generate_access_token, generate_refresh_token, decode_token,
    utcnow, get_json_body, FieldErrors, validate_email,
)

auth_bp = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 6
PROFILE_FIELDS = ['first_name', 'last_name', 'phone', 'company', 'address']


def _issue_tokens(user):
    """Mint an access/refresh pair and persist the refresh token on the user"""
    access_token = generate_access_token(user.id, user.role)
    refresh_token = generate_refresh_token(user.id)
    user.refresh_token = refresh_token
    return {'accessToken': access_token, 'refreshToken': refresh_token}


@auth_bp.route('/register', methods=['POST'])
@limiter.limit('10 per minute')
def register():
    """
    Register a new client account
    POST /api/auth/register
    Body: {"firstName", "lastName", "email", "password", "phone"?, "company"?}
    """
    data = get_json_body()

    errors = FieldErrors()
    errors.require(data, 'firstName', 'First name is required')
    errors.require(data, 'lastName', 'Last name is required')
    errors.check(validate_email(data.get('email')), 'email', 'Invalid email')
    errors.check(len(data.get('password') or '') >= MIN_PASSWORD_LENGTH, 'password',
                 f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    errors.raise_if_any()

    email = data['email'].lower().strip()
    if User.query.filter_by(email=email).first():
        return jsonify({'success': False, 'message': 'A user with this email already exists'}), 400

    user = User(
        email=email,
        first_name=data['firstName'].strip(),
        last_name=data['lastName'].strip(),
        phone=data.get('phone'),
        company=data.get('company'),
        address=data.get('address') if isinstance(data.get('address'), dict) else {},
        role='client',
        is_active=True,
    )
    user.set_password(data['password'])

    try:
        db.session.add(user)
        db.session.flush()
        tokens = _issue_tokens(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'A user with this email already exists'}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error creating account', 'error': str(e)}), 500

    return jsonify({
        'success': True,
        'message': 'User registered successfully',
        'data': {'user': user.to_dict(), **tokens}
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit('10 per minute')
def login():
    """
    Login user
    POST /api/auth/login
    Body: {"email": "user@example.com", "password": "secret"}
    """
    data = get_json_body()

    errors = FieldErrors()
    errors.check(validate_email(data.get('email')), 'email', 'Invalid email')
    errors.require(data, 'password', 'Password is required')
    errors.raise_if_any()

    user = User.query.filter_by(email=data['email'].lower().strip()).first()
    if not user or not user.check_password(data['password']):
        return jsonify({'success': False, 'message': 'Invalid credentials'}), 401

    if not user.is_active:
        return jsonify({'success': False, 'message': 'Account disabled. Contact administrator.'}), 401

    user.last_login = utcnow()
    tokens = _issue_tokens(user)
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Login successful',
        'data': {'user': user.to_dict(), **tokens}
    }), 200


@auth_bp.route('/refresh', methods=['POST'])
def refresh():
    """
    Rotate the token pair
    POST /api/auth/refresh
    Body: {"refreshToken": "..."}
    """
    token = get_json_body().get('refreshToken')
    if not token:
        return jsonify({'success': False, 'message': 'Refresh token required'}), 401

    try:
        payload = decode_token(token, refresh=True)
    except ValueError as e:
        return jsonify({'success': False, 'message': str(e)}), 401

    user = db.session.get(User, payload['user_id'])
    if not user or user.refresh_token != token:
        return jsonify({'success': False, 'message': 'Invalid refresh token'}), 401
    if not user.is_active:
        return jsonify({'success': False, 'message': 'Account disabled'}), 401

    tokens = _issue_tokens(user)
    db.session.commit()

    return jsonify({'success': True, 'data': tokens}), 200


@auth_bp.route('/logout', methods=['POST'])
@require_auth
def logout():
    request.current_user.refresh_token = None
    db.session.commit()
    return jsonify({'success': True, 'message': 'Logout successful'}), 200


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me():
    return jsonify({'success': True, 'data': {'user': request.current_user.to_dict()}}), 200


@auth_bp.route('/profile', methods=['PUT'])
@require_auth
def update_profile():
    """
    Update own profile; only name, phone, company and address can change here
    PUT /api/auth/profile
    """
    data = get_json_body()
    user = request.current_user

    errors = FieldErrors()
    for field in ('firstName', 'lastName'):
        if field in data:
            errors.require(data, field, f'{field} cannot be empty')
    if 'address' in data:
        errors.check(isinstance(data['address'], dict), 'address', 'Address must be an object')
    errors.raise_if_any()

    user.update_from(data, PROFILE_FIELDS)

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error updating profile', 'error': str(e)}), 500

    return jsonify({
        'success': True,
        'message': 'Profile updated successfully',
        'data': {'user': user.to_dict()}
    }), 200


@auth_bp.route('/change-password', methods=['PUT'])
@require_auth
def change_password():
    """
    PUT /api/auth/change-password
    Body: {"currentPassword", "newPassword"}
    """
    data = get_json_body()

    errors = FieldErrors()
    errors.require(data, 'currentPassword', 'Current password is required')
    errors.check(len(data.get('newPassword') or '') >= MIN_PASSWORD_LENGTH, 'newPassword',
                 f'New password must be at least {MIN_PASSWORD_LENGTH} characters')
    errors.raise_if_any()

    user = request.current_user
    if not user.check_password(data['currentPassword']):
        return jsonify({'success': False, 'message': 'Current password is incorrect'}), 400

    user.set_password(data['newPassword'])
    db.session.commit()

    return jsonify({'success': True, 'message': 'Password changed successfully'}), 200
