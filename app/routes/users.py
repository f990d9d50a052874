from flask import Blueprint, request, jsonify
from sqlalchemy import or_, func

from app import db
from app.models import User
from app.models.user import ROLES
from app.utils import require_auth, require_role, paginate_query, get_json_body, FieldErrors, validate_email
from app.utils.validators import validate_phone

users_bp = Blueprint('users', __name__)

EDITABLE_FIELDS = ['first_name', 'last_name', 'email', 'phone', 'company', 'company_id',
                   'departement', 'avatar', 'availability']
ADMIN_ONLY_FIELDS = ['role', 'is_active', 'permissions']
AVAILABILITY_STATUSES = ('available', 'unavailable')


def _search_filter(search):
    pattern = f'%{search}%'
    return or_(
        User.first_name.ilike(pattern),
        User.last_name.ilike(pattern),
        User.email.ilike(pattern),
        User.company.ilike(pattern),
    )


def _validate_user_payload(data, creating):
    errors = FieldErrors()
    if creating:
        errors.require(data, 'firstName', 'First name is required')
        errors.require(data, 'lastName', 'Last name is required')
        errors.check(validate_email(data.get('email')), 'email', 'Invalid email')
        errors.check(len(data.get('password') or '') >= 6, 'password', 'Password must be at least 6 characters')
        errors.check(data.get('role') in ROLES, 'role', 'Invalid role')
        if data.get('role') in ('technician', 'client'):
            errors.require(data, 'departement', 'Department is required for technicians and clients')
    else:
        for field in ('firstName', 'lastName'):
            if field in data:
                errors.require(data, field, f'{field} cannot be empty')
        if 'email' in data:
            errors.check(validate_email(data.get('email')), 'email', 'Invalid email')
        if 'role' in data:
            errors.check(data['role'] in ROLES, 'role', 'Invalid role')
    if data.get('phone'):
        errors.check(validate_phone(data['phone']), 'phone', 'Invalid phone number')
    availability = data.get('availability')
    if availability is not None:
        errors.check(isinstance(availability, dict) and availability.get('status', 'available') in AVAILABILITY_STATUSES,
                     'availability.status', 'Invalid availability status')
    if 'address' in data:
        errors.check(isinstance(data['address'], dict), 'address',
                     'Address must be an object with street, city, postalCode and country')
    errors.raise_if_any()


@users_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_users():
    """
    GET /api/users?page=1&limit=10&role=technician&search=dupont&isActive=true
    """
    query = User.query

    role = request.args.get('role')
    if role:
        query = query.filter(User.role == role)
    search = request.args.get('search')
    if search:
        query = query.filter(_search_filter(search))
    is_active = request.args.get('isActive')
    if is_active is not None:
        query = query.filter(User.is_active == (is_active == 'true'))

    users, pagination = paginate_query(query.order_by(User.created_at.desc()),
                                       request.args.get('page', 1), request.args.get('limit', 10))

    return jsonify({
        'success': True,
        'data': {'users': [u.to_dict() for u in users], 'pagination': pagination}
    }), 200


@users_bp.route('/technicians', methods=['GET'])
@require_auth
@require_role('admin')
def list_technicians():
    technicians = User.query.filter_by(role='technician', is_active=True).order_by(User.last_name).all()
    return jsonify({'success': True, 'data': {'technicians': [t.to_dict() for t in technicians]}}), 200


@users_bp.route('/technicians/available', methods=['GET'])
@require_auth
@require_role('admin')
def list_available_technicians():
    technicians = User.query.filter_by(role='technician', is_active=True).order_by(User.last_name).all()
    available = [t for t in technicians if (t.availability or {}).get('status', 'available') == 'available']
    return jsonify({'success': True, 'data': {'technicians': [t.to_dict() for t in available]}}), 200


@users_bp.route('/clients', methods=['GET'])
@require_auth
@require_role('admin', 'technician')
def list_clients():
    query = User.query.filter_by(role='client', is_active=True)
    search = request.args.get('search')
    if search:
        query = query.filter(_search_filter(search))
    clients = query.order_by(User.last_name).all()
    return jsonify({'success': True, 'data': {'clients': [c.to_dict() for c in clients]}}), 200


@users_bp.route('/contacts', methods=['GET'])
@require_auth
def list_contacts():
    """Users the caller can start a conversation with"""
    query = User.query.filter(User.is_active.is_(True), User.id != request.user_id)
    if request.user_role != 'admin':
        query = query.filter(User.role.in_(['admin', 'technician']))
    contacts = query.order_by(User.role, User.last_name).all()
    return jsonify({'success': True, 'data': {'contacts': [c.to_summary() for c in contacts]}}), 200


@users_bp.route('/stats/overview', methods=['GET'])
@require_auth
@require_role('admin')
def users_stats():
    by_role = dict(db.session.query(User.role, func.count(User.id)).group_by(User.role).all())
    return jsonify({
        'success': True,
        'data': {
            'total': User.query.count(),
            'active': User.query.filter_by(is_active=True).count(),
            'byRole': {role: by_role.get(role, 0) for role in ROLES},
        }
    }), 200


@users_bp.route('/<user_id>', methods=['GET'])
@require_auth
def get_user(user_id):
    if request.user_role != 'admin' and request.user_id != user_id:
        return jsonify({'success': False, 'message': 'Access denied'}), 403
    user = User.get_or_404(user_id, 'User not found')
    return jsonify({'success': True, 'data': {'user': user.to_dict()}}), 200


@users_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_user():
    """
    POST /api/users
    Body: {"firstName", "lastName", "email", "password", "role", "departement"?, "phone"?, ...}
    """
    data = get_json_body()
    _validate_user_payload(data, creating=True)

    email = data['email'].lower().strip()
    if User.query.filter_by(email=email).first():
        return jsonify({'success': False, 'message': 'A user with this email already exists'}), 400

    user = User(email=email, first_name=data['firstName'].strip(), last_name=data['lastName'].strip(),
                role=data['role'], is_active=data.get('isActive', True),
                address=data.get('address') or {}, permissions=data.get('permissions') or [],
                availability=data.get('availability') or {'status': 'available'})
    user.update_from(data, ['phone', 'company', 'company_id', 'departement', 'avatar'])
    user.set_password(data['password'])

    try:
        db.session.add(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error creating user', 'error': str(e)}), 500

    return jsonify({'success': True, 'message': 'User created successfully', 'data': {'user': user.to_dict()}}), 201


@users_bp.route('/<user_id>', methods=['PUT'])
@require_auth
def update_user(user_id):
    """Admins update anyone; other users only themselves and never role/isActive/permissions"""
    if request.user_role != 'admin' and request.user_id != user_id:
        return jsonify({'success': False, 'message': 'Access denied'}), 403

    data = get_json_body()
    _validate_user_payload(data, creating=False)
    user = User.get_or_404(user_id, 'User not found')

    if data.get('email'):
        data['email'] = data['email'].lower().strip()
        existing = User.query.filter_by(email=data['email']).first()
        if existing and existing.id != user.id:
            return jsonify({'success': False, 'message': 'A user with this email already exists'}), 400

    fields = list(EDITABLE_FIELDS)
    if request.user_role == 'admin':
        fields += ADMIN_ONLY_FIELDS
    user.update_from(data, fields)

    if 'address' in data:
        # partial address updates keep the sub-fields that were not sent
        address = dict(user.address or {})
        address.update({k: v for k, v in data['address'].items() if k in ('street', 'city', 'postalCode', 'country')})
        user.address = address
    if data.get('password') and request.user_role == 'admin':
        user.set_password(data['password'])

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error updating user', 'error': str(e)}), 500

    return jsonify({'success': True, 'message': 'User updated successfully', 'data': {'user': user.to_dict()}}), 200


@users_bp.route('/<user_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_user(user_id):
    if request.user_id == user_id:
        return jsonify({'success': False, 'message': 'You cannot delete your own account'}), 400

    user = User.get_or_404(user_id, 'User not found')
    try:
        db.session.delete(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error deleting user', 'error': str(e)}), 500

    return jsonify({'success': True, 'message': 'User deleted successfully'}), 200


@users_bp.route('/<user_id>/toggle-status', methods=['PATCH'])
@require_auth
@require_role('admin')
def toggle_user_status(user_id):
    user = User.get_or_404(user_id, 'User not found')
    user.is_active = not user.is_active
    if not user.is_active:
        user.refresh_token = None
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'User {} successfully'.format('activated' if user.is_active else 'deactivated'),
        'data': {'user': user.to_dict()}
    }), 200
