"""
Service request routes - client demands for an intervention
"""
from flask import Blueprint, request, jsonify
from sqlalchemy import or_, func

from app import db
from app.models import ServiceRequest, ServiceType, User
from app.models.service_request import REQUEST_PRIORITIES, REQUEST_STATUSES, PREFERRED_TIMES
from app.services.notifications import create_notification, notify_admins, push_notifications
from app.services.references import next_request_reference
from app.services.uploads import save_uploads, DOCUMENT_EXTENSIONS
from app.services.workflow import apply_transition
from app.utils import require_auth, require_role, paginate_query, parse_datetime, get_json_body, FieldErrors, utcnow
from app.utils.helpers import parse_json_field, safe_float, to_camel
from app.utils.validators import is_blank, validate_phone

requests_bp = Blueprint('requests', __name__)

MAX_ATTACHMENTS = 5
CLIENT_FIELDS = ['description', 'preferred_date', 'preferred_time', 'access_instructions', 'notes']
TECHNICIAN_FIELDS = ['status', 'estimated_duration', 'actual_duration', 'internal_notes']
ADMIN_FIELDS = ['title', 'description', 'priority', 'status', 'address', 'contact_phone', 'preferred_date',
                'preferred_time', 'equipment', 'symptoms', 'access_instructions', 'scheduled_date',
                'estimated_duration', 'actual_duration', 'notes', 'internal_notes']
DATE_FIELDS = ('preferred_date', 'scheduled_date')
FLOAT_FIELDS = ('estimated_duration', 'actual_duration')


def _normalize_address(value):
    value = parse_json_field(value, default=value)
    if isinstance(value, str):
        return {'full': value.strip()}
    return value if isinstance(value, dict) else None


def _can_view(service_request):
    if request.user_role == 'admin':
        return True
    if request.user_role == 'technician':
        return service_request.assigned_technician == request.user_id
    return service_request.client_id == request.user_id


def _scoped_query():
    query = ServiceRequest.query
    if request.user_role == 'client':
        query = query.filter(ServiceRequest.client_id == request.user_id)
    elif request.user_role == 'technician':
        query = query.filter(ServiceRequest.assigned_technician == request.user_id)
    return query


def _validate(data, creating):
    errors = FieldErrors()
    if creating:
        errors.require(data, 'title', 'Title is required')
        errors.require(data, 'description', 'Description is required')
        errors.require(data, 'serviceTypeId', 'Service type is required')
        errors.require(data, 'contactPhone', 'Contact phone is required')
        errors.check(_normalize_address(data.get('address')) is not None, 'address', 'Address is required')
    if data.get('contactPhone'):
        errors.check(validate_phone(data['contactPhone']), 'contactPhone', 'Invalid phone number')
    if data.get('priority') is not None:
        errors.check(data['priority'] in REQUEST_PRIORITIES, 'priority', 'Invalid priority')
    if data.get('preferredTime'):
        errors.check(data['preferredTime'] in PREFERRED_TIMES, 'preferredTime', 'Invalid preferred time')
    if data.get('preferredDate'):
        errors.check(parse_datetime(data['preferredDate']) is not None, 'preferredDate', 'Invalid date')
    if 'status' in data:
        errors.check(data['status'] in REQUEST_STATUSES, 'status', 'Invalid status')
    errors.raise_if_any()


@requests_bp.route('', methods=['POST'])
@require_auth
def create_request():
    """
    POST /api/requests  (JSON or multipart with up to 5 attachments)
    """
    data = get_json_body()
    _validate(data, creating=True)

    service_type = db.session.get(ServiceType, data['serviceTypeId'])
    if not service_type:
        return jsonify({'success': False, 'message': 'Service type not found'}), 400

    client = request.current_user
    if request.user_role == 'admin' and data.get('clientId'):
        client = User.get_or_404(data['clientId'], 'Client not found')

    attachments = save_uploads(request.files.getlist('attachments'), 'requests',
                               max_files=MAX_ATTACHMENTS, allowed=DOCUMENT_EXTENSIONS)

    service_request = ServiceRequest(
        reference=next_request_reference(),
        title=data['title'].strip(),
        description=data['description'].strip(),
        type=service_type.category,
        service_type_id=service_type.id,
        priority=data.get('priority') or 'normal',
        address=_normalize_address(data['address']),
        contact_phone=data['contactPhone'],
        preferred_date=parse_datetime(data.get('preferredDate')),
        preferred_time=data.get('preferredTime') or None,
        equipment=data.get('equipment') or '',
        symptoms=parse_json_field(data.get('symptoms'), default=[]) or [],
        access_instructions=data.get('accessInstructions') or '',
        notes=data.get('notes'),
        attachments=attachments,
        client_id=client.id,
        company_id=client.company_id,
    )

    try:
        db.session.add(service_request)
        db.session.flush()
        notifications = notify_admins(
            f'Nouvelle demande {service_request.reference} de {client.full_name}',
            'system', service_request.id, 'Request', sender_id=request.user_id, exclude=request.user_id,
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error creating request', 'error': str(e)}), 500

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Request created successfully',
                    'data': service_request.to_dict()}), 201


@requests_bp.route('', methods=['GET'])
@require_auth
def list_requests():
    """
    GET /api/requests?status=pending&priority=urgent&type=repair&search=...&page=1&limit=10
    """
    query = _scoped_query()
    for arg, column in (('status', ServiceRequest.status), ('priority', ServiceRequest.priority),
                        ('type', ServiceRequest.type)):
        value = request.args.get(arg)
        if value:
            query = query.filter(column == value)
    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            ServiceRequest.reference.ilike(pattern),
            ServiceRequest.title.ilike(pattern),
            ServiceRequest.description.ilike(pattern),
        ))

    items, pagination = paginate_query(query.order_by(ServiceRequest.created_at.desc()),
                                       request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'requests': [r.to_dict() for r in items], 'pagination': pagination}
    }), 200


@requests_bp.route('/urgent', methods=['GET'])
@require_auth
@require_role('admin', 'technician')
def list_urgent_requests():
    items = _scoped_query().filter(
        ServiceRequest.priority == 'urgent',
        ServiceRequest.status.notin_(['completed', 'cancelled']),
    ).order_by(ServiceRequest.created_at).all()
    return jsonify({'success': True, 'data': [r.to_dict() for r in items]}), 200


@requests_bp.route('/my', methods=['GET'])
@require_auth
def my_requests():
    if request.user_role == 'technician':
        query = ServiceRequest.query.filter_by(assigned_technician=request.user_id)
    else:
        query = ServiceRequest.query.filter_by(client_id=request.user_id)
    items = query.order_by(ServiceRequest.created_at.desc()).all()
    return jsonify({'success': True, 'data': [r.to_dict() for r in items]}), 200


@requests_bp.route('/stats/overview', methods=['GET'])
@require_auth
@require_role('admin')
def request_stats():
    by_status = dict(db.session.query(ServiceRequest.status, func.count(ServiceRequest.id))
                     .group_by(ServiceRequest.status).all())
    by_priority = dict(db.session.query(ServiceRequest.priority, func.count(ServiceRequest.id))
                       .group_by(ServiceRequest.priority).all())
    return jsonify({
        'success': True,
        'data': {
            'total': sum(by_status.values()),
            'byStatus': {status: by_status.get(status, 0) for status in REQUEST_STATUSES},
            'byPriority': {priority: by_priority.get(priority, 0) for priority in REQUEST_PRIORITIES},
        }
    }), 200


@requests_bp.route('/<request_id>', methods=['GET'])
@require_auth
def get_request(request_id):
    service_request = ServiceRequest.get_or_404(request_id, 'Request not found')
    if not _can_view(service_request):
        return jsonify({'success': False, 'message': 'Access denied to this request'}), 403
    return jsonify({'success': True, 'data': service_request.to_dict()}), 200


@requests_bp.route('/<request_id>', methods=['PUT'])
@require_auth
def update_request(request_id):
    service_request = ServiceRequest.get_or_404(request_id, 'Request not found')
    if not _can_view(service_request):
        return jsonify({'success': False, 'message': 'Access denied to this request'}), 403

    data = get_json_body()
    _validate(data, creating=False)

    allowed = {'admin': ADMIN_FIELDS, 'technician': TECHNICIAN_FIELDS}.get(request.user_role, CLIENT_FIELDS)
    previous_status = None
    if 'status' in data and 'status' in allowed:
        previous_status = apply_transition('request', service_request, data['status'])
        if service_request.status == 'completed' and previous_status:
            service_request.completed_date = utcnow()

    for field in allowed:
        if field == 'status':
            continue
        key = to_camel(field)
        if key not in data:
            continue
        value = data[key]
        if field in DATE_FIELDS:
            value = parse_datetime(value)
        elif field in FLOAT_FIELDS:
            value = safe_float(value, None)
        elif field == 'address':
            value = _normalize_address(value)
        elif field == 'symptoms':
            value = parse_json_field(value, default=[])
        setattr(service_request, field, value)

    notifications = []
    if previous_status and request.user_id != service_request.client_id:
        notifications.append(create_notification(
            service_request.client_id,
            f'Votre demande {service_request.reference} est passée de {previous_status} à {service_request.status}',
            'status_update', service_request.id, 'Request', sender_id=request.user_id,
        ))

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error updating request', 'error': str(e)}), 500

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Request updated successfully',
                    'data': service_request.to_dict()}), 200


@requests_bp.route('/<request_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_request(request_id):
    service_request = ServiceRequest.get_or_404(request_id, 'Request not found')
    db.session.delete(service_request)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Request deleted successfully'}), 200


@requests_bp.route('/<request_id>/assign', methods=['PATCH'])
@require_auth
@require_role('admin')
def assign_request(request_id):
    service_request = ServiceRequest.get_or_404(request_id, 'Request not found')
    data = get_json_body()

    technician_id = data.get('technicianId')
    if is_blank(technician_id):
        return jsonify({'success': False, 'message': 'Technician is required'}), 400
    technician = db.session.get(User, technician_id)
    if not technician or technician.role != 'technician':
        return jsonify({'success': False, 'message': 'Technician not found'}), 404

    apply_transition('request', service_request, 'assigned')
    service_request.assigned_technician = technician.id
    service_request.assigned_date = utcnow()
    if data.get('scheduledDate'):
        service_request.scheduled_date = parse_datetime(data['scheduledDate'])

    notification = create_notification(
        technician.id,
        f'La demande {service_request.reference} vous a été assignée',
        'mission_assigned', service_request.id, 'Request', sender_id=request.user_id,
    )
    db.session.commit()

    push_notifications([notification])
    return jsonify({'success': True, 'message': 'Technician assigned successfully',
                    'data': service_request.to_dict()}), 200


@requests_bp.route('/<request_id>/complete', methods=['PATCH'])
@require_auth
@require_role('admin', 'technician')
def complete_request(request_id):
    service_request = ServiceRequest.get_or_404(request_id, 'Request not found')
    if request.user_role == 'technician' and service_request.assigned_technician != request.user_id:
        return jsonify({'success': False, 'message': 'Access denied to this request'}), 403

    data = get_json_body()
    if apply_transition('request', service_request, 'completed'):
        service_request.completed_date = utcnow()
    if data.get('actualDuration') is not None:
        service_request.actual_duration = safe_float(data['actualDuration'], None)
    if data.get('notes'):
        service_request.notes = data['notes']

    notification = create_notification(
        service_request.client_id,
        f'Votre demande {service_request.reference} est terminée',
        'status_update', service_request.id, 'Request', sender_id=request.user_id,
    )
    db.session.commit()

    push_notifications([notification])
    return jsonify({'success': True, 'message': 'Request completed successfully',
                    'data': service_request.to_dict()}), 200
