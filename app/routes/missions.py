"""
Mission routes - dispatch of field jobs to technicians
"""
import logging

from flask import Blueprint, request, jsonify
from sqlalchemy import or_, func
from sqlalchemy.orm import aliased

from app import db
from app.models import Mission, Quote, Report, ServiceType, User
from app.models.mission import MISSION_STATUSES, MISSION_PRIORITIES
from app.services.billing import generate_invoice_for_mission
from app.services.notifications import create_notification, push_notifications
from app.services.references import next_mission_number
from app.services.workflow import apply_transition
from app.utils import require_auth, require_role, paginate_query, parse_datetime, get_json_body, FieldErrors, utcnow

logger = logging.getLogger(__name__)

missions_bp = Blueprint('missions', __name__)

UPDATABLE_FIELDS = ['priority', 'address', 'details']


def _validate(data, creating):
    errors = FieldErrors()
    if creating:
        for field, label in (('serviceTypeId', 'Service type'), ('clientId', 'Client'),
                             ('technicianId', 'Technician'), ('quoteId', 'Quote'), ('address', 'Address')):
            errors.require(data, field, f'{label} is required')
        errors.check(parse_datetime(data.get('scheduledDate')) is not None, 'scheduledDate',
                     'A valid scheduled date is required')
    elif 'scheduledDate' in data:
        errors.check(parse_datetime(data['scheduledDate']) is not None, 'scheduledDate', 'Invalid date')
    if 'status' in data:
        errors.check(data['status'] in MISSION_STATUSES, 'status', 'Invalid status')
    if 'priority' in data:
        errors.check(data['priority'] in MISSION_PRIORITIES, 'priority', 'Invalid priority')
    errors.raise_if_any()


def _check_references(data):
    """400 field errors for ids that don't resolve to the expected records"""
    errors = FieldErrors()
    client = db.session.get(User, data['clientId'])
    errors.check(client is not None and client.role == 'client', 'clientId', 'Client not found')
    technician = db.session.get(User, data['technicianId'])
    errors.check(technician is not None and technician.role == 'technician', 'technicianId',
                 'Technician not found')
    errors.check(db.session.get(ServiceType, data['serviceTypeId']) is not None, 'serviceTypeId',
                 'Service type not found')
    quote = db.session.get(Quote, data['quoteId'])
    if errors.check(quote is not None, 'quoteId', 'Quote not found'):
        errors.check(quote.client_id == data['clientId'], 'quoteId', 'Quote does not belong to this client')
    errors.raise_if_any()
    return quote


def _status_message(mission, previous_status):
    return f'La mission {mission.mission_number} est passée de {previous_status} à {mission.status}'


def _complete(mission):
    mission.completed_at = utcnow()
    return generate_invoice_for_mission(mission)


@missions_bp.route('', methods=['GET'])
@require_auth
def list_missions():
    """
    GET /api/missions?status=pending&search=MISS-17&page=1&limit=10
    """
    query = Mission.query
    if request.user_role == 'client':
        query = query.filter(Mission.client_id == request.user_id)
    elif request.user_role == 'technician':
        query = query.filter(Mission.technician_id == request.user_id)

    for arg, column in (('status', Mission.status), ('priority', Mission.priority),
                        ('technicianId', Mission.technician_id), ('clientId', Mission.client_id)):
        value = request.args.get(arg)
        if value:
            query = query.filter(column == value)

    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        client = aliased(User)
        technician = aliased(User)
        query = query.join(client, Mission.client_id == client.id).join(
            technician, Mission.technician_id == technician.id).filter(or_(
                Mission.mission_number.ilike(pattern),
                Mission.address.ilike(pattern),
                client.first_name.ilike(pattern),
                client.last_name.ilike(pattern),
                technician.first_name.ilike(pattern),
                technician.last_name.ilike(pattern),
            ))

    missions, pagination = paginate_query(query.order_by(Mission.scheduled_date.desc()),
                                          request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'missions': [m.to_dict() for m in missions], 'pagination': pagination}
    }), 200


@missions_bp.route('/stats/overview', methods=['GET'])
@require_auth
@require_role('admin')
def mission_stats():
    by_status = dict(db.session.query(Mission.status, func.count(Mission.id)).group_by(Mission.status).all())
    by_priority = dict(db.session.query(Mission.priority, func.count(Mission.id)).group_by(Mission.priority).all())
    return jsonify({
        'success': True,
        'data': {
            'total': sum(by_status.values()),
            'byStatus': {status: by_status.get(status, 0) for status in MISSION_STATUSES},
            'byPriority': {priority: by_priority.get(priority, 0) for priority in MISSION_PRIORITIES},
        }
    }), 200


@missions_bp.route('/<mission_id>', methods=['GET'])
@require_auth
def get_mission(mission_id):
    mission = Mission.get_or_404(mission_id, 'Mission not found')
    if request.user_role != 'admin' and not mission.involves(request.user_id):
        return jsonify({'success': False, 'message': 'Access denied to this mission'}), 403
    return jsonify({'success': True, 'data': mission.to_dict()}), 200


@missions_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_mission():
    """
    Create a mission, move its quote to mission_assigned and, for a mission
    created already completed, issue the invoice. One commit for all of it.
    """
    data = get_json_body()
    _validate(data, creating=True)
    quote = _check_references(data)

    apply_transition('quote', quote, 'mission_assigned')
    mission = Mission(
        mission_number=next_mission_number(),
        service_type_id=data['serviceTypeId'],
        client_id=data['clientId'],
        technician_id=data['technicianId'],
        quote_id=quote.id,
        status=data.get('status') or 'pending',
        priority=data.get('priority') or 'normal',
        scheduled_date=parse_datetime(data['scheduledDate']),
        address=data['address'].strip(),
        details=data.get('details'),
    )

    try:
        db.session.add(mission)
        db.session.flush()
        if mission.status == 'completed':
            _complete(mission)
        notification = create_notification(
            mission.technician_id,
            f'Une nouvelle mission vous a été assignée: {mission.mission_number}',
            'mission_assigned', mission.id, 'Mission', sender_id=request.user_id,
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.exception('Mission creation failed')
        return jsonify({'success': False, 'message': 'Error creating mission', 'error': str(e)}), 500

    push_notifications([notification])
    logger.info('Mission %s created for quote %s', mission.mission_number, quote.reference)
    return jsonify({'success': True, 'message': 'Mission created successfully', 'data': mission.to_dict()}), 201


@missions_bp.route('/<mission_id>', methods=['PUT'])
@require_auth
@require_role('admin', 'technician')
def update_mission(mission_id):
    mission = Mission.get_or_404(mission_id, 'Mission not found')
    if request.user_role == 'technician' and mission.technician_id != request.user_id:
        return jsonify({'success': False, 'message': 'You can only update missions assigned to you'}), 403

    data = get_json_body()
    _validate(data, creating=False)

    if request.user_role == 'admin' and data.get('technicianId') and data['technicianId'] != mission.technician_id:
        technician = db.session.get(User, data['technicianId'])
        if not technician or technician.role != 'technician':
            return jsonify({'success': False, 'message': 'Technician not found'}), 400
        mission.technician_id = technician.id

    previous_status = apply_transition('mission', mission, data['status']) if 'status' in data else None

    mission.update_from(data, UPDATABLE_FIELDS)
    if 'scheduledDate' in data:
        mission.scheduled_date = parse_datetime(data['scheduledDate'])

    notifications = []
    try:
        if previous_status and mission.status == 'completed':
            _complete(mission)
        if previous_status:
            message = _status_message(mission, previous_status)
            notifications = [
                create_notification(recipient, message, 'status_update', mission.id, 'Mission',
                                    sender_id=request.user_id)
                for recipient in (mission.technician_id, mission.client_id)
            ]
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.exception('Mission update failed for %s', mission_id)
        return jsonify({'success': False, 'message': 'Error updating mission', 'error': str(e)}), 500

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Mission updated successfully', 'data': mission.to_dict()}), 200


@missions_bp.route('/<mission_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_mission(mission_id):
    mission = Mission.get_or_404(mission_id, 'Mission not found')
    Report.query.filter_by(mission_id=mission.id).delete()
    db.session.delete(mission)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Mission deleted successfully'}), 200
