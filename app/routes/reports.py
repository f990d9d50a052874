"""
Intervention report routes - capture, photos, PDF export and BATUTA compliance
"""
import io
import logging
import os

from flask import Blueprint, request, jsonify, send_file
from sqlalchemy import or_, func
from sqlalchemy.orm import aliased

from app import db
from app.models import Equipment, Mission, Product, Report, User
from app.models.report import REPORT_TYPES, REPORT_STATUSES
from app.services.compliance import ComplianceRegistryError, generate_certificate_number, submit_report
from app.services.email import send_report_email
from app.services.notifications import create_notification, push_notifications
from app.services.pdf import build_report_pdf
from app.services.references import next_intervention_reference
from app.services.uploads import save_uploads, upload_path
from app.services.workflow import apply_transition
from app.utils import require_auth, require_role, paginate_query, parse_datetime, get_json_body, FieldErrors, utcnow
from app.utils.helpers import parse_json_field
from app.utils.validators import is_blank, validate_time

logger = logging.getLogger(__name__)

reports_bp = Blueprint('reports', __name__)

MAX_PHOTOS = 10
JSON_FIELDS = ('location', 'anomalies', 'selectedEquipment', 'selectedProducts')
TEXT_FIELDS = ['type', 'start_time', 'end_time', 'equipment', 'work_performed', 'recommendations', 'notes',
               'client_signature', 'technician_signature']


def _clean_payload(data):
    """
    Multipart clients send structured fields as JSON strings; decode them and
    drop serialized placeholders such as "[object Object]"
    """
    data = dict(data)
    for key in JSON_FIELDS + ('photos',):
        value = data.get(key)
        if isinstance(value, str) and '[object' in value:
            del data[key]
        elif key in JSON_FIELDS and isinstance(value, str):
            data[key] = parse_json_field(value, default=value)
    if 'isBatutalCompliant' in data:
        data['batutalCompliant'] = data.pop('isBatutalCompliant')
    if isinstance(data.get('batutalCompliant'), str):
        data['batutalCompliant'] = data['batutalCompliant'].lower() == 'true'
    if 'reportDate' in data and 'date' not in data:
        data['date'] = data.pop('reportDate')
    data.pop('photos', None)
    return data


def _check_ids(data, key, model, errors):
    ids = data.get(key)
    if not errors.check(isinstance(ids, list), key, f'{key} must be a list'):
        return
    if ids:
        found = {row.id for row in model.query.filter(model.id.in_(ids)).all()}
        for index, value in enumerate(ids):
            errors.check(value in found, f'{key}[{index}]', 'Unknown reference')


def _validate(data, creating):
    errors = FieldErrors()
    if creating:
        errors.require(data, 'mission', 'Mission is required')
    if creating or 'type' in data:
        errors.check(data.get('type') in REPORT_TYPES, 'type', 'Invalid intervention type')
    for field in ('startTime', 'endTime'):
        if creating or field in data:
            errors.check(validate_time(data.get(field)), field, 'Invalid time format (HH:MM)')
    if creating or 'location' in data:
        location = data.get('location')
        if errors.check(isinstance(location, dict), 'location', 'Location is required'):
            for part in ('address', 'city', 'postalCode'):
                errors.check(not is_blank(location.get(part)), f'location.{part}', f'{part} is required')
    for field, message in (('equipment', 'Equipment is required'),
                           ('workPerformed', 'Work performed is required')):
        if creating or field in data:
            errors.require(data, field, message)
    if 'selectedEquipment' in data:
        _check_ids(data, 'selectedEquipment', Equipment, errors)
    if 'selectedProducts' in data:
        _check_ids(data, 'selectedProducts', Product, errors)
    if 'anomalies' in data:
        errors.check(isinstance(data['anomalies'], list), 'anomalies', 'anomalies must be a list')
    if 'status' in data:
        errors.check(data['status'] in REPORT_STATUSES, 'status', 'Invalid status')
    if 'batutalCompliant' in data:
        errors.check(isinstance(data['batutalCompliant'], bool), 'batutalCompliant',
                     'batutalCompliant must be a boolean')
    if data.get('date'):
        errors.check(parse_datetime(data['date']) is not None, 'date', 'Invalid date')
    errors.raise_if_any()


def _can_view(report):
    if request.user_role == 'admin':
        return True
    mission = report.mission
    if mission is None:
        return False
    if request.user_role == 'technician':
        return mission.technician_id == request.user_id
    return mission.client_id == request.user_id


def _can_edit(report):
    if request.user_role == 'admin':
        return True
    return report.mission is not None and report.mission.technician_id == request.user_id


def _photos_from_request():
    stored = save_uploads(request.files.getlist('photos'), 'reports', max_files=MAX_PHOTOS)
    coordinates = parse_json_field(request.form.get('coordinates'))
    now = utcnow().isoformat()
    return [{'url': f['url'], 'description': '', 'timestamp': now, 'coordinates': coordinates} for f in stored]


def _catalog_names(report):
    equipment_names = [e.name for e in Equipment.query.filter(
        Equipment.id.in_(report.selected_equipment or [])).all()] if report.selected_equipment else []
    product_names = [p.name for p in Product.query.filter(
        Product.id.in_(report.selected_products or [])).all()] if report.selected_products else []
    return equipment_names, product_names


def _render_pdf(report):
    equipment_names, product_names = _catalog_names(report)
    return build_report_pdf(report, equipment_names=equipment_names, product_names=product_names)


def _store_pdf(report):
    """Write the report PDF under uploads/reports/pdf and remember its url"""
    filename = f'report-{report.intervention_reference}.pdf'
    folder = upload_path('reports', 'pdf')
    os.makedirs(folder, exist_ok=True)
    with open(os.path.join(folder, filename), 'wb') as fh:
        fh.write(_render_pdf(report))
    report.pdf_url = f'/uploads/reports/pdf/{filename}'
    return report.pdf_url


def _forbidden():
    return jsonify({'success': False, 'message': 'Access denied to this report'}), 403


@reports_bp.route('', methods=['GET'])
@require_auth
def list_reports():
    """
    GET /api/reports?status=completed&type=Autre&batutalCompliant=true&search=INT-&page=1&limit=10
    """
    query = Report.query.join(Mission, Report.mission_id == Mission.id)
    if request.user_role == 'technician':
        query = query.filter(Mission.technician_id == request.user_id)
    elif request.user_role == 'client':
        query = query.filter(Mission.client_id == request.user_id)

    status = request.args.get('status')
    if status and status != 'all':
        query = query.filter(Report.status == status)
    report_type = request.args.get('type')
    if report_type and report_type != 'all':
        query = query.filter(Report.type == report_type)
    compliant = request.args.get('batutalCompliant')
    if compliant is not None:
        query = query.filter(Report.batutal_compliant == (compliant == 'true'))

    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f'%{search}%'
        client = aliased(User)
        query = query.join(client, Mission.client_id == client.id).filter(or_(
            Report.intervention_reference.ilike(pattern),
            Report.work_performed.ilike(pattern),
            client.first_name.ilike(pattern),
            client.last_name.ilike(pattern),
            client.company.ilike(pattern),
        ))

    reports, pagination = paginate_query(query.order_by(Report.created_at.desc()),
                                         request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'reports': [r.to_dict() for r in reports], 'pagination': pagination}
    }), 200


@reports_bp.route('/my', methods=['GET'])
@require_auth
def my_reports():
    query = Report.query.join(Mission, Report.mission_id == Mission.id)
    if request.user_role == 'technician':
        query = query.filter(Mission.technician_id == request.user_id)
    elif request.user_role == 'client':
        query = query.filter(Mission.client_id == request.user_id)
    else:
        query = query.filter(Report.created_by == request.user_id)
    reports = query.order_by(Report.created_at.desc()).all()
    return jsonify({'success': True, 'data': {'reports': [r.to_dict() for r in reports]}}), 200


@reports_bp.route('/stats/overview', methods=['GET'])
@require_auth
@require_role('admin')
def report_stats():
    by_status = dict(db.session.query(Report.status, func.count(Report.id)).group_by(Report.status).all())
    by_type = dict(db.session.query(Report.type, func.count(Report.id)).group_by(Report.type).all())
    return jsonify({
        'success': True,
        'data': {
            'total': sum(by_status.values()),
            'byStatus': {status: by_status.get(status, 0) for status in REPORT_STATUSES},
            'byType': {report_type: by_type.get(report_type, 0) for report_type in REPORT_TYPES},
            'batutalCompliant': Report.query.filter_by(batutal_compliant=True).count(),
            'certified': Report.query.filter(Report.certificate_number.isnot(None)).count(),
        }
    }), 200


@reports_bp.route('/<report_id>', methods=['GET'])
@require_auth
def get_report(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_view(report):
        return _forbidden()
    return jsonify({'success': True, 'data': {'report': report.to_dict()}}), 200


@reports_bp.route('/<report_id>/pdf', methods=['GET'])
@require_auth
def report_pdf(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_view(report):
        return _forbidden()
    if not report.mission or not report.mission.client or not report.mission.technician:
        logger.error('Report %s has incomplete mission data; PDF not generated', report.id)
        return jsonify({'success': False, 'message': 'Mission data missing to generate the PDF'}), 500

    try:
        pdf = _render_pdf(report)
    except Exception as e:
        logger.exception('PDF generation failed for report %s', report.id)
        return jsonify({'success': False, 'message': 'Error generating PDF', 'error': str(e)}), 500

    return send_file(io.BytesIO(pdf), mimetype='application/pdf', as_attachment=True,
                     download_name=f'report-{report.intervention_reference}.pdf')


@reports_bp.route('', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def create_report():
    """
    POST /api/reports  (JSON or multipart with up to 10 photos)
    """
    data = _clean_payload(get_json_body())
    _validate(data, creating=True)

    mission = db.session.get(Mission, data['mission'])
    if not mission:
        return jsonify({'success': False, 'message': 'Mission not found'}), 404
    if request.user_role == 'technician' and mission.technician_id != request.user_id:
        return jsonify({'success': False, 'message': 'You can only report on missions assigned to you'}), 403

    status = data.get('status') or 'draft'
    if status == 'sent':
        return jsonify({'success': False, 'message': 'A new report cannot be created as sent'}), 400

    report = Report(
        intervention_reference=next_intervention_reference(),
        mission_id=mission.id,
        date=parse_datetime(data.get('date')) or utcnow(),
        location=data['location'],
        selected_equipment=data.get('selectedEquipment') or [],
        selected_products=data.get('selectedProducts') or [],
        anomalies=data.get('anomalies') or [],
        batutal_compliant=bool(data.get('batutalCompliant', False)),
        status=status,
        photos=_photos_from_request(),
        created_by=request.user_id,
    )
    report.update_from(data, TEXT_FIELDS)

    try:
        db.session.add(report)
        db.session.flush()
        message = (f'Un nouveau rapport ({report.intervention_reference}) a été créé '
                   f'pour la mission {mission.mission_number}.')
        notifications = [
            create_notification(recipient, message, 'report_created', report.id, 'Report',
                                sender_id=request.user_id)
            for recipient in (mission.technician_id, mission.client_id)
            if recipient != request.user_id
        ]
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.exception('Report creation failed')
        return jsonify({'success': False, 'message': 'Error creating report', 'error': str(e)}), 500

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Report created successfully',
                    'data': {'report': report.to_dict()}}), 201


@reports_bp.route('/<report_id>', methods=['PUT'])
@require_auth
@require_role('admin', 'technician')
def update_report(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_edit(report):
        return _forbidden()

    data = _clean_payload(get_json_body())
    _validate(data, creating=False)

    previous_status = apply_transition('report', report, data['status']) if 'status' in data else None

    report.update_from(data, TEXT_FIELDS)
    for key, column in (('location', 'location'), ('anomalies', 'anomalies'),
                        ('selectedEquipment', 'selected_equipment'), ('selectedProducts', 'selected_products')):
        if key in data:
            setattr(report, column, data[key])
    if 'batutalCompliant' in data:
        report.batutal_compliant = data['batutalCompliant']
    if 'date' in data:
        report.date = parse_datetime(data['date'])
    new_photos = _photos_from_request()
    if new_photos:
        report.photos = list(report.photos or []) + new_photos

    notifications = []
    if previous_status:
        mission = report.mission
        message = (f'Le statut du rapport {report.intervention_reference} est passé '
                   f'de {previous_status} à {report.status}.')
        notifications = [
            create_notification(recipient, message, 'status_update', report.id, 'Report',
                                sender_id=request.user_id)
            for recipient in (mission.technician_id, mission.client_id)
        ]

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error updating report', 'error': str(e)}), 500

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Report updated successfully',
                    'data': {'report': report.to_dict()}}), 200


@reports_bp.route('/<report_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_report(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    db.session.delete(report)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Report deleted successfully'}), 200


@reports_bp.route('/<report_id>/photos', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def add_photos(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_edit(report):
        return _forbidden()

    photos = _photos_from_request()
    if not photos:
        return jsonify({'success': False, 'message': 'No photo uploaded'}), 400
    report.photos = list(report.photos or []) + photos
    db.session.commit()

    return jsonify({'success': True, 'message': 'Photos added successfully', 'data': {'photos': photos}}), 200


@reports_bp.route('/<report_id>/generate-pdf', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def generate_pdf(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_edit(report):
        return _forbidden()

    try:
        pdf_url = _store_pdf(report)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.exception('PDF generation failed for report %s', report.id)
        return jsonify({'success': False, 'message': 'Error generating PDF', 'error': str(e)}), 500

    return jsonify({'success': True, 'message': 'PDF generated successfully', 'data': {'pdfUrl': pdf_url}}), 200


@reports_bp.route('/<report_id>/send-to-client', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def send_to_client(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_edit(report):
        return _forbidden()

    apply_transition('report', report, 'sent')
    client = report.mission.client
    try:
        if not report.pdf_url:
            _store_pdf(report)
        notification = create_notification(
            client.id, f'Votre rapport ({report.intervention_reference}) a été envoyé.',
            'report_sent', report.id, 'Report', sender_id=request.user_id,
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.exception('Sending report %s failed', report.id)
        return jsonify({'success': False, 'message': 'Error sending report', 'error': str(e)}), 500

    push_notifications([notification])
    send_report_email(report, client)
    return jsonify({'success': True, 'message': 'Report sent to client successfully',
                    'data': {'report': report.to_dict()}}), 200


@reports_bp.route('/<report_id>/send-to-batuta', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def send_to_batuta(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_edit(report):
        return _forbidden()
    if not report.batutal_compliant:
        return jsonify({'success': False, 'message': 'Report is not BATUTA compliant'}), 400

    try:
        submit_report(report)
    except ComplianceRegistryError as e:
        return jsonify({'success': False, 'message': 'Error sending report to BATUTA', 'error': str(e)}), 500
    db.session.commit()

    return jsonify({'success': True, 'message': 'Report sent to BATUTA successfully',
                    'data': {'batutaSentAt': report.batuta_sent_at.isoformat()}}), 200


@reports_bp.route('/<report_id>/generate-certificate', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def generate_certificate(report_id):
    report = Report.get_or_404(report_id, 'Report not found')
    if not _can_edit(report):
        return _forbidden()
    if not report.batutal_compliant:
        return jsonify({'success': False, 'message': 'Report is not BATUTA compliant'}), 400

    certificate_number = generate_certificate_number(report)
    db.session.commit()

    return jsonify({'success': True, 'message': 'Certificate generated successfully',
                    'data': {'certificateNumber': certificate_number}}), 200
