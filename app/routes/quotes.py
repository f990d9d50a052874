"""
Quote routes - priced proposals, client answers and PDF export
"""
import io
import logging
from datetime import timedelta

from flask import Blueprint, request, jsonify, current_app, send_file
from sqlalchemy import or_, func

from app import db
from app.models import Mission, Quote, ServiceRequest, User
from app.models.quote import QUOTE_STATUSES, ITEM_TYPES
from app.services.email import send_quote_email, send_quote_request_email, send_quote_response_email
from app.services.notifications import create_notification, notify_admins, push_notifications
from app.services.pdf import build_quote_pdf
from app.services.references import next_quote_reference
from app.services.workflow import apply_transition, can_transition
from app.utils import require_auth, require_role, paginate_query, parse_datetime, get_json_body, FieldErrors, \
    utcnow, validate_email
from app.utils.validators import is_number, is_integer, is_blank

logger = logging.getLogger(__name__)

quotes_bp = Blueprint('quotes', __name__)

SENT_STATUSES = ('sent', 'accepted', 'rejected', 'expired', 'mission_assigned', 'paid')
WON_STATUSES = ('accepted', 'mission_assigned', 'paid')
# payments and invoices are reconciled against the accepted total
PRICING_EDITABLE_STATUSES = ('draft', 'sent')
DEFAULT_VALIDITY_DAYS = 30


def _can_view(quote):
    if request.user_role == 'admin':
        return True
    if request.user_role == 'technician':
        return request.user_id in (quote.technician_id, quote.created_by)
    return quote.client_id == request.user_id


def _scoped_query():
    query = Quote.query
    if request.user_role == 'client':
        query = query.filter(Quote.client_id == request.user_id)
    elif request.user_role == 'technician':
        query = query.filter(or_(Quote.technician_id == request.user_id, Quote.created_by == request.user_id))
    return query


def _validate_items(items, errors):
    if not errors.check(isinstance(items, list) and len(items) > 0, 'items', 'At least one item is required'):
        return
    for index, item in enumerate(items):
        prefix = f'items[{index}]'
        if not isinstance(item, dict):
            errors.add(prefix, 'Invalid item')
            continue
        errors.check(not is_blank(item.get('description')), f'{prefix}.description', 'Item description is required')
        errors.check(is_integer(item.get('quantity'), minimum=1), f'{prefix}.quantity',
                     'Quantity must be an integer of at least 1')
        errors.check(is_number(item.get('unitPrice'), minimum=0), f'{prefix}.unitPrice',
                     'Unit price must be a positive number')
        errors.check(item.get('itemType', 'service') in ITEM_TYPES, f'{prefix}.itemType',
                     'Item type must be service or equipment')


def _clean_items(items):
    cleaned = []
    for item in items:
        entry = {
            'description': item['description'].strip(),
            'quantity': int(float(item['quantity'])),
            'unitPrice': float(item['unitPrice']),
            'itemType': item.get('itemType', 'service'),
        }
        for optional in ('equipmentId', 'serviceTypeId'):
            if item.get(optional):
                entry[optional] = item[optional]
        cleaned.append(entry)
    return cleaned


def _validate(data, creating, current_status=None):
    errors = FieldErrors()
    if creating:
        errors.require(data, 'clientId', 'Client is required')
    if current_status and current_status not in PRICING_EDITABLE_STATUSES:
        for field in ('items', 'taxRate'):
            errors.check(field not in data, field, f'Pricing cannot be changed once a quote is {current_status}')
    if creating or 'items' in data:
        _validate_items(data.get('items'), errors)
    if data.get('taxRate') is not None:
        errors.check(is_number(data['taxRate'], minimum=0) and float(data['taxRate']) <= 100, 'taxRate',
                     'Tax rate must be between 0 and 100')
    if data.get('validUntil'):
        errors.check(parse_datetime(data['validUntil']) is not None, 'validUntil', 'Invalid date')
    if 'status' in data:
        errors.check(data['status'] in QUOTE_STATUSES, 'status', 'Invalid status')
    errors.raise_if_any()


def _status_notifications(quote, previous_status):
    message = f'Le devis {quote.reference} est passé de {previous_status} à {quote.status}'
    recipients = {quote.client_id, quote.technician_id} - {None, request.user_id}
    return [
        create_notification(recipient, message, 'status_update', quote.id, 'Quote', sender_id=request.user_id)
        for recipient in sorted(recipients)
    ]


@quotes_bp.route('/request', methods=['POST'])
def request_quote():
    """
    Public quote request from the website; forwarded by email to ADMIN_EMAILS
    """
    data = get_json_body()
    if not data.get('name') and (data.get('firstName') or data.get('lastName')):
        data['name'] = ' '.join(filter(None, [data.get('firstName'), data.get('lastName')]))

    errors = FieldErrors()
    errors.require(data, 'name', 'Name is required')
    errors.check(validate_email(data.get('email')), 'email', 'Invalid email')
    errors.check(not is_blank(data.get('message') or data.get('description')), 'message', 'Message is required')
    errors.raise_if_any()

    data.setdefault('message', data.get('description'))
    logger.info('Quote request received from %s', data['email'])
    send_quote_request_email(data)

    return jsonify({'success': True, 'message': 'Quote request sent successfully'}), 200


@quotes_bp.route('', methods=['GET'])
@require_auth
def list_quotes():
    """
    GET /api/quotes?status=sent&search=DEV-2024&page=1&limit=10
    """
    query = _scoped_query()
    status = request.args.get('status')
    if status:
        query = query.filter(Quote.status == status)
    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Quote.reference.ilike(pattern), Quote.title.ilike(pattern)))

    quotes, pagination = paginate_query(query.order_by(Quote.created_at.desc()),
                                        request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'quotes': [q.to_dict() for q in quotes], 'pagination': pagination}
    }), 200


@quotes_bp.route('/my', methods=['GET'])
@require_auth
def my_quotes():
    quotes = _scoped_query().order_by(Quote.created_at.desc()).all()
    return jsonify({'success': True, 'data': [q.to_dict() for q in quotes]}), 200


@quotes_bp.route('/stats/overview', methods=['GET'])
@require_auth
@require_role('admin')
def quote_stats():
    by_status = dict(db.session.query(Quote.status, func.count(Quote.id)).group_by(Quote.status).all())
    won_value = db.session.query(func.coalesce(func.sum(Quote.total), 0.0)).filter(
        Quote.status.in_(WON_STATUSES)).scalar()

    sent = sum(by_status.get(status, 0) for status in SENT_STATUSES)
    won = sum(by_status.get(status, 0) for status in WON_STATUSES)
    return jsonify({
        'success': True,
        'data': {
            'total': sum(by_status.values()),
            'byStatus': {status: by_status.get(status, 0) for status in QUOTE_STATUSES},
            'acceptedValue': round(float(won_value or 0), 2),
            'conversionRate': round(won / sent * 100, 2) if sent else 0,
        }
    }), 200


@quotes_bp.route('/<quote_id>', methods=['GET'])
@require_auth
def get_quote(quote_id):
    quote = Quote.get_or_404(quote_id, 'Quote not found')
    if not _can_view(quote):
        return jsonify({'success': False, 'message': 'Access denied to this quote'}), 403
    return jsonify({'success': True, 'data': quote.to_dict()}), 200


@quotes_bp.route('', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def create_quote():
    """
    POST /api/quotes
    {"clientId": "...", "items": [{"description": "Cable", "quantity": 10, "unitPrice": 5}], "taxRate": 20}
    """
    data = get_json_body()
    _validate(data, creating=True)

    client = db.session.get(User, data['clientId'])
    if not client or client.role != 'client':
        return jsonify({'success': False, 'message': 'Client not found'}), 400

    technician_id = request.user_id if request.user_role == 'technician' else data.get('technicianId')
    if technician_id and technician_id != request.user_id:
        technician = db.session.get(User, technician_id)
        if not technician or technician.role != 'technician':
            return jsonify({'success': False, 'message': 'Technician not found'}), 400

    service_request = None
    if data.get('requestId'):
        service_request = db.session.get(ServiceRequest, data['requestId'])
        if not service_request:
            return jsonify({'success': False, 'message': 'Request not found'}), 400

    tax_rate = data.get('taxRate')
    quote = Quote(
        reference=next_quote_reference(),
        title=data.get('title'),
        description=data.get('description'),
        items=_clean_items(data['items']),
        tax_rate=float(tax_rate) if tax_rate is not None else current_app.config['DEFAULT_TAX_RATE'],
        valid_until=parse_datetime(data.get('validUntil')) or utcnow() + timedelta(days=DEFAULT_VALIDITY_DAYS),
        notes=data.get('notes'),
        terms=data.get('terms'),
        client_id=client.id,
        technician_id=technician_id or None,
        request_id=service_request.id if service_request else None,
        created_by=request.user_id,
    )

    if service_request:
        if can_transition('request', service_request.status, 'quoted'):
            service_request.status = 'quoted'
        else:
            logger.warning('Request %s left in status %s after quoting',
                           service_request.reference, service_request.status)

    try:
        db.session.add(quote)
        db.session.flush()
        notifications = [create_notification(
            client.id, f'Un nouveau devis {quote.reference} a été créé pour vous',
            'quote_created', quote.id, 'Quote', sender_id=request.user_id,
        )]
        if quote.technician_id and quote.technician_id != request.user_id:
            notifications.append(create_notification(
                quote.technician_id, f'Le devis {quote.reference} vous a été attribué',
                'quote_created', quote.id, 'Quote', sender_id=request.user_id,
            ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error creating quote', 'error': str(e)}), 500

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Quote created successfully', 'data': quote.to_dict()}), 201


@quotes_bp.route('/<quote_id>', methods=['PUT'])
@require_auth
@require_role('admin', 'technician')
def update_quote(quote_id):
    quote = Quote.get_or_404(quote_id, 'Quote not found')
    if not _can_view(quote):
        return jsonify({'success': False, 'message': 'Access denied to this quote'}), 403

    data = get_json_body()
    _validate(data, creating=False, current_status=quote.status)

    previous_status = apply_transition('quote', quote, data['status']) if 'status' in data else None

    quote.update_from(data, ['title', 'description', 'notes', 'terms'])
    if 'items' in data:
        quote.items = _clean_items(data['items'])
    if data.get('taxRate') is not None:
        quote.tax_rate = float(data['taxRate'])
    if 'validUntil' in data:
        quote.valid_until = parse_datetime(data['validUntil'])
    if request.user_role == 'admin' and 'technicianId' in data:
        quote.technician_id = data['technicianId'] or None
    if previous_status and quote.status == 'sent':
        quote.sent_date = utcnow()
    quote.recalculate_totals()

    notifications = _status_notifications(quote, previous_status) if previous_status else []
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error updating quote', 'error': str(e)}), 500

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Quote updated successfully', 'data': quote.to_dict()}), 200


@quotes_bp.route('/<quote_id>/send', methods=['POST'])
@require_auth
@require_role('admin', 'technician')
def send_quote(quote_id):
    quote = Quote.get_or_404(quote_id, 'Quote not found')
    if not _can_view(quote):
        return jsonify({'success': False, 'message': 'Access denied to this quote'}), 403

    apply_transition('quote', quote, 'sent')
    quote.sent_date = utcnow()
    notification = create_notification(
        quote.client_id, f'Le devis {quote.reference} est disponible',
        'quote_sent', quote.id, 'Quote', sender_id=request.user_id,
    )
    db.session.commit()

    push_notifications([notification])
    send_quote_email(quote, quote.client)
    return jsonify({'success': True, 'message': 'Quote sent successfully', 'data': quote.to_dict()}), 200


@quotes_bp.route('/<quote_id>/respond', methods=['POST'])
@require_auth
@require_role('client')
def respond_to_quote(quote_id):
    """
    POST /api/quotes/<id>/respond
    {"accepted": true, "comments": "OK pour moi"}
    """
    quote = Quote.get_or_404(quote_id, 'Quote not found')
    if quote.client_id != request.user_id:
        return jsonify({'success': False, 'message': 'You can only respond to your own quotes'}), 403

    data = get_json_body()
    accepted = data.get('accepted')
    if not isinstance(accepted, bool):
        return jsonify({'success': False, 'message': 'Invalid data',
                        'errors': [{'field': 'accepted', 'message': 'accepted must be a boolean'}]}), 400
    if quote.status != 'sent':
        return jsonify({'success': False, 'message': 'Only a sent quote can be answered'}), 400

    now = utcnow()
    apply_transition('quote', quote, 'accepted' if accepted else 'rejected')
    quote.responded_date = now
    quote.client_response = {'accepted': accepted, 'comments': data.get('comments') or '', 'date': now.isoformat()}

    verdict = 'accepté' if accepted else 'refusé'
    message = f'Le devis {quote.reference} a été {verdict} par {request.current_user.full_name}'
    notifications = notify_admins(message, 'quote_response', quote.id, 'Quote', sender_id=request.user_id)
    if quote.technician_id:
        notifications.append(create_notification(
            quote.technician_id, message, 'quote_response', quote.id, 'Quote', sender_id=request.user_id,
        ))
    db.session.commit()

    push_notifications(notifications)
    recipients = User.query.filter_by(role='admin', is_active=True).all()
    if quote.technician:
        recipients.append(quote.technician)
    send_quote_response_email(quote, request.current_user, recipients)

    return jsonify({'success': True, 'message': f'Quote {quote.status}', 'data': quote.to_dict()}), 200


@quotes_bp.route('/<quote_id>/pdf', methods=['GET'])
@require_auth
def quote_pdf(quote_id):
    quote = Quote.get_or_404(quote_id, 'Quote not found')
    if not _can_view(quote):
        return jsonify({'success': False, 'message': 'Access denied to this quote'}), 403

    try:
        pdf = build_quote_pdf(quote)
    except Exception as e:
        logger.exception('PDF generation failed for quote %s', quote.id)
        return jsonify({'success': False, 'message': 'Error generating PDF', 'error': str(e)}), 500

    return send_file(io.BytesIO(pdf), mimetype='application/pdf', as_attachment=True,
                     download_name=f'devis-{quote.reference}.pdf')


@quotes_bp.route('/<quote_id>', methods=['DELETE'])
@require_auth
@require_role('admin', 'technician')
def delete_quote(quote_id):
    quote = Quote.get_or_404(quote_id, 'Quote not found')
    if request.user_role == 'technician' and quote.technician_id != request.user_id:
        return jsonify({'success': False, 'message': 'Access denied to this quote'}), 403
    if Mission.query.filter_by(quote_id=quote.id).first():
        return jsonify({'success': False, 'message': 'Quote has missions and cannot be deleted'}), 400

    db.session.delete(quote)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Quote deleted successfully'}), 200
