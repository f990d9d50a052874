"""
Invoice routes
"""
import io
import logging

from flask import Blueprint, request, jsonify, send_file
from sqlalchemy import or_

from app import db
from app.models import Company, Invoice, Mission, User
from app.models.invoice import INVOICE_STATUSES, PAYMENT_STATUSES
from app.services.pdf import build_invoice_pdf
from app.services.references import next_invoice_number
from app.services.workflow import apply_transition
from app.utils import require_auth, require_role, paginate_query, parse_datetime, get_json_body, FieldErrors, utcnow
from app.utils.validators import is_number, is_blank

logger = logging.getLogger(__name__)

invoices_bp = Blueprint('invoices', __name__)


def _validate(data, creating):
    errors = FieldErrors()
    if creating:
        errors.require(data, 'client', 'Client is required')
        errors.check(parse_datetime(data.get('dueDate')) is not None, 'dueDate', 'A valid due date is required')
    elif 'dueDate' in data:
        errors.check(parse_datetime(data['dueDate']) is not None, 'dueDate', 'Invalid date')

    if creating or 'items' in data:
        items = data.get('items')
        if errors.check(isinstance(items, list) and len(items) > 0, 'items', 'At least one item is required'):
            for index, item in enumerate(items):
                prefix = f'items[{index}]'
                if not isinstance(item, dict):
                    errors.add(prefix, 'Invalid item')
                    continue
                errors.check(not is_blank(item.get('description')), f'{prefix}.description',
                             'Item description is required')
                errors.check(is_number(item.get('quantity')) and float(item['quantity']) > 0,
                             f'{prefix}.quantity', 'Quantity must be a positive number')
                errors.check(is_number(item.get('unitPrice')) and float(item['unitPrice']) > 0,
                             f'{prefix}.unitPrice', 'Unit price must be a positive number')
    if 'status' in data:
        errors.check(data['status'] in INVOICE_STATUSES, 'status', 'Invalid status')
    if 'paymentStatus' in data:
        errors.check(data['paymentStatus'] in PAYMENT_STATUSES, 'paymentStatus', 'Invalid payment status')
    errors.raise_if_any()


def _items(data):
    items = []
    for item in data['items']:
        quantity = float(item['quantity'])
        unit_price = float(item['unitPrice'])
        items.append({
            'description': item['description'].strip(),
            'quantity': quantity,
            'unitPrice': unit_price,
            'total': round(quantity * unit_price, 2),
        })
    return items


def _check_parties(data):
    errors = FieldErrors()
    if 'client' in data:
        client = db.session.get(User, data['client'])
        errors.check(client is not None and client.role == 'client', 'client', 'Client not found')
    if data.get('company'):
        errors.check(db.session.get(Company, data['company']) is not None, 'company', 'Company not found')
    errors.raise_if_any()


@invoices_bp.route('', methods=['GET'])
@require_auth
@require_role('admin', 'client')
def list_invoices():
    """
    GET /api/invoices?status=pending&paymentStatus=unpaid&search=INV-&page=1&limit=10
    """
    query = Invoice.query
    if request.user_role == 'client':
        query = query.filter(Invoice.client_id == request.user_id)

    status = request.args.get('status')
    if status:
        query = query.filter(Invoice.status == status)
    payment_status = request.args.get('paymentStatus')
    if payment_status:
        query = query.filter(Invoice.payment_status == payment_status)
    search = request.args.get('search')
    if search:
        query = query.filter(or_(Invoice.invoice_number.ilike(f'%{search}%'), Invoice.notes.ilike(f'%{search}%')))

    invoices, pagination = paginate_query(query.order_by(Invoice.issue_date.desc()),
                                          request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'invoices': [i.to_dict() for i in invoices], 'pagination': pagination}
    }), 200


@invoices_bp.route('/<invoice_id>', methods=['GET'])
@require_auth
@require_role('admin', 'client')
def get_invoice(invoice_id):
    invoice = Invoice.get_or_404(invoice_id, 'Invoice not found')
    if request.user_role == 'client' and invoice.client_id != request.user_id:
        return jsonify({'success': False, 'message': 'Access denied to this invoice'}), 403
    return jsonify({'success': True, 'data': {'invoice': invoice.to_dict()}}), 200


@invoices_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_invoice():
    data = get_json_body()
    _validate(data, creating=True)
    _check_parties(data)

    items = _items(data)
    invoice = Invoice(
        invoice_number=next_invoice_number(),
        client_id=data['client'],
        company_id=data.get('company') or None,
        issue_date=parse_datetime(data.get('issueDate')) or utcnow(),
        due_date=parse_datetime(data['dueDate']),
        items=items,
        total_amount=round(sum(item['total'] for item in items), 2),
        status='pending',
        payment_status='unpaid',
        related_quotes=data.get('relatedQuotes') or [],
        related_missions=data.get('relatedMissions') or [],
        notes=data.get('notes'),
    )

    try:
        db.session.add(invoice)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error creating invoice', 'error': str(e)}), 500

    logger.info('Invoice %s created', invoice.invoice_number)
    return jsonify({'success': True, 'message': 'Invoice created successfully',
                    'data': {'invoice': invoice.to_dict()}}), 201


@invoices_bp.route('/<invoice_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_invoice(invoice_id):
    invoice = Invoice.get_or_404(invoice_id, 'Invoice not found')
    data = get_json_body()
    _validate(data, creating=False)
    _check_parties(data)

    if 'status' in data:
        apply_transition('invoice', invoice, data['status'])
    if 'client' in data:
        invoice.client_id = data['client']
    if 'company' in data:
        invoice.company_id = data['company'] or None
    if 'items' in data:
        invoice.items = _items(data)
        invoice.total_amount = round(sum(item['total'] for item in invoice.items), 2)
    if 'dueDate' in data:
        invoice.due_date = parse_datetime(data['dueDate'])
    invoice.update_from(data, ['payment_status', 'notes', 'related_quotes', 'related_missions'])

    db.session.commit()
    return jsonify({'success': True, 'message': 'Invoice updated successfully',
                    'data': {'invoice': invoice.to_dict()}}), 200


@invoices_bp.route('/<invoice_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_invoice(invoice_id):
    invoice = Invoice.get_or_404(invoice_id, 'Invoice not found')
    Mission.query.filter_by(invoice_id=invoice.id).update({'invoice_id': None})
    db.session.delete(invoice)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Invoice deleted successfully'}), 200


@invoices_bp.route('/<invoice_id>/pdf', methods=['GET'])
@require_auth
@require_role('admin', 'client')
def invoice_pdf(invoice_id):
    invoice = Invoice.get_or_404(invoice_id, 'Invoice not found')
    if request.user_role == 'client' and invoice.client_id != request.user_id:
        return jsonify({'success': False, 'message': 'Access denied to this invoice'}), 403

    try:
        pdf = build_invoice_pdf(invoice)
    except Exception as e:
        logger.exception('PDF generation failed for invoice %s', invoice.id)
        return jsonify({'success': False, 'message': 'Error generating PDF', 'error': str(e)}), 500

    return send_file(io.BytesIO(pdf), mimetype='application/pdf', as_attachment=True,
                     download_name=f'facture-{invoice.invoice_number}.pdf')
