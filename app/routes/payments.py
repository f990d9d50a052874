"""
Payment routes - payments recorded against quotes
"""
import logging
from datetime import timedelta

from flask import Blueprint, request, jsonify
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app import db
from app.models import Payment, Quote
from app.models.payment import PAYMENT_STATUSES
from app.services.billing import apply_payments
from app.utils import require_auth, require_role, paginate_query, parse_datetime, get_json_body, FieldErrors, utcnow
from app.utils.helpers import start_of_month
from app.utils.validators import is_number, is_blank

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__)


def _validate(data, creating):
    errors = FieldErrors()
    if creating:
        errors.require(data, 'quoteId', 'Quote is required')
    if creating or 'amount' in data:
        errors.check(is_number(data.get('amount')) and float(data['amount']) > 0, 'amount',
                     'Amount must be a positive number')
    if creating or 'paymentMethod' in data:
        errors.check(not is_blank(data.get('paymentMethod')), 'paymentMethod', 'Payment method is required')
    if 'status' in data:
        errors.check(data['status'] in PAYMENT_STATUSES, 'status', 'Invalid status')
    errors.raise_if_any()


def _revenue(start=None, end=None):
    query = db.session.query(func.coalesce(func.sum(Payment.amount), 0.0)).filter(Payment.status == 'completed')
    if start is not None:
        query = query.filter(Payment.payment_date >= start)
    if end is not None:
        query = query.filter(Payment.payment_date < end)
    return round(float(query.scalar() or 0), 2)


@payments_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_payments():
    """
    GET /api/payments?status=completed&quoteId=uuid&page=1&limit=20
    """
    query = Payment.query
    status = request.args.get('status')
    if status:
        query = query.filter(Payment.status == status)
    quote_id = request.args.get('quoteId')
    if quote_id:
        query = query.filter(Payment.quote_id == quote_id)

    payments, pagination = paginate_query(query.order_by(Payment.payment_date.desc()),
                                          request.args.get('page', 1), request.args.get('limit', 20))
    return jsonify({
        'success': True,
        'data': {'payments': [p.to_dict() for p in payments], 'pagination': pagination}
    }), 200


@payments_bp.route('/my', methods=['GET'])
@require_auth
@require_role('client', 'technician')
def my_payments():
    """Clients see payments on their quotes, technicians on quotes they created"""
    query = Payment.query.join(Quote, Payment.quote_id == Quote.id)
    if request.user_role == 'client':
        query = query.filter(Quote.client_id == request.user_id)
    else:
        query = query.filter(Quote.created_by == request.user_id)
    payments = query.order_by(Payment.payment_date.desc()).all()
    return jsonify({'success': True, 'data': [p.to_dict() for p in payments]}), 200


@payments_bp.route('/stats/overview', methods=['GET'])
@require_auth
@require_role('admin')
def payment_stats():
    this_month = start_of_month()
    last_month = start_of_month(this_month - timedelta(days=1))
    return jsonify({
        'success': True,
        'data': {
            'totalRevenue': _revenue(),
            'thisMonth': _revenue(start=this_month),
            'lastMonth': _revenue(start=last_month, end=this_month),
            'count': Payment.query.filter_by(status='completed').count(),
        }
    }), 200


@payments_bp.route('/<payment_id>', methods=['GET'])
@require_auth
def get_payment(payment_id):
    payment = Payment.get_or_404(payment_id, 'Payment not found')
    if request.user_role != 'admin' and (not payment.quote or payment.quote.client_id != request.user_id):
        return jsonify({'success': False, 'message': 'Access denied to this payment'}), 403
    return jsonify({'success': True, 'data': payment.to_dict()}), 200


@payments_bp.route('', methods=['POST'])
@require_auth
@require_role('admin', 'client')
def record_payment():
    """
    Record a payment
    POST /api/payments
    Body: {
        "quoteId": "uuid",
        "amount": 150.00,
        "paymentMethod": "card",
        "status": "completed",
        "transactionId": "txn_123456"
    }
    """
    data = get_json_body()
    _validate(data, creating=True)

    quote = db.session.get(Quote, data['quoteId'])
    if not quote:
        return jsonify({'success': False, 'message': 'Quote not found'}), 400
    if request.user_role == 'client' and quote.client_id != request.user_id:
        return jsonify({'success': False, 'message': 'You can only pay your own quotes'}), 403

    payment = Payment(
        quote_id=quote.id,
        amount=round(float(data['amount']), 2),
        payment_method=data['paymentMethod'].strip(),
        payment_date=parse_datetime(data.get('paymentDate')) or utcnow(),
        status=data.get('status') or 'completed',
        transaction_id=data.get('transactionId') or None,
        notes=data.get('notes'),
        created_by=request.user_id,
    )

    try:
        db.session.add(payment)
        db.session.flush()
        received = apply_payments(quote)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'A payment with this transaction id already exists'}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Failed to record payment', 'error': str(e)}), 500

    logger.info('Payment of %.2f recorded on quote %s (%.2f received of %.2f)',
                payment.amount, quote.reference, received, quote.total)
    return jsonify({'success': True, 'message': 'Payment recorded successfully', 'data': payment.to_dict()}), 201


@payments_bp.route('/<payment_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_payment(payment_id):
    payment = Payment.get_or_404(payment_id, 'Payment not found')
    data = get_json_body()
    _validate(data, creating=False)

    payment.update_from(data, ['payment_method', 'status', 'transaction_id', 'notes'])
    if 'amount' in data:
        payment.amount = round(float(data['amount']), 2)
    if data.get('paymentDate'):
        payment.payment_date = parse_datetime(data['paymentDate'])

    try:
        db.session.flush()
        apply_payments(payment.quote)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'A payment with this transaction id already exists'}), 400

    return jsonify({'success': True, 'message': 'Payment updated successfully', 'data': payment.to_dict()}), 200


@payments_bp.route('/<payment_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_payment(payment_id):
    payment = Payment.get_or_404(payment_id, 'Payment not found')
    quote = payment.quote
    db.session.delete(payment)
    db.session.flush()
    apply_payments(quote)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Payment deleted successfully'}), 200
