from flask import Blueprint, request, jsonify
from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError

from app import db
from app.models import Company, Invoice, Mission, User
from app.models.company import COMPANY_TYPES
from app.utils import require_auth, require_role, paginate_query, get_json_body, FieldErrors, validate_email
from app.utils.validators import validate_siret, validate_url

companies_bp = Blueprint('companies', __name__)

COMPANY_FIELDS = ['name', 'type', 'siret', 'website', 'description', 'is_active']


def _validate_company(data, creating):
    errors = FieldErrors()
    if creating or 'name' in data:
        name = (data.get('name') or '').strip()
        errors.check(2 <= len(name) <= 100, 'name', 'Name must be between 2 and 100 characters')
    if creating or 'type' in data:
        errors.check(data.get('type') in COMPANY_TYPES, 'type', 'Invalid company type')
    if data.get('siret'):
        errors.check(validate_siret(data['siret']), 'siret', 'SIRET must be 14 digits')
    if data.get('website'):
        errors.check(validate_url(data['website']), 'website', 'Invalid website URL')

    if creating or 'address' in data:
        address = data.get('address')
        if errors.check(isinstance(address, dict), 'address', 'Address is required'):
            for key in ('street', 'city', 'postalCode'):
                errors.check(bool(address.get(key)), f'address.{key}', f'address.{key} is required')
    if creating or 'contact' in data:
        contact = data.get('contact')
        if errors.check(isinstance(contact, dict), 'contact', 'Contact is required'):
            for key in ('firstName', 'lastName', 'phone'):
                errors.check(bool(contact.get(key)), f'contact.{key}', f'contact.{key} is required')
            errors.check(validate_email(contact.get('email')), 'contact.email', 'Invalid contact email')
    errors.raise_if_any()


def _apply(company, data):
    company.update_from(data, COMPANY_FIELDS)
    if 'address' in data:
        address = dict(data['address'])
        address.setdefault('country', 'France')
        company.address = address
    if 'contact' in data:
        company.contact = dict(data['contact'])
    if company.siret == '':
        company.siret = None


def _commit(action):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'A company with this SIRET already exists'}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Error {action} company', 'error': str(e)}), 500
    return None


@companies_bp.route('', methods=['GET'])
@require_auth
def list_companies():
    query = Company.query
    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Company.name.ilike(pattern), Company.siret.ilike(pattern)))
    company_type = request.args.get('type')
    if company_type:
        query = query.filter(Company.type == company_type)
    is_active = request.args.get('isActive')
    if is_active is not None:
        query = query.filter(Company.is_active == (is_active == 'true'))

    companies, pagination = paginate_query(query.order_by(Company.name),
                                           request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'companies': [c.to_dict() for c in companies], 'pagination': pagination}
    }), 200


@companies_bp.route('/search/<path:query>', methods=['GET'])
@require_auth
def search_companies(query):
    pattern = f'%{query}%'
    companies = Company.query.filter(
        Company.is_active.is_(True),
        or_(Company.name.ilike(pattern), Company.siret.ilike(pattern)),
    ).order_by(Company.name).limit(10).all()
    return jsonify({'success': True, 'data': {'companies': [c.to_dict() for c in companies]}}), 200


@companies_bp.route('/stats/overview', methods=['GET'])
@require_auth
@require_role('admin')
def companies_stats():
    by_type = dict(db.session.query(Company.type, func.count(Company.id)).group_by(Company.type).all())
    return jsonify({
        'success': True,
        'data': {
            'total': Company.query.count(),
            'active': Company.query.filter_by(is_active=True).count(),
            'byType': by_type,
            'totalRevenue': float(db.session.query(func.coalesce(func.sum(Company.total_revenue), 0.0)).scalar()),
        }
    }), 200


@companies_bp.route('/<company_id>', methods=['GET'])
@require_auth
def get_company(company_id):
    company = Company.get_or_404(company_id, 'Company not found')
    return jsonify({'success': True, 'data': {'company': company.to_dict()}}), 200


@companies_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_company():
    data = get_json_body()
    _validate_company(data, creating=True)

    company = Company()
    _apply(company, data)
    db.session.add(company)
    failure = _commit('creating')
    if failure:
        return failure

    return jsonify({'success': True, 'message': 'Company created successfully',
                    'data': {'company': company.to_dict()}}), 201


@companies_bp.route('/<company_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_company(company_id):
    company = Company.get_or_404(company_id, 'Company not found')
    data = get_json_body()
    _validate_company(data, creating=False)

    _apply(company, data)
    failure = _commit('updating')
    if failure:
        return failure

    return jsonify({'success': True, 'message': 'Company updated successfully',
                    'data': {'company': company.to_dict()}}), 200


@companies_bp.route('/<company_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_company(company_id):
    company = Company.get_or_404(company_id, 'Company not found')
    User.query.filter_by(company_id=company.id).update({'company_id': None})
    db.session.delete(company)
    failure = _commit('deleting')
    if failure:
        return failure
    return jsonify({'success': True, 'message': 'Company deleted successfully'}), 200


@companies_bp.route('/<company_id>/toggle-status', methods=['PATCH'])
@require_auth
@require_role('admin')
def toggle_company_status(company_id):
    company = Company.get_or_404(company_id, 'Company not found')
    company.is_active = not company.is_active
    db.session.commit()
    return jsonify({
        'success': True,
        'message': 'Company {}'.format('activated' if company.is_active else 'deactivated'),
        'data': {'company': company.to_dict()}
    }), 200


@companies_bp.route('/<company_id>/update-stats', methods=['PATCH'])
@require_auth
@require_role('admin')
def update_company_stats(company_id):
    """Recompute the denormalised counters from clients, missions and invoices"""
    company = Company.get_or_404(company_id, 'Company not found')

    client_ids = [u.id for u in User.query.filter_by(company_id=company.id, role='client').all()]
    company.clients_count = len(client_ids)

    if client_ids:
        completed = Mission.query.filter(Mission.client_id.in_(client_ids), Mission.status == 'completed')
        company.installations_count = completed.count()
        last = completed.order_by(Mission.scheduled_date.desc()).first()
        company.last_intervention_date = (last.completed_at or last.scheduled_date) if last else None
    else:
        company.installations_count = 0
        company.last_intervention_date = None

    revenue = db.session.query(func.coalesce(func.sum(Invoice.total_amount), 0.0)).filter(
        Invoice.company_id == company.id, Invoice.payment_status == 'paid').scalar()
    company.total_revenue = float(revenue or 0.0)

    db.session.commit()
    return jsonify({'success': True, 'message': 'Company statistics updated',
                    'data': {'company': company.to_dict()}}), 200
