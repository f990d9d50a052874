from flask import Blueprint, request, jsonify
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from app import db
from app.models import Equipment, Product
from app.utils import require_auth, require_role, paginate_query, get_json_body, FieldErrors
from app.utils.validators import is_number, is_integer

equipments_bp = Blueprint('equipments', __name__)


def _validate(data, creating):
    errors = FieldErrors()
    if creating or 'name' in data:
        errors.require(data, 'name', 'Kit name is required')
    if creating or 'price' in data:
        errors.check(is_number(data.get('price'), minimum=0), 'price', 'Price must be a positive number')

    if creating or 'components' in data:
        components = data.get('components')
        if errors.check(isinstance(components, list) and (components or not creating), 'components',
                        'A kit must have at least one component'):
            product_ids = {c.get('productId') for c in components if isinstance(c, dict)}
            known = {p.id for p in Product.query.filter(Product.id.in_(product_ids)).all()} if product_ids else set()
            for index, component in enumerate(components):
                if not isinstance(component, dict) or component.get('productId') not in known:
                    errors.add(f'components[{index}].productId', 'Invalid product for component')
                if not isinstance(component, dict) or not is_integer(component.get('quantity'), minimum=1):
                    errors.add(f'components[{index}].quantity', 'Component quantity must be a positive integer')
    errors.raise_if_any()


def _components(data):
    return [{'productId': c['productId'], 'quantity': int(float(c['quantity']))} for c in data['components']]


@equipments_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_equipments():
    query = Equipment.query
    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Equipment.name.ilike(pattern), Equipment.description.ilike(pattern)))
    is_active = request.args.get('isActive')
    if is_active is not None:
        query = query.filter(Equipment.is_active == (is_active == 'true'))

    equipments, pagination = paginate_query(query.order_by(Equipment.created_at.desc()),
                                            request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'equipments': [e.to_dict() for e in equipments], 'pagination': pagination}
    }), 200


@equipments_bp.route('/<equipment_id>', methods=['GET'])
@require_auth
@require_role('admin')
def get_equipment(equipment_id):
    equipment = Equipment.get_or_404(equipment_id, 'Kit not found')
    return jsonify({'success': True, 'data': {'equipment': equipment.to_dict()}}), 200


@equipments_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_equipment():
    data = get_json_body()
    _validate(data, creating=True)

    equipment = Equipment(
        name=data['name'].strip(),
        description=data.get('description'),
        price=float(data['price']),
        components=_components(data),
        is_active=data.get('isActive', True),
    )
    try:
        db.session.add(equipment)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'A kit with this name already exists'}), 400

    return jsonify({'success': True, 'message': 'Kit created successfully',
                    'data': {'equipment': equipment.to_dict()}}), 201


@equipments_bp.route('/<equipment_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_equipment(equipment_id):
    equipment = Equipment.get_or_404(equipment_id, 'Kit not found')
    data = get_json_body()
    _validate(data, creating=False)

    equipment.update_from(data, ['name', 'description', 'is_active'])
    if 'price' in data:
        equipment.price = float(data['price'])
    if 'components' in data:
        equipment.components = _components(data)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'A kit with this name already exists'}), 400

    return jsonify({'success': True, 'message': 'Kit updated successfully',
                    'data': {'equipment': equipment.to_dict()}}), 200


@equipments_bp.route('/<equipment_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_equipment(equipment_id):
    equipment = Equipment.get_or_404(equipment_id, 'Kit not found')
    db.session.delete(equipment)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Kit deleted successfully'}), 200
