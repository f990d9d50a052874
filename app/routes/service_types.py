import uuid

from flask import Blueprint, request, jsonify

from app import db
from app.models import ServiceRequest, ServiceType
from app.models.catalog import SERVICE_CATEGORIES
from app.services.uploads import save_uploads
from app.utils import require_auth, require_role, get_json_body, FieldErrors
from app.utils.helpers import parse_json_field

service_types_bp = Blueprint('service_types', __name__)

UPLOAD_DIR = 'service-types'


def _sub_types(data):
    """Sub-types from JSON or the multipart subTypesData field, with subTypeImage_<n> files"""
    raw = data.get('subTypes', data.get('subTypesData'))
    parsed = parse_json_field(raw, default=[]) or []
    sub_types = []
    for index, sub_type in enumerate(parsed):
        if not isinstance(sub_type, dict) or not sub_type.get('name'):
            continue
        image_url = sub_type.get('imageUrl') or ''
        image_file = request.files.get(f'subTypeImage_{index}')
        if image_file:
            image_url = save_uploads([image_file], UPLOAD_DIR, max_files=1)[0]['url']
        sub_types.append({
            'id': sub_type.get('id') or uuid.uuid4().hex,
            'name': sub_type['name'],
            'description': sub_type.get('description'),
            'imageUrl': image_url,
        })
    return sub_types


def _validate(data, creating):
    errors = FieldErrors()
    if creating or 'name' in data:
        errors.require(data, 'name', 'Name is required')
    if creating or 'category' in data:
        errors.check(data.get('category') in SERVICE_CATEGORIES, 'category', 'Invalid category')
    errors.raise_if_any()


@service_types_bp.route('', methods=['GET'])
def list_service_types():
    query = ServiceType.query
    category = request.args.get('category')
    if category:
        query = query.filter(ServiceType.category == category)
    service_types = query.order_by(ServiceType.name).all()
    return jsonify({'success': True, 'data': [s.to_dict() for s in service_types]}), 200


@service_types_bp.route('/<service_type_id>', methods=['GET'])
def get_service_type(service_type_id):
    service_type = ServiceType.get_or_404(service_type_id, 'Service type not found')
    return jsonify({'success': True, 'data': service_type.to_dict()}), 200


@service_types_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_service_type():
    """
    POST /api/service-types  (JSON or multipart with images[] and subTypeImage_<n>)
    """
    data = get_json_body()
    _validate(data, creating=True)

    if ServiceType.query.filter_by(name=data['name'].strip()).first():
        return jsonify({'success': False, 'message': 'Service type with this name already exists'}), 400

    images = [{'url': f['url'], 'description': ''}
              for f in save_uploads(request.files.getlist('images'), UPLOAD_DIR)]
    service_type = ServiceType(
        name=data['name'].strip(),
        category=data['category'],
        description=data.get('description'),
        images=images,
        sub_types=_sub_types(data),
    )

    try:
        db.session.add(service_type)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error creating service type', 'error': str(e)}), 500

    return jsonify({'success': True, 'message': 'Service type created successfully',
                    'data': service_type.to_dict()}), 201


@service_types_bp.route('/<service_type_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_service_type(service_type_id):
    service_type = ServiceType.get_or_404(service_type_id, 'Service type not found')
    data = get_json_body()
    _validate(data, creating=False)

    if data.get('name'):
        duplicate = ServiceType.query.filter_by(name=data['name'].strip()).first()
        if duplicate and duplicate.id != service_type.id:
            return jsonify({'success': False, 'message': 'Service type with this name already exists'}), 400
        service_type.name = data['name'].strip()
    service_type.update_from(data, ['category', 'description'])

    if 'images' in data and isinstance(parse_json_field(data['images']), list):
        service_type.images = parse_json_field(data['images'])
    new_images = save_uploads(request.files.getlist('images'), UPLOAD_DIR)
    if new_images:
        service_type.images = list(service_type.images or []) + [{'url': f['url'], 'description': ''} for f in new_images]
    if 'subTypes' in data or 'subTypesData' in data:
        service_type.sub_types = _sub_types(data)

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Error updating service type', 'error': str(e)}), 500

    return jsonify({'success': True, 'message': 'Service type updated successfully',
                    'data': service_type.to_dict()}), 200


@service_types_bp.route('/<service_type_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_service_type(service_type_id):
    service_type = ServiceType.get_or_404(service_type_id, 'Service type not found')
    if ServiceRequest.query.filter_by(service_type_id=service_type.id).first():
        return jsonify({'success': False,
                        'message': 'Service type is used by existing requests and cannot be deleted'}), 400

    db.session.delete(service_type)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Service type deleted successfully'}), 200
