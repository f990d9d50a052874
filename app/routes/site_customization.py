"""
Site customization routes - public site content edited from the back office
"""
from flask import Blueprint, request, jsonify
from werkzeug.utils import secure_filename

from app import db
from app.models import SiteCustomization
from app.services.uploads import save_uploads, delete_upload
from app.utils import require_auth, require_role, get_json_body

site_customization_bp = Blueprint('site_customization', __name__)

MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5 MB

# collection -> (url path, list response key, item response key)
COLLECTION_ROUTES = {
    'services': ('services', 'services', 'service'),
    'blog': ('blog', 'blogPosts', 'blogPost'),
    'vehicles': ('simulator/vehicles', 'vehicleBrands', 'vehicleBrand'),
    'savings': ('simulator/savings', 'savingsInfo', 'savingsInfo'),
}


@site_customization_bp.route('', methods=['GET'])
def get_customization():
    return jsonify({'success': True, 'data': {'customization': SiteCustomization.get_all()}}), 200


@site_customization_bp.route('', methods=['PUT'])
@require_auth
@require_role('admin')
def update_customization():
    """
    PUT /api/site-customization
    {"general": {"siteName": "..."}, "contact": {...}}
    """
    data = get_json_body()
    if not isinstance(data, dict) or not data:
        return jsonify({'success': False, 'message': 'Nothing to update'}), 400

    customization = SiteCustomization.update_customization(data)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Customizations updated successfully',
                    'data': {'customization': customization}}), 200


@site_customization_bp.route('/upload', methods=['POST'])
@require_auth
@require_role('admin')
def upload_image():
    image = request.files.get('image')
    if not image or not image.filename:
        return jsonify({'success': False, 'message': 'No file uploaded'}), 400

    stored = save_uploads([image], 'site', max_files=1, max_size=MAX_IMAGE_SIZE)[0]
    return jsonify({
        'success': True,
        'message': 'Image uploaded successfully',
        'data': {'url': stored['url'], 'filename': stored['url'].rsplit('/', 1)[1]}
    }), 200


@site_customization_bp.route('/image/<filename>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_image(filename):
    safe_name = secure_filename(filename)
    if not safe_name:
        return jsonify({'success': False, 'message': 'Invalid filename'}), 400
    delete_upload(f'/uploads/site/{safe_name}')
    return jsonify({'success': True, 'message': 'Image deleted successfully'}), 200


@site_customization_bp.route('/reset', methods=['POST'])
@require_auth
@require_role('admin')
def reset_customization():
    customization = SiteCustomization.reset()
    db.session.commit()
    return jsonify({'success': True, 'message': 'Customizations reset successfully',
                    'data': {'customization': customization}}), 200


def _register_collection(collection, path, list_key, item_key):
    """GET (public) plus admin POST/PUT/DELETE for one list stored in site customization"""

    def list_view():
        return jsonify({'success': True, 'data': {list_key: SiteCustomization.list_items(collection)}}), 200

    def get_view(item_id):
        item = next((i for i in SiteCustomization.list_items(collection) if i.get('id') == item_id), None)
        if item is None:
            return jsonify({'success': False, 'message': 'Item not found'}), 404
        return jsonify({'success': True, 'data': {item_key: item}}), 200

    @require_auth
    @require_role('admin')
    def create_view():
        data = get_json_body()
        if not isinstance(data, dict) or not data:
            return jsonify({'success': False, 'message': 'Item data is required'}), 400
        item = SiteCustomization.add_item(collection, data)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Item added successfully', 'data': {item_key: item}}), 201

    @require_auth
    @require_role('admin')
    def update_view(item_id):
        item = SiteCustomization.update_item(collection, item_id, get_json_body())
        if item is None:
            return jsonify({'success': False, 'message': 'Item not found'}), 404
        db.session.commit()
        return jsonify({'success': True, 'message': 'Item updated successfully', 'data': {item_key: item}}), 200

    @require_auth
    @require_role('admin')
    def delete_view(item_id):
        if not SiteCustomization.delete_item(collection, item_id):
            return jsonify({'success': False, 'message': 'Item not found'}), 404
        db.session.commit()
        return jsonify({'success': True, 'message': 'Item deleted successfully'}), 200

    endpoint = f'{collection}_items'
    site_customization_bp.add_url_rule(f'/{path}', f'list_{endpoint}', list_view, methods=['GET'])
    site_customization_bp.add_url_rule(f'/{path}', f'create_{endpoint}', create_view, methods=['POST'])
    site_customization_bp.add_url_rule(f'/{path}/<item_id>', f'get_{endpoint}', get_view, methods=['GET'])
    site_customization_bp.add_url_rule(f'/{path}/<item_id>', f'update_{endpoint}', update_view, methods=['PUT'])
    site_customization_bp.add_url_rule(f'/{path}/<item_id>', f'delete_{endpoint}', delete_view, methods=['DELETE'])


for _collection, (_path, _list_key, _item_key) in COLLECTION_ROUTES.items():
    _register_collection(_collection, _path, _list_key, _item_key)
