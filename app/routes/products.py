from flask import Blueprint, request, jsonify
from sqlalchemy import or_

from app import db
from app.models import Product
from app.utils import require_auth, require_role, paginate_query, get_json_body, FieldErrors
from app.utils.validators import is_number, is_integer

products_bp = Blueprint('products', __name__)


def _validate(data, creating):
    errors = FieldErrors()
    if creating or 'name' in data:
        errors.require(data, 'name', 'Product name is required')
    if creating or 'price' in data:
        errors.check(is_number(data.get('price'), minimum=0), 'price', 'Price must be a positive number')
    if creating or 'quantity' in data:
        errors.check(is_integer(data.get('quantity', 0), minimum=0), 'quantity',
                     'Quantity must be a positive integer')
    errors.raise_if_any()


@products_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_products():
    query = Product.query
    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))

    products, pagination = paginate_query(query.order_by(Product.created_at.desc()),
                                          request.args.get('page', 1), request.args.get('limit', 10))
    return jsonify({
        'success': True,
        'data': {'products': [p.to_dict() for p in products], 'pagination': pagination}
    }), 200


@products_bp.route('/<product_id>', methods=['GET'])
@require_auth
@require_role('admin')
def get_product(product_id):
    product = Product.get_or_404(product_id, 'Product not found')
    return jsonify({'success': True, 'data': {'product': product.to_dict()}}), 200


@products_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_product():
    data = get_json_body()
    _validate(data, creating=True)

    product = Product(
        name=data['name'].strip(),
        description=data.get('description'),
        price=float(data['price']),
        quantity=int(float(data.get('quantity', 0))),
    )
    db.session.add(product)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Product created successfully',
                    'data': {'product': product.to_dict()}}), 201


@products_bp.route('/<product_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_product(product_id):
    product = Product.get_or_404(product_id, 'Product not found')
    data = get_json_body()
    _validate(data, creating=False)

    product.update_from(data, ['name', 'description'])
    if 'price' in data:
        product.price = float(data['price'])
    if 'quantity' in data:
        product.quantity = int(float(data['quantity']))
    db.session.commit()
    return jsonify({'success': True, 'message': 'Product updated successfully',
                    'data': {'product': product.to_dict()}}), 200


@products_bp.route('/<product_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_product(product_id):
    product = Product.get_or_404(product_id, 'Product not found')
    db.session.delete(product)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Product deleted successfully'}), 200
