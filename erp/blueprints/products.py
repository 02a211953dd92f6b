"""Products JSON API blueprint."""
from flask import Blueprint, request, g, jsonify, current_app

from erp.database import get_session
from erp.middleware import require_org
from erp.services import product_service
from erp.services.product_service import serialize_product

products_bp = Blueprint('products', __name__, url_prefix='/api/products')


def _ok(data, message=None, status=200):
    payload = {'success': True, 'data': data}
    if message:
        payload['message'] = message
    return jsonify(payload), status


@products_bp.route('', methods=['GET'])
@require_org
def index():
    """List live products with filters and pagination."""
    args = request.args
    products, total = product_service.list_products(
        get_session(), g.org_id, args,
        current_app.config.get('DEFAULT_PAGE_SIZE', 50),
        current_app.config.get('MAX_PAGE_SIZE', 200)
    )
    return jsonify({
        'success': True,
        'data': [serialize_product(p) for p in products],
        'pagination': {'total': total},
    })


@products_bp.route('/low-stock', methods=['GET'])
@require_org
def low_stock():
    products = product_service.get_low_stock_products(get_session(), g.org_id)
    return _ok([serialize_product(p) for p in products])


@products_bp.route('/<int:product_id>', methods=['GET'])
@require_org
def show(product_id):
    include_deleted = request.args.get('include_deleted') in ('1', 'true')
    product = product_service.get_product(get_session(), product_id, g.org_id, include_deleted)
    return _ok(serialize_product(product))


@products_bp.route('', methods=['POST'])
@require_org
def create():
    product = product_service.create_product(get_session(), g.org_id, g.user_id, request.get_json(silent=True))
    return _ok(serialize_product(product), 'Product created successfully', 201)


@products_bp.route('/<int:product_id>', methods=['PUT'])
@require_org
def update(product_id):
    product = product_service.update_product(
        get_session(), product_id, g.org_id, g.user_id, request.get_json(silent=True)
    )
    return _ok(serialize_product(product), 'Product updated successfully')


@products_bp.route('/<int:product_id>/stock', methods=['PATCH'])
@require_org
def update_stock(product_id):
    product = product_service.update_product_stock(
        get_session(), product_id, g.org_id, g.user_id, request.get_json(silent=True)
    )
    return _ok(serialize_product(product), 'Stock updated successfully')


@products_bp.route('/<int:product_id>', methods=['DELETE'])
@require_org
def delete(product_id):
    product = product_service.delete_product(get_session(), product_id, g.org_id, g.user_id)
    return _ok(serialize_product(product), 'Product deleted successfully')


@products_bp.route('/<int:product_id>/restore', methods=['PATCH'])
@require_org
def restore(product_id):
    product = product_service.restore_product(get_session(), product_id, g.org_id, g.user_id)
    return _ok(serialize_product(product), 'Product restored successfully')
