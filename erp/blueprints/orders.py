"""Orders JSON API blueprint."""
from flask import Blueprint, request, g, jsonify, current_app

from erp.database import get_session
from erp.middleware import require_org
from erp.services import order_service
from erp.services.order_query_service import (
    OrderFilters, list_orders, get_order, get_customer_orders, serialize_order
)
from erp.validators.pagination import parse_pagination

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _body():
    return request.get_json(silent=True)


def _ok(data, message=None, status=200):
    payload = {'success': True, 'data': data}
    if message:
        payload['message'] = message
    return jsonify(payload), status


def _order_response(order_id, message=None, status=200):
    """Reload the committed order with its relations and render it."""
    order = get_order(get_session(), order_id, g.org_id)
    return _ok(serialize_order(order), message, status)


@orders_bp.route('', methods=['GET'])
@require_org
def index():
    """List orders with filters and pagination."""
    session = get_session()
    filters = OrderFilters.from_args(request.args)
    pagination = parse_pagination(
        request.args,
        current_app.config.get('DEFAULT_PAGE_SIZE', 50),
        current_app.config.get('MAX_PAGE_SIZE', 200)
    )

    orders, total = list_orders(session, g.org_id, filters, pagination['page'], pagination['limit'])
    return jsonify({
        'success': True,
        'data': [serialize_order(o, include_items=False) for o in orders],
        'pagination': {
            'page': pagination['page'],
            'limit': pagination['limit'],
            'total': total,
            'pages': (total + pagination['limit'] - 1) // pagination['limit'],
        },
    })


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_org
def show(order_id):
    return _order_response(order_id)


@orders_bp.route('/customer/<int:customer_id>', methods=['GET'])
@require_org
def customer_orders(customer_id):
    orders = get_customer_orders(get_session(), customer_id, g.org_id)
    return _ok([serialize_order(o, include_items=False) for o in orders])


@orders_bp.route('', methods=['POST'])
@require_org
def create():
    """Create an order; stock is reserved for every item."""
    order = order_service.create_order(get_session(), g.org_id, g.user_id, _body())
    return _order_response(order.id, 'Order created successfully', 201)


@orders_bp.route('/<int:order_id>', methods=['PUT'])
@require_org
def edit(order_id):
    order = order_service.edit_order(get_session(), order_id, g.org_id, g.user_id, _body())
    return _order_response(order.id, 'Order updated successfully')


@orders_bp.route('/<int:order_id>/status', methods=['PATCH'])
@require_org
def update_status(order_id):
    data = _body() or {}
    order = order_service.update_status(
        get_session(), order_id, g.org_id, data.get('status'), user_id=g.user_id
    )
    return _order_response(order.id, 'Order status updated successfully')


@orders_bp.route('/<int:order_id>/payment', methods=['PATCH'])
@require_org
def update_payment(order_id):
    data = _body() or {}
    order = order_service.update_payment_status(
        get_session(), order_id, g.org_id, data.get('payment_status'),
        paid_amount=data.get('paid_amount'), user_id=g.user_id
    )
    return _order_response(order.id, 'Payment status updated successfully')


@orders_bp.route('/<int:order_id>/cancel', methods=['PATCH'])
@require_org
def cancel(order_id):
    order = order_service.cancel_order(get_session(), order_id, g.org_id, user_id=g.user_id)
    return _order_response(order.id, 'Order cancelled successfully')


@orders_bp.route('/<int:order_id>', methods=['DELETE'])
@require_org
def delete(order_id):
    summary = order_service.delete_order(get_session(), order_id, g.org_id, user_id=g.user_id)
    return _ok(summary, 'Order deleted successfully')
