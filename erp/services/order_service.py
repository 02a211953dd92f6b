"""
Order transaction manager - Multi-Tenant.

Create, edit, cancel and delete orders as single units of work: stock
reservations, the order number, pricing snapshots and the order rows are
committed together or not at all.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app, has_app_context

from erp.database import transaction
from erp.models import Order, OrderItem, Product, OrderStatus, PaymentStatus, AuditAction
from erp.exceptions import ValidationError, NotFoundError, InvalidStateError, InsufficientStockError
from erp.services import inventory_service
from erp.services.audit_service import log_action
from erp.services.customer_service import get_customer_by_id
from erp.services.order_number_service import next_order_number, DEFAULT_PREFIX
from erp.services.order_query_service import serialize_order
from erp.services.pricing_service import (
    LineTotals, compute_line_item, compute_order_totals, to_decimal, to_money
)
from erp.validators.order_validator import (
    parse_order_create, parse_order_edit, parse_status_update, parse_payment_update
)
from erp.blueprints.metrics import (
    orders_created_total, orders_cancelled_total, stock_reservation_failures_total
)

logger = logging.getLogger(__name__)

STATUS_FLOW = [
    OrderStatus.DRAFT.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
]

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING.value: {PaymentStatus.PARTIAL.value, PaymentStatus.PAID.value},
    PaymentStatus.PARTIAL.value: {PaymentStatus.PAID.value},
    PaymentStatus.PAID.value: {PaymentStatus.REFUNDED.value},
    PaymentStatus.REFUNDED.value: set(),
}

EDITABLE_HEADER_FIELDS = (
    'expected_delivery_date', 'payment_method', 'shipping_address', 'shipping_city',
    'billing_address', 'billing_city', 'notes',
)


def _order_number_prefix() -> str:
    if has_app_context():
        return current_app.config.get('ORDER_NUMBER_PREFIX') or DEFAULT_PREFIX
    return DEFAULT_PREFIX


def _get_order_for_update(session, order_id: int, org_id: int) -> Order:
    """Load and lock an order of the organization."""
    order = session.query(Order).filter(
        Order.id == order_id,
        Order.org_id == org_id
    ).with_for_update().populate_existing().first()

    if not order:
        raise NotFoundError('Order not found')
    return order


def _resolve_lines(session, org_id: int, items: List[Dict[str, Any]]) -> List[Tuple[Dict[str, Any], Product, LineTotals]]:
    """
    Check every requested product and price its line.

    Unit price defaults to the product's tax-exclusive base price and tax
    rate to the product's rate; explicit values on the item win.
    """
    product_ids = sorted({item['product_id'] for item in items})
    products = session.query(Product).filter(
        Product.id.in_(product_ids),
        Product.org_id == org_id,
        Product.deleted_at.is_(None)
    ).all()
    products_by_id = {p.id: p for p in products}

    resolved = []
    for item in items:
        product = products_by_id.get(item['product_id'])
        if product is None:
            raise NotFoundError(f"Product with ID {item['product_id']} not found")
        if not product.is_active:
            raise ValidationError(errors=[f'Product "{product.name}" is not active'])

        unit_price = item['unit_price'] if item['unit_price'] is not None else product.base_price
        tax_rate = item['tax_rate'] if item['tax_rate'] is not None else product.tax_rate
        item = dict(item, unit_price=to_decimal(unit_price), tax_rate=to_decimal(tax_rate))

        line = compute_line_item(item['quantity'], item['unit_price'], item['tax_rate'],
                                 item['discount_amount'])
        resolved.append((item, product, line))
    return resolved


def _quantities_by_product(pairs) -> Dict[int, int]:
    totals: Dict[int, int] = {}
    for product_id, quantity in pairs:
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


def _reserve_all(session, org_id: int, quantities: Dict[int, int]) -> None:
    # Ascending product id so concurrent orders lock rows in the same order
    for product_id in sorted(quantities):
        try:
            inventory_service.reserve(session, product_id, org_id, quantities[product_id])
        except InsufficientStockError:
            stock_reservation_failures_total.inc()
            raise


def _release_all(session, org_id: int, quantities: Dict[int, int]) -> None:
    for product_id in sorted(quantities):
        inventory_service.release(session, product_id, org_id, quantities[product_id])


def _build_items(resolved) -> List[OrderItem]:
    return [
        OrderItem(
            product_id=product.id,
            quantity=item['quantity'],
            unit_price=to_money(item['unit_price']),
            tax_rate=item['tax_rate'],
            discount_amount=to_money(item['discount_amount']),
            subtotal=to_money(line.subtotal),
            tax_amount=to_money(line.tax_amount),
            total=to_money(line.total),
        )
        for item, product, line in resolved
    ]


def _apply_totals(order: Order, lines: List[LineTotals]) -> None:
    totals = compute_order_totals(lines, order.discount_percentage, order.discount_amount)
    order.subtotal = to_money(totals.subtotal)
    order.discount_amount = to_money(totals.discount_amount)
    order.tax_amount = to_money(totals.tax_amount)
    order.total = to_money(totals.total)


def _stored_lines(order: Order) -> List[LineTotals]:
    return [LineTotals(item.subtotal, item.tax_amount, item.total) for item in order.items]


def _check_paid_amount(paid_amount: Decimal, total: Decimal) -> None:
    if paid_amount < 0:
        raise ValidationError(errors=['Paid amount must be a positive number'])
    if to_money(paid_amount) > to_money(total):
        raise ValidationError(errors=[
            f'Paid amount ({to_money(paid_amount)}) cannot exceed order total ({to_money(total)})'
        ])


def _check_status_transition(current: str, new: str) -> None:
    """Forward-only workflow; skipping ahead is allowed."""
    if current == OrderStatus.CANCELLED.value:
        raise InvalidStateError('Cannot change status of a cancelled order')
    if new == OrderStatus.CANCELLED.value:
        raise InvalidStateError('Use the cancel operation to cancel an order')
    if STATUS_FLOW.index(new) < STATUS_FLOW.index(current):
        raise InvalidStateError(f'Cannot change order status from {current} to {new}')


def _check_payment_transition(current: str, new: str) -> None:
    if new != current and new not in PAYMENT_TRANSITIONS[current]:
        raise InvalidStateError(f'Cannot change payment status from {current} to {new}')


def _ensure_editable(order: Order) -> None:
    if order.status == OrderStatus.CANCELLED.value:
        raise InvalidStateError('Cannot edit a cancelled order')
    if order.is_closed:
        raise InvalidStateError('Cannot edit an order that is delivered and paid')


def create_order(session, org_id: int, user_id: Optional[int], data: Any) -> Order:
    """
    Create an order with its items, reserving stock for every line.

    Either everything is persisted (order, items, stock decrements, the
    next order number) or nothing is.

    Raises:
        ValidationError: malformed payload or inconsistent amounts
        NotFoundError: customer or a product is not visible to the organization
        InsufficientStockError: a line asks for more than the available stock
    """
    values = parse_order_create(data)
    items = values.pop('items')

    status = values.get('status', OrderStatus.DRAFT.value)
    if status == OrderStatus.CANCELLED.value:
        raise ValidationError(errors=['An order cannot be created as cancelled'])
    payment_status = values.get('payment_status', PaymentStatus.PENDING.value)
    if payment_status == PaymentStatus.REFUNDED.value:
        raise ValidationError(errors=['An order cannot be created as refunded'])

    with transaction(session, 'creating order'):
        if not get_customer_by_id(session, values['customer_id'], org_id):
            raise NotFoundError('Customer not found')

        resolved = _resolve_lines(session, org_id, items)
        lines = [line for _, _, line in resolved]
        totals = compute_order_totals(
            lines,
            values.get('discount_percentage', Decimal('0')),
            values.get('discount_amount', Decimal('0')),
        )
        paid_amount = values.get('paid_amount', Decimal('0'))
        _check_paid_amount(paid_amount, totals.total)

        _reserve_all(session, org_id, _quantities_by_product(
            (product.id, item['quantity']) for item, product, _ in resolved
        ))

        order = Order(
            org_id=org_id,
            customer_id=values['customer_id'],
            order_number=next_order_number(session, org_id, prefix=_order_number_prefix()),
            order_date=values.get('order_date') or datetime.now(timezone.utc),
            status=status,
            payment_status=payment_status,
            paid_amount=to_money(paid_amount),
            discount_percentage=values.get('discount_percentage', Decimal('0')),
            subtotal=to_money(totals.subtotal),
            discount_amount=to_money(totals.discount_amount),
            tax_amount=to_money(totals.tax_amount),
            total=to_money(totals.total),
            created_by=user_id,
            **{field: values.get(field) for field in EDITABLE_HEADER_FIELDS}
        )
        order.items = _build_items(resolved)
        session.add(order)
        session.flush()

    orders_created_total.inc()
    logger.info(f"Order {order.order_number} created in org {org_id} with {len(order.items)} items")
    log_action(session, org_id, user_id, AuditAction.ORDER_CREATED, 'order', order.id,
               {'order_number': order.order_number, 'total': order.total})
    return order


def edit_order(session, order_id: int, org_id: int, user_id: Optional[int], data: Any) -> Order:
    """
    Full edit. ``items``, when present, replaces every line: the old
    reservation is released and the new set is priced and reserved again.
    """
    values = parse_order_edit(data)
    items = values.pop('items', None)

    with transaction(session, 'editing order'):
        order = _get_order_for_update(session, order_id, org_id)
        _ensure_editable(order)

        if 'status' in values and values['status'] != order.status:
            _check_status_transition(order.status, values['status'])
        if 'payment_status' in values:
            _check_payment_transition(order.payment_status, values['payment_status'])

        for field in EDITABLE_HEADER_FIELDS:
            if field in values:
                setattr(order, field, values[field])

        if 'discount_percentage' in values:
            order.discount_percentage = values['discount_percentage']
            # Stored amount was derived from the old percentage
            if 'discount_amount' not in values:
                order.discount_amount = Decimal('0')
        if 'discount_amount' in values:
            order.discount_amount = values['discount_amount']
            if 'discount_percentage' not in values:
                order.discount_percentage = Decimal('0')

        if items is not None:
            _release_all(session, org_id, _quantities_by_product(
                (item.product_id, item.quantity) for item in order.items
            ))
            order.items.clear()
            session.flush()

            resolved = _resolve_lines(session, org_id, items)
            _reserve_all(session, org_id, _quantities_by_product(
                (product.id, item['quantity']) for item, product, _ in resolved
            ))
            order.items = _build_items(resolved)
            _apply_totals(order, [line for _, _, line in resolved])
        elif 'discount_percentage' in values or 'discount_amount' in values:
            _apply_totals(order, _stored_lines(order))

        if 'status' in values:
            order.status = values['status']
        if 'payment_status' in values:
            order.payment_status = values['payment_status']
        if 'paid_amount' in values:
            order.paid_amount = to_money(values['paid_amount'])
        _check_paid_amount(to_decimal(order.paid_amount), to_decimal(order.total))

        session.flush()

    logger.info(f"Order {order.order_number} edited in org {org_id}")
    log_action(session, org_id, user_id, AuditAction.ORDER_UPDATED, 'order', order.id,
               {'fields': sorted(values.keys()) + (['items'] if items is not None else [])})
    return order


def update_status(session, order_id: int, org_id: int, new_status: str,
                  user_id: Optional[int] = None) -> Order:
    """Move an order forward in its workflow. The same status is a no-op."""
    new_status = parse_status_update({'status': new_status})

    with transaction(session, 'updating order status'):
        order = _get_order_for_update(session, order_id, org_id)
        previous = order.status
        _check_status_transition(previous, new_status)
        if new_status == previous:
            return order
        order.status = new_status
        session.flush()

    logger.info(f"Order {order.order_number} status {previous} -> {new_status}")
    log_action(session, org_id, user_id, AuditAction.ORDER_STATUS_CHANGED, 'order', order.id,
               {'from': previous, 'to': new_status})
    return order


def update_payment_status(session, order_id: int, org_id: int, new_payment_status: str,
                          paid_amount: Any = None, user_id: Optional[int] = None) -> Order:
    """Set the payment status; ``paid_amount`` defaults to the order total."""
    values = parse_payment_update({'payment_status': new_payment_status, 'paid_amount': paid_amount})

    with transaction(session, 'updating payment status'):
        order = _get_order_for_update(session, order_id, org_id)
        previous = order.payment_status
        _check_payment_transition(previous, values['payment_status'])

        paid_amount = values['paid_amount']
        if paid_amount is None:
            paid_amount = to_decimal(order.total)
        _check_paid_amount(paid_amount, to_decimal(order.total))

        order.payment_status = values['payment_status']
        order.paid_amount = to_money(paid_amount)
        session.flush()

    log_action(session, org_id, user_id, AuditAction.ORDER_PAYMENT_CHANGED, 'order', order.id,
               {'from': previous, 'to': order.payment_status, 'paid_amount': order.paid_amount})
    return order


def cancel_order(session, order_id: int, org_id: int, user_id: Optional[int] = None) -> Order:
    """Cancel an order and put every reserved unit back into stock."""
    with transaction(session, 'cancelling order'):
        order = _get_order_for_update(session, order_id, org_id)
        if order.status == OrderStatus.CANCELLED.value:
            raise InvalidStateError('Order is already cancelled')
        if order.status == OrderStatus.DELIVERED.value:
            raise InvalidStateError('Cannot cancel a delivered order')

        _release_all(session, org_id, _quantities_by_product(
            (item.product_id, item.quantity) for item in order.items
        ))
        order.status = OrderStatus.CANCELLED.value
        session.flush()

    orders_cancelled_total.inc()
    logger.info(f"Order {order.order_number} cancelled in org {org_id}, stock restored")
    log_action(session, org_id, user_id, AuditAction.ORDER_CANCELLED, 'order', order.id,
               {'order_number': order.order_number})
    return order


def delete_order(session, order_id: int, org_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Hard delete an order and its items.

    Stock is released first unless the order was already cancelled, whose
    stock went back at cancellation time.

    Returns:
        Summary of the deleted order.
    """
    with transaction(session, 'deleting order'):
        order = _get_order_for_update(session, order_id, org_id)
        summary = serialize_order(order)
        restored = order.status != OrderStatus.CANCELLED.value

        if restored:
            _release_all(session, org_id, _quantities_by_product(
                (item.product_id, item.quantity) for item in order.items
            ))

        session.delete(order)
        session.flush()

    logger.info(f"Order {summary['order_number']} deleted in org {org_id} (stock restored: {restored})")
    log_action(session, org_id, user_id, AuditAction.ORDER_DELETED, 'order', order_id,
               {'order_number': summary['order_number'], 'stock_restored': restored})
    return {
        'order_id': order_id,
        'order_number': summary['order_number'],
        'stock_restored': restored,
        'items': summary['items'],
    }
