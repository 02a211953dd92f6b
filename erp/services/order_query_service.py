"""
Order repository (read side) - Multi-Tenant.

Listing is driven by a typed ``OrderFilters`` object; every query is scoped
by ``org_id``.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_, func
from sqlalchemy.orm import selectinload, joinedload

from erp.models import Order, OrderItem, Customer, ORDER_STATUS_VALUES, PAYMENT_STATUS_VALUES
from erp.exceptions import ValidationError, NotFoundError
from erp.services.pricing_service import to_money
from erp.validators.order_validator import parse_positive_int, parse_datetime


@dataclass
class OrderFilters:
    status: Optional[str] = None
    payment_status: Optional[str] = None
    customer_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args: Dict[str, Any]) -> 'OrderFilters':
        """Build filters from query-string arguments, rejecting unknown values."""
        errors: List[str] = []
        filters = cls()

        status = args.get('status') or None
        if status is not None and status not in ORDER_STATUS_VALUES:
            errors.append(f"Status must be one of: {', '.join(ORDER_STATUS_VALUES)}")
        filters.status = status

        payment_status = args.get('payment_status') or None
        if payment_status is not None and payment_status not in PAYMENT_STATUS_VALUES:
            errors.append(f"Payment status must be one of: {', '.join(PAYMENT_STATUS_VALUES)}")
        filters.payment_status = payment_status

        if args.get('customer_id'):
            filters.customer_id = parse_positive_int(args.get('customer_id'))
            if filters.customer_id is None:
                errors.append('Customer ID must be a positive integer')

        for field in ('start_date', 'end_date'):
            if args.get(field):
                value = parse_datetime(args.get(field))
                if value is None:
                    errors.append(f'Invalid {field} format')
                setattr(filters, field, value)

        if filters.start_date and filters.end_date:
            start, end = filters.start_date, filters.end_date
            if (start.tzinfo is None) == (end.tzinfo is None) and start > end:
                errors.append('start_date must be before end_date')

        search = (args.get('search') or '').strip()
        filters.search = search[:100] or None

        if errors:
            raise ValidationError(errors=errors)
        return filters


def _base_query(session, org_id: int):
    return session.query(Order).filter(Order.org_id == org_id)


def list_orders(session, org_id: int, filters: Optional[OrderFilters] = None,
                page: int = 1, limit: int = 50) -> Tuple[List[Order], int]:
    """Orders of the organization matching ``filters``, newest first, one page."""
    filters = filters or OrderFilters()
    query = _base_query(session, org_id)

    if filters.status:
        query = query.filter(Order.status == filters.status)
    if filters.payment_status:
        query = query.filter(Order.payment_status == filters.payment_status)
    if filters.customer_id:
        query = query.filter(Order.customer_id == filters.customer_id)
    if filters.start_date:
        query = query.filter(Order.order_date >= filters.start_date)
    if filters.end_date:
        query = query.filter(Order.order_date <= filters.end_date)
    if filters.search:
        term = f'%{filters.search.lower()}%'
        query = query.join(Customer, Customer.id == Order.customer_id).filter(or_(
            func.lower(Order.order_number).like(term),
            func.lower(Customer.name).like(term)
        ))

    total = query.count()
    orders = (query
              .options(joinedload(Order.customer), selectinload(Order.items))
              .order_by(Order.order_date.desc(), Order.created_at.desc(), Order.id.desc())
              .limit(limit)
              .offset((page - 1) * limit)
              .all())
    return orders, total


def get_order(session, order_id: int, org_id: int) -> Order:
    order = _base_query(session, org_id).options(
        selectinload(Order.items).joinedload(OrderItem.product),
        joinedload(Order.customer)
    ).filter(Order.id == order_id).first()

    if not order:
        raise NotFoundError('Order not found')
    return order


def get_customer_orders(session, customer_id: int, org_id: int) -> List[Order]:
    return (_base_query(session, org_id)
            .filter(Order.customer_id == customer_id)
            .order_by(Order.order_date.desc(), Order.id.desc())
            .all())


def _iso(value):
    return value.isoformat() if value else None


def serialize_order_item(item: OrderItem) -> Dict[str, Any]:
    product = item.product
    return {
        'id': item.id,
        'product_id': item.product_id,
        'product_name': product.name if product else None,
        'product_sku': product.sku if product else None,
        'quantity': item.quantity,
        'unit_price': to_money(item.unit_price),
        'tax_rate': to_money(item.tax_rate),
        'discount_amount': to_money(item.discount_amount),
        'subtotal': to_money(item.subtotal),
        'tax_amount': to_money(item.tax_amount),
        'total': to_money(item.total),
    }


def serialize_order(order: Order, include_items: bool = True) -> Dict[str, Any]:
    customer = order.customer
    data = {
        'id': order.id,
        'org_id': order.org_id,
        'order_number': order.order_number,
        'customer_id': order.customer_id,
        'customer_name': customer.name if customer else None,
        'customer_email': customer.email if customer else None,
        'order_date': _iso(order.order_date),
        'expected_delivery_date': _iso(order.expected_delivery_date),
        'status': order.status,
        'payment_status': order.payment_status,
        'payment_method': order.payment_method,
        'paid_amount': to_money(order.paid_amount),
        'amount_due': to_money(order.amount_due),
        'shipping_address': order.shipping_address,
        'shipping_city': order.shipping_city,
        'billing_address': order.billing_address,
        'billing_city': order.billing_city,
        'subtotal': to_money(order.subtotal),
        'discount_percentage': to_money(order.discount_percentage),
        'discount_amount': to_money(order.discount_amount),
        'tax_amount': to_money(order.tax_amount),
        'total': to_money(order.total),
        'notes': order.notes,
        'created_by': order.created_by,
        'created_at': _iso(order.created_at),
        'updated_at': _iso(order.updated_at),
    }
    if include_items:
        data['items'] = [serialize_order_item(item) for item in order.items]
    return data
