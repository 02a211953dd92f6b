"""Models package - exports all SQLAlchemy models."""
# Tenancy and actor models
from erp.models.organization import Organization
from erp.models.app_user import AppUser
from erp.models.org_member import OrgMember, MemberRole

# Business Models
from erp.models.customer import Customer
from erp.models.product import Product
from erp.models.order import (
    Order, OrderStatus, PaymentStatus, ORDER_STATUS_VALUES, PAYMENT_STATUS_VALUES
)
from erp.models.order_item import OrderItem
from erp.models.order_sequence import OrderSequence
from erp.models.audit_log import AuditLog, AuditAction

__all__ = [
    # Tenancy
    'Organization', 'AppUser', 'OrgMember', 'MemberRole',
    # Business
    'Customer', 'Product',
    'Order', 'OrderStatus', 'PaymentStatus', 'ORDER_STATUS_VALUES', 'PAYMENT_STATUS_VALUES',
    'OrderItem', 'OrderSequence',
    'AuditLog', 'AuditAction',
]
