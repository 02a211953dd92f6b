"""Order model and its workflow enums."""
import enum
from sqlalchemy import (
    Column, BigInteger, String, Text, Numeric, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from erp.database import Base, BigIntPK


class OrderStatus(str, enum.Enum):
    """Order workflow status, in workflow order."""
    DRAFT = 'draft'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class PaymentStatus(str, enum.Enum):
    """Payment status, tracked independently of the order status."""
    PENDING = 'pending'
    PARTIAL = 'partial'
    PAID = 'paid'
    REFUNDED = 'refunded'


ORDER_STATUS_VALUES = [s.value for s in OrderStatus]
PAYMENT_STATUS_VALUES = [s.value for s in PaymentStatus]


class Order(Base):
    """Customer order with a snapshot of its pricing."""

    __tablename__ = 'orders'
    __table_args__ = (
        UniqueConstraint('org_id', 'order_number', name='uq_orders_org_number'),
        CheckConstraint(
            "status IN ('draft', 'confirmed', 'processing', 'shipped', 'delivered', 'cancelled')",
            name='check_order_status'
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'partial', 'paid', 'refunded')",
            name='check_payment_status'
        ),
        CheckConstraint('subtotal >= 0', name='check_subtotal_positive'),
        CheckConstraint(
            'discount_percentage >= 0 AND discount_percentage <= 100',
            name='check_discount_percentage_valid'
        ),
        CheckConstraint('discount_amount >= 0', name='check_discount_amount_positive'),
        CheckConstraint('paid_amount >= 0', name='check_paid_amount_positive'),
        Index('idx_orders_org_date', 'org_id', 'order_date'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    org_id = Column(BigInteger, ForeignKey('organization.id'), nullable=False, index=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id', ondelete='RESTRICT'), nullable=False, index=True)
    order_number = Column(String(50), nullable=False)
    order_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expected_delivery_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=OrderStatus.DRAFT.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(50), nullable=True)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)

    shipping_address = Column(Text, nullable=True)
    shipping_city = Column(String(100), nullable=True)
    billing_address = Column(Text, nullable=True)
    billing_city = Column(String(100), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    created_by = Column(BigInteger, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    organization = relationship('Organization')
    customer = relationship('Customer', back_populates='orders')
    creator = relationship('AppUser')
    items = relationship(
        'OrderItem', back_populates='order', cascade='all, delete-orphan',
        order_by='OrderItem.id'
    )

    @property
    def amount_due(self):
        """Amount still owed: total - paid_amount."""
        return (self.total or 0) - (self.paid_amount or 0)

    @property
    def is_closed(self):
        """Delivered and fully paid orders are immutable."""
        return (
            self.status == OrderStatus.DELIVERED.value
            and self.payment_status == PaymentStatus.PAID.value
        )

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status={self.status})>"
