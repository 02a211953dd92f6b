"""Product model."""
from sqlalchemy import (
    Column, BigInteger, Integer, String, Text, Boolean, Numeric, DateTime, ForeignKey,
    CheckConstraint, Index, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from erp.database import Base, BigIntPK


class Product(Base):
    """Product model.

    ``base_price`` is tax-exclusive; ``price`` is the tax-inclusive figure
    derived from it and kept in sync by the catalog service. Rows are
    soft-deleted so past order items keep a valid product reference.
    """

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='check_stock_non_negative'),
        CheckConstraint('base_price >= 0', name='check_base_price_positive'),
        CheckConstraint('price >= 0', name='check_price_positive'),
        CheckConstraint('tax_rate >= 0 AND tax_rate <= 100', name='check_tax_rate_valid'),
        # SKU is unique among live products of an organization
        Index(
            'uq_product_org_sku_live', 'org_id', 'sku', unique=True,
            postgresql_where=text('deleted_at IS NULL'),
            sqlite_where=text('deleted_at IS NULL'),
        ),
        Index('idx_product_low_stock', 'stock_quantity', 'low_stock_threshold'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    org_id = Column(BigInteger, ForeignKey('organization.id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sku = Column(String(100), nullable=False)
    barcode = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    unit = Column(String(50), nullable=False, default='pcs')
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    cost_price = Column(Numeric(10, 2), nullable=True)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(BigInteger, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    organization = relationship('Organization')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def is_low_stock(self):
        """True when stock has reached the low-stock threshold."""
        return (self.stock_quantity or 0) <= (self.low_stock_threshold or 0)
