"""
Product catalog service - Multi-Tenant.

CRUD over products with soft delete. Stock is never written here directly:
changes to ``stock_quantity`` go through the inventory ledger.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app, has_app_context
from sqlalchemy import or_, func

from erp.database import transaction
from erp.models import Product, AuditAction
from erp.exceptions import NotFoundError, ConflictError
from erp.services import inventory_service
from erp.services.audit_service import log_action
from erp.services.pricing_service import compute_tax_inclusive_price, to_money
from erp.validators.product_validator import parse_product, parse_product_filters, parse_stock_update
from erp.validators.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)


def _default_low_stock_threshold() -> int:
    if has_app_context():
        return current_app.config.get('LOW_STOCK_THRESHOLD', 10)
    return 10


def get_product_by_id(session, product_id: int, org_id: int,
                      include_deleted: bool = False) -> Optional[Product]:
    """Product of the organization, or None when missing, deleted or foreign."""
    query = session.query(Product).filter(
        Product.id == product_id,
        Product.org_id == org_id
    )
    if not include_deleted:
        query = query.filter(Product.deleted_at.is_(None))
    return query.first()


def get_product(session, product_id: int, org_id: int, include_deleted: bool = False) -> Product:
    product = get_product_by_id(session, product_id, org_id, include_deleted)
    if not product:
        raise NotFoundError('Product not found')
    return product


def _ensure_sku_available(session, org_id: int, sku: str, exclude_id: Optional[int] = None) -> None:
    query = session.query(Product.id).filter(
        Product.org_id == org_id,
        Product.sku == sku,
        Product.deleted_at.is_(None)
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError(f'A product with SKU "{sku}" already exists')


def list_products(session, org_id: int, args: Dict[str, Any],
                  default_limit: int = DEFAULT_PAGE_SIZE, max_limit: int = MAX_PAGE_SIZE) -> Tuple[List[Product], int]:
    """Live products of the organization, newest first, filtered by ``args``."""
    filters = parse_product_filters(args, default_limit, max_limit)

    query = session.query(Product).filter(
        Product.org_id == org_id,
        Product.deleted_at.is_(None)
    )

    if filters.get('category'):
        query = query.filter(Product.category == filters['category'])

    if filters.get('is_active') is not None:
        query = query.filter(Product.is_active == filters['is_active'])

    if filters.get('low_stock'):
        query = query.filter(Product.stock_quantity <= Product.low_stock_threshold)

    if filters.get('min_price') is not None:
        query = query.filter(Product.price >= filters['min_price'])

    if filters.get('max_price') is not None:
        query = query.filter(Product.price <= filters['max_price'])

    if filters.get('search'):
        term = f"%{filters['search'].lower()}%"
        query = query.filter(or_(
            func.lower(Product.name).like(term),
            func.lower(Product.sku).like(term),
            func.lower(Product.barcode).like(term)
        ))

    total = query.count()
    products = (query
                .order_by(Product.created_at.desc(), Product.id.desc())
                .limit(filters['limit'])
                .offset((filters['page'] - 1) * filters['limit'])
                .all())
    return products, total


def get_low_stock_products(session, org_id: int) -> List[Product]:
    """Active products at or below their low-stock threshold, emptiest first."""
    return session.query(Product).filter(
        Product.org_id == org_id,
        Product.deleted_at.is_(None),
        Product.is_active.is_(True),
        Product.stock_quantity <= Product.low_stock_threshold
    ).order_by(Product.stock_quantity.asc(), Product.id.asc()).all()


def create_product(session, org_id: int, user_id: Optional[int], data: Any) -> Product:
    """Create a product; the tax-inclusive price is derived from base price and tax rate."""
    values = parse_product(data, partial=False)
    values.setdefault('low_stock_threshold', _default_low_stock_threshold())

    with transaction(session, 'creating product'):
        _ensure_sku_available(session, org_id, values['sku'])

        product = Product(org_id=org_id, created_by=user_id, **values)
        product.price = to_money(compute_tax_inclusive_price(product.base_price, product.tax_rate))
        session.add(product)
        session.flush()

    logger.info(f"Product {product.id} ({product.sku}) created in org {org_id}")
    log_action(session, org_id, user_id, AuditAction.PRODUCT_CREATED, 'product', product.id,
               {'sku': product.sku, 'stock_quantity': product.stock_quantity})
    return product


def update_product(session, product_id: int, org_id: int, user_id: Optional[int], data: Any) -> Product:
    """
    Update catalog fields. A new ``stock_quantity`` goes through the ledger,
    which computes the change under the row lock.
    """
    values = parse_product(data, partial=True)
    target_stock = values.pop('stock_quantity', None)

    with transaction(session, 'updating product'):
        product = get_product(session, product_id, org_id)

        if 'sku' in values and values['sku'] != product.sku:
            _ensure_sku_available(session, org_id, values['sku'], exclude_id=product.id)

        for field, value in values.items():
            setattr(product, field, value)

        if 'base_price' in values or 'tax_rate' in values:
            product.price = to_money(compute_tax_inclusive_price(product.base_price, product.tax_rate))

        session.flush()

        if target_stock is not None:
            inventory_service.set_level(session, product.id, org_id, target_stock)

    log_action(session, org_id, user_id, AuditAction.PRODUCT_UPDATED, 'product', product.id,
               {'fields': sorted(values.keys()) + (['stock_quantity'] if target_stock is not None else [])})
    return product


def update_product_stock(session, product_id: int, org_id: int, user_id: Optional[int], data: Any) -> Product:
    """Manual stock correction: ``type`` is add, subtract or adjust (signed quantity)."""
    delta = parse_stock_update(data)

    with transaction(session, 'updating product stock'):
        new_stock = inventory_service.adjust(session, product_id, org_id, delta)
        product = get_product(session, product_id, org_id)

    log_action(session, org_id, user_id, AuditAction.STOCK_ADJUSTED, 'product', product_id,
               {'delta': delta, 'stock_quantity': new_stock})
    return product


def delete_product(session, product_id: int, org_id: int, user_id: Optional[int]) -> Product:
    """Soft delete: the row stays so past order items keep their product."""
    with transaction(session, 'deleting product'):
        product = get_product(session, product_id, org_id)
        product.deleted_at = datetime.now(timezone.utc)
        product.is_active = False
        session.flush()

    log_action(session, org_id, user_id, AuditAction.PRODUCT_DELETED, 'product', product_id,
               {'sku': product.sku})
    return product


def restore_product(session, product_id: int, org_id: int, user_id: Optional[int]) -> Product:
    with transaction(session, 'restoring product'):
        product = session.query(Product).filter(
            Product.id == product_id,
            Product.org_id == org_id,
            Product.deleted_at.isnot(None)
        ).first()
        if not product:
            raise NotFoundError('Deleted product not found')

        _ensure_sku_available(session, org_id, product.sku, exclude_id=product.id)
        product.deleted_at = None
        product.is_active = True
        session.flush()

    log_action(session, org_id, user_id, AuditAction.PRODUCT_RESTORED, 'product', product_id)
    return product


def serialize_product(product: Product) -> Dict[str, Any]:
    return {
        'id': product.id,
        'org_id': product.org_id,
        'name': product.name,
        'description': product.description,
        'sku': product.sku,
        'barcode': product.barcode,
        'category': product.category,
        'unit': product.unit,
        'base_price': to_money(product.base_price),
        'price': to_money(product.price),
        'cost_price': to_money(product.cost_price) if product.cost_price is not None else None,
        'tax_rate': Decimal(product.tax_rate or 0),
        'stock_quantity': product.stock_quantity,
        'low_stock_threshold': product.low_stock_threshold,
        'is_low_stock': product.is_low_stock,
        'is_active': product.is_active,
        'deleted_at': product.deleted_at.isoformat() if product.deleted_at else None,
    }
