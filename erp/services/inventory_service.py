"""
Inventory ledger - Multi-Tenant.

The only code path allowed to change ``Product.stock_quantity``. Every
function works inside the caller's transaction and never commits; the
order and catalog services own the unit of work.
"""
import logging
from typing import Optional

from sqlalchemy import update, func
from sqlalchemy.orm.util import identity_key

from erp.models import Product
from erp.exceptions import (
    ValidationError, NotFoundError, InsufficientStockError, NegativeStockError
)

logger = logging.getLogger(__name__)


def _require_quantity(quantity, allow_negative: bool = False) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(errors=['quantity must be an integer'])
    if allow_negative:
        if quantity == 0:
            raise ValidationError(errors=['quantity must not be zero'])
    elif quantity <= 0:
        raise ValidationError(errors=['quantity must be a positive integer'])


def _expire_cached(session, product_id: int) -> None:
    """Drop stale stock values of a Product already loaded in this session."""
    cached = session.identity_map.get(identity_key(Product, product_id))
    if cached is not None:
        session.expire(cached, ['stock_quantity', 'updated_at'])


def _stock_row(session, product_id: int, org_id: int, include_deleted: bool = False):
    query = session.query(Product.id, Product.name, Product.stock_quantity).filter(
        Product.id == product_id,
        Product.org_id == org_id
    )
    if not include_deleted:
        query = query.filter(Product.deleted_at.is_(None))
    return query.first()


def reserve(session, product_id: int, org_id: int, quantity: int) -> int:
    """
    Take ``quantity`` units out of stock for an order.

    Uses a conditional UPDATE so two transactions racing for the last units
    cannot both succeed; the database re-checks ``stock_quantity >= qty``
    while holding the row lock.

    Returns:
        The stock left after the reservation.

    Raises:
        NotFoundError: product missing, deleted or owned by another organization
        InsufficientStockError: not enough stock (nothing is changed)
    """
    _require_quantity(quantity)

    result = session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.org_id == org_id,
            Product.deleted_at.is_(None),
            Product.stock_quantity >= quantity
        )
        .values(
            stock_quantity=Product.stock_quantity - quantity,
            updated_at=func.now()
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        row = _stock_row(session, product_id, org_id)
        if row is None:
            raise NotFoundError(f'Product with ID {product_id} not found')
        logger.info(
            f"Reservation refused for product {product_id} (org {org_id}): "
            f"requested {quantity}, available {row.stock_quantity}"
        )
        raise InsufficientStockError(row.id, row.name, quantity, row.stock_quantity)

    _expire_cached(session, product_id)
    remaining = _stock_row(session, product_id, org_id).stock_quantity
    logger.debug(f"Reserved {quantity} of product {product_id} (org {org_id}), stock now {remaining}")
    return remaining


def release(session, product_id: int, org_id: int, quantity: int) -> int:
    """
    Put ``quantity`` units back into stock (cancel, delete, edit).

    Soft-deleted products are included so historical orders can always be
    reversed.
    """
    _require_quantity(quantity)

    result = session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.org_id == org_id
        )
        .values(
            stock_quantity=Product.stock_quantity + quantity,
            updated_at=func.now()
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        raise NotFoundError(f'Product with ID {product_id} not found')

    _expire_cached(session, product_id)
    restored = _stock_row(session, product_id, org_id, include_deleted=True).stock_quantity
    logger.debug(f"Released {quantity} of product {product_id} (org {org_id}), stock now {restored}")
    return restored


def _lock_product(session, product_id: int, org_id: int) -> Product:
    product: Optional[Product] = session.query(Product).filter(
        Product.id == product_id,
        Product.org_id == org_id,
        Product.deleted_at.is_(None)
    ).with_for_update().populate_existing().first()

    if not product:
        raise NotFoundError(f'Product with ID {product_id} not found')
    return product


def adjust(session, product_id: int, org_id: int, delta: int) -> int:
    """
    Manual stock correction by ``delta`` (positive or negative).

    Locks the product row (SELECT ... FOR UPDATE) before computing the new
    level.

    Raises:
        NotFoundError: product missing or owned by another organization
        NegativeStockError: the correction would leave stock below zero
    """
    _require_quantity(delta, allow_negative=True)

    product = _lock_product(session, product_id, org_id)

    new_stock = product.stock_quantity + delta
    if new_stock < 0:
        raise NegativeStockError(product.name, product.stock_quantity, delta)

    product.stock_quantity = new_stock
    session.flush()
    logger.info(f"Stock of product {product_id} (org {org_id}) adjusted by {delta} to {new_stock}")
    return new_stock


def set_level(session, product_id: int, org_id: int, target: int) -> int:
    """Set stock to ``target``; the delta is taken from the locked row."""
    if isinstance(target, bool) or not isinstance(target, int) or target < 0:
        raise ValidationError(errors=['stock_quantity must be a non-negative integer'])

    product = _lock_product(session, product_id, org_id)
    if product.stock_quantity != target:
        previous = product.stock_quantity
        product.stock_quantity = target
        session.flush()
        logger.info(f"Stock of product {product_id} (org {org_id}) set from {previous} to {target}")
    return target


def is_low_stock(product: Product) -> bool:
    return product.is_low_stock
