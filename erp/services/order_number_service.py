"""
Order number generation - Multi-Tenant.

Numbers look like ``ORD-{org_id}-{year}-{seq:06d}``. The sequence lives in
an explicit ``order_sequence`` row per organization and year, read and
bumped while the organization row is locked FOR UPDATE. The lock is only
released when the caller's transaction ends, so the whole order insert is
serialized per organization while other organizations proceed freely.
"""
from datetime import datetime, timezone
from typing import Optional

from erp.models import Organization, OrderSequence
from erp.exceptions import NotFoundError

DEFAULT_PREFIX = 'ORD'


def format_order_number(org_id: int, year: int, sequence: int, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}-{org_id}-{year}-{sequence:06d}"


def lock_organization(session, org_id: int) -> Organization:
    """Take the per-organization write lock for the current transaction."""
    organization = session.query(Organization).filter(
        Organization.id == org_id
    ).with_for_update().first()

    if not organization:
        raise NotFoundError(f'Organization {org_id} not found')
    return organization


def next_order_number(session, org_id: int, year: Optional[int] = None,
                      prefix: str = DEFAULT_PREFIX) -> str:
    """
    Allocate the next order number for ``org_id``.

    Must run inside the transaction that inserts the order. A rollback of
    that transaction also rolls the counter back, so committed numbers stay
    gapless within a year.
    """
    year = year or datetime.now(timezone.utc).year

    lock_organization(session, org_id)

    sequence = session.query(OrderSequence).filter(
        OrderSequence.org_id == org_id,
        OrderSequence.year == year
    ).with_for_update().populate_existing().first()

    if sequence is None:
        sequence = OrderSequence(org_id=org_id, year=year, last_value=0)
        session.add(sequence)

    sequence.last_value = (sequence.last_value or 0) + 1
    session.flush()

    return format_order_number(org_id, year, sequence.last_value, prefix)


def peek_next_order_number(session, org_id: int, year: Optional[int] = None,
                           prefix: str = DEFAULT_PREFIX) -> str:
    """Preview the next number without allocating it (no lock taken)."""
    year = year or datetime.now(timezone.utc).year
    sequence = session.query(OrderSequence).filter(
        OrderSequence.org_id == org_id,
        OrderSequence.year == year
    ).first()
    last_value = sequence.last_value if sequence else 0
    return format_order_number(org_id, year, last_value + 1, prefix)
