"""Customer lookups used by the order core."""
from typing import Optional

from erp.models import Customer


def get_customer_by_id(session, customer_id: int, org_id: int) -> Optional[Customer]:
    """Customer of the organization, or None (other organizations are invisible)."""
    return session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.org_id == org_id
    ).first()
