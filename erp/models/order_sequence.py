"""Per-organization, per-year order number counter."""
from sqlalchemy import Column, BigInteger, Integer, ForeignKey
from erp.database import Base


class OrderSequence(Base):
    """Last issued order sequence value for an organization and year."""

    __tablename__ = 'order_sequence'

    org_id = Column(BigInteger, ForeignKey('organization.id'), primary_key=True)
    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<OrderSequence(org_id={self.org_id}, year={self.year}, last_value={self.last_value})>"
