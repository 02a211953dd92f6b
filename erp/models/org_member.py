"""OrgMember model - links users to organizations with roles."""
import enum
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from erp.database import Base, BigIntPK


class MemberRole(enum.Enum):
    """User roles within an organization."""
    OWNER = 'OWNER'
    ADMIN = 'ADMIN'
    STAFF = 'STAFF'


class OrgMember(Base):
    """Active membership is what makes an organization id usable for a user."""

    __tablename__ = 'org_member'
    __table_args__ = (
        UniqueConstraint('user_id', 'org_id', name='uq_org_member_user_org'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)
    org_id = Column(BigInteger, ForeignKey('organization.id'), nullable=False)
    role = Column(String(20), nullable=False, default=MemberRole.STAFF.value)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship('AppUser', back_populates='memberships')
    organization = relationship('Organization', back_populates='members')

    def __repr__(self):
        return f"<OrgMember(user_id={self.user_id}, org_id={self.org_id}, role='{self.role}')>"
