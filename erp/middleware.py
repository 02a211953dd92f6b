"""Middleware for actor and organization context."""
from functools import wraps
from flask import session, g, current_app
from erp.database import get_session
from erp.exceptions import UnauthorizedError
from erp.models import AppUser, OrgMember, Organization


def load_actor_context():
    """
    Load the current user and organization into g.

    Called before each request. Sets g.user, g.user_id, g.org_id and
    g.user_role when the session carries a user with an active membership
    in an active organization. There is no fallback organization.
    """
    g.user = None
    g.user_id = None
    g.org_id = None
    g.user_role = None

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        db_session = get_session()
        user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
        if not user:
            return

        g.user = user
        g.user_id = user.id

        org_id = session.get('org_id')
        if not org_id:
            return

        membership = db_session.query(OrgMember).join(
            Organization, Organization.id == OrgMember.org_id
        ).filter(
            OrgMember.user_id == user.id,
            OrgMember.org_id == org_id,
            OrgMember.active.is_(True),
            Organization.active.is_(True)
        ).first()

        if membership:
            g.org_id = membership.org_id
            g.user_role = membership.role
        else:
            # Membership revoked or organization disabled
            session.pop('org_id', None)
    except Exception as e:
        current_app.logger.error(f"Error in load_actor_context: {e}")


def require_org(f):
    """
    Decorator: require an authenticated user acting for an organization.

    Raises UnauthorizedError (401 JSON) otherwise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError()
        if g.get('org_id') is None:
            raise UnauthorizedError('No organization selected')
        return f(*args, **kwargs)
    return decorated_function
