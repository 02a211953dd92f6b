"""
Audit logging service for tracking order and catalog mutations.

Audit is fire-and-forget: callers invoke it after their own commit and a
failure here is logged, never raised.
"""
from erp.models.audit_log import AuditLog, AuditAction
from flask import request, has_request_context
from datetime import datetime
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    org_id: int,
    user_id: int,
    action: AuditAction,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None
):
    """
    Record an auditable action in its own small transaction.

    Args:
        session: Database session (the business transaction must already be committed)
        org_id: Organization the action belongs to
        user_id: Acting user (may be None for CLI/system actions)
        action: AuditAction enum value
        resource_type: Type of resource affected (e.g., 'order', 'product')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
    """
    try:
        if not org_id:
            logger.warning(f"Cannot log action {action}: missing org_id")
            return

        # Get request metadata
        ip_address = None
        user_agent = None
        if has_request_context():
            ip_address = request.remote_addr
            user_agent = request.headers.get('User-Agent', '')[:255]

        # Serialize details to JSON
        details_json = None
        if details:
            try:
                details_json = json.dumps(details, default=str)
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to serialize audit details: {e}")
                details_json = str(details)

        session.add(AuditLog(
            org_id=org_id,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details_json,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=datetime.utcnow()
        ))
        session.commit()

        logger.info(f"Audit log created: {action.value} by user {user_id} on {resource_type} {resource_id}")

    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create audit log: {e}")
        # Don't raise exception - audit failures should not break business logic

