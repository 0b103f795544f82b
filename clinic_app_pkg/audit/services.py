# clinic_app_pkg/audit/services.py
from flask import request, g, has_request_context
from .. import db
from ..models import AuditLog


def create_audit_log(action, entity_type=None, entity_id=None, details=None, organization_id=None, commit=False):
    """
    Creates an audit log entry.
    It automatically captures the caller, IP, and user agent from the request context.
    The session is not committed automatically unless specified.
    """
    user_id = None
    identity = getattr(g, 'current_user', None) if has_request_context() else None
    if identity is not None:
        user_id = identity.id
        if organization_id is None:
            organization_id = identity.organization_id

    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.user_agent.string if request.user_agent else None

    log_entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
        user_id=user_id,
        organization_id=organization_id,
        ip_address=ip_address,
        user_agent=user_agent
    )
    db.session.add(log_entry)

    if commit:
        db.session.commit()
    return log_entry
