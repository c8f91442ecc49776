"""
RBAC Audit Logging - Security event logging for access control

Structured log lines for permission checks, sign-ins, claims refreshes and
perimeter gate decisions. These are logs, not the durable audit trail; the
audit records of privileged operations are written by AuditLogService.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from src.utils.logging import get_logger

# Dedicated audit logger
audit_logger = get_logger('rbac.audit')


def _role_value(role) -> Optional[str]:
    return getattr(role, 'value', role)


def log_permission_check(
    user: str,
    permission: str,
    granted: bool,
    endpoint: Optional[str],
    role=None,
    error: Optional[str] = None,
    extra: Optional[dict] = None
) -> None:
    """
    Log a permission check event for audit trail.

    Args:
        user: Subject id of the user (or 'anonymous')
        permission: Permission(s) being checked
        granted: Whether access was granted
        endpoint: Flask endpoint or operation name
        role: User's role at decision time
        error: Decision code when denied
        extra: Additional context information
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    result = 'GRANTED' if granted else 'DENIED'
    role = _role_value(role)

    log_entry = {
        'timestamp': timestamp,
        'user': user,
        'permission': permission,
        'result': result,
        'endpoint': endpoint,
        'role': role,
    }

    if error:
        log_entry['error'] = error

    if extra:
        log_entry.update(extra)

    log_message = f"{user} | {permission} | {result} | {endpoint} | role: {role}"

    if granted:
        audit_logger.debug(log_message)
    else:
        audit_logger.warning(f"{log_message} | {error}")
        audit_logger.info(f"AUDIT: {json.dumps(log_entry, default=str)}")


def log_authentication_event(
    user: str,
    event_type: str,
    success: bool,
    method: str,
    details: Optional[str] = None
) -> None:
    """
    Log an authentication event.

    Args:
        user: Email or subject id (or 'unknown')
        event_type: Type of event ('login', 'logout', 'token_refresh')
        success: Whether the event succeeded
        method: Authentication method ('credentials', 'external')
        details: Additional details or error code
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    result = 'SUCCESS' if success else 'FAILURE'

    log_entry = {
        'timestamp': timestamp,
        'event': event_type,
        'user': user,
        'result': result,
        'method': method,
    }

    if details:
        log_entry['details'] = details

    log_message = f"AUTH | {event_type} | {user} | {result} | method: {method}"
    if details:
        log_message += f" | {details}"

    if success:
        audit_logger.info(log_message)
    else:
        audit_logger.warning(log_message)

    audit_logger.debug(f"AUDIT: {json.dumps(log_entry)}")


def log_claims_refresh(
    user: str,
    trigger: str,
    previous: Optional[List[str]],
    current: Optional[List[str]],
) -> None:
    """
    Log a claims refresh; changes in role/status are logged at INFO.

    Args:
        user: Subject id
        trigger: What caused the refresh ('update', 'interval')
        previous: [role, status] before the refresh
        current: [role, status] after, or None if the subject disappeared
    """
    if current is None:
        audit_logger.warning(f"REFRESH | {user} | {trigger} | subject no longer exists, claims invalidated")
    elif previous != current:
        audit_logger.info(f"REFRESH | {user} | {trigger} | {previous} -> {current}")
    else:
        audit_logger.debug(f"REFRESH | {user} | {trigger} | unchanged {current}")


def log_gate_decision(user: str, path: str, action: str, target: Optional[str] = None) -> None:
    """Log a perimeter gate redirect or forbid."""
    message = f"GATE | {user} | {path} | {action}"
    if target:
        message += f" -> {target}"
    audit_logger.info(message)
