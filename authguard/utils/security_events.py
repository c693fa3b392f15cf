"""Security event logging utilities for throttling and account lockout"""

import logging
from typing import Any, Optional

from flask import has_request_context, request
import rollbar

from authguard.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Security event types for consistent logging
SECURITY_EVENTS = {
    "LOGIN_SUCCESS": "User login successful",
    "LOGIN_FAILURE": "User login failed",
    "ACCOUNT_LOCKED": "User account locked",
    "LOCKOUT_CLEARED": "Account lockout cleared",
    "THROTTLE_DENIED": "Throttled operation denied",
    "THROTTLE_RESET": "Throttle counter reset",
    "STORE_UNAVAILABLE": "Throttle or lockout store unavailable",
}


def log_security_event(
    event_type: str,
    user_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    level: str = "warning",
) -> None:
    """
    Centralized security event logging function.

    Args:
        event_type: Type of security event (should be from SECURITY_EVENTS)
        user_id: ID of the account involved (if applicable)
        details: Additional details about the event
        level: Log level ('info', 'warning', 'error')
    """
    if event_type not in SECURITY_EVENTS:
        logger.warning(f"Unknown security event type: {event_type}")

    # Gather request context if available
    request_data = {}
    if has_request_context():
        try:
            request_data = {
                "ip_address": request.remote_addr,
                "user_agent": request.headers.get("User-Agent", "Unknown"),
                "endpoint": request.endpoint,
                "method": request.method,
                "path": request.path,
            }
        except Exception as e:
            logger.debug(f"Failed to gather request context: {e}")

    event_data = {
        "event_type": event_type,
        "event_description": SECURITY_EVENTS.get(event_type, "Unknown security event"),
        "timestamp": utcnow().isoformat(),
        "user_id": user_id,
        "details": details or {},
        "request_info": request_data,
    }

    # Filter out None values for cleaner logs
    event_data = {k: v for k, v in event_data.items() if v is not None}

    log_message = f"SECURITY_EVENT: {event_type}"
    if user_id:
        log_message += f" - Account: {user_id}"
    if details:
        log_message += f" - Details: {details}"

    getattr(logger, level)(log_message, extra={"security_event": event_data})

    # Send to Rollbar for centralized monitoring
    try:
        rollbar_level = "info" if level == "info" else "warning"
        rollbar.report_message(
            message=f"Security Event: {event_type}",
            level=rollbar_level,
            extra_data=event_data,
        )
    except Exception as e:
        logger.error(f"Failed to send security event to Rollbar: {e}")


def log_throttle_denied(identifier: str, action: str, retry_after: int) -> None:
    """
    Log a throttle denial.

    Args:
        identifier: Throttled key (IP, phone number, email or account id)
        action: Throttle action that was exhausted
        retry_after: Seconds until the window reopens
    """
    log_security_event(
        "THROTTLE_DENIED",
        details={
            "identifier": identifier,
            "action": action,
            "retry_after": retry_after,
        },
        level="warning",
    )


def log_account_locked(account_id: str, failed_attempts: int, locked_until) -> None:
    log_security_event(
        "ACCOUNT_LOCKED",
        user_id=account_id,
        details={
            "failed_login_attempts": failed_attempts,
            "locked_until": locked_until.isoformat() if locked_until else None,
        },
        level="warning",
    )


def log_store_unavailable(component: str, error: Exception) -> None:
    """Report a storage failure that was absorbed at a component boundary."""
    log_security_event(
        "STORE_UNAVAILABLE",
        details={"component": component, "error": str(error)},
        level="error",
    )
    try:
        rollbar.report_exc_info()
    except Exception as e:
        logger.error(f"Failed to send store failure to Rollbar: {e}")
