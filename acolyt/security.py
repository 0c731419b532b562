"""
Security module for passkey authentication of the command and event endpoints.
"""

import hashlib
import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from . import config

logger = logging.getLogger(__name__)

PASSKEY_HEADER = "X-Acolyt-Passkey"


def hash_passkey(passkey: str) -> str:
    """Create a SHA-256 hash of the passkey for logging (never log raw passkey)."""
    return hashlib.sha256(passkey.encode()).hexdigest()[:8]


def get_client_ip(request: Request) -> str:
    """Extract real client IP from request, handling proxies and load balancers."""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, use the first one
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()

    return str(request.client.host) if request.client else "unknown"


def log_security_event(
    event_type: str,
    ip_address: str,
    details: Dict[str, Any],
    severity: str = "WARNING"
) -> None:
    """Log security events with structured data for monitoring and analysis."""
    log_entry = {
        "event": event_type,
        "ip": ip_address,
        "severity": severity,
        **details
    }

    if severity == "CRITICAL":
        logger.critical(f"[SECURITY] {log_entry}")
    elif severity == "ERROR":
        logger.error(f"[SECURITY] {log_entry}")
    elif severity == "INFO":
        logger.info(f"[SECURITY] {log_entry}")
    else:
        logger.warning(f"[SECURITY] {log_entry}")


def validate_passkey(
    request: Request,
    payload: Optional[Dict[str, Any]] = None,
    expected_passkey: str = None,
) -> bool:
    """
    Validate the shared passkey from the request header or body.

    Authentication is disabled when no passkey is configured.

    Raises:
        HTTPException: 401 if the passkey is missing or wrong
    """
    expected_passkey = config.ACOLYT_PASSKEY if expected_passkey is None else expected_passkey
    if not expected_passkey:
        return True

    client_ip = get_client_ip(request)
    provided_passkey = request.headers.get(PASSKEY_HEADER) or (payload or {}).get('passkey')

    if not provided_passkey:
        log_security_event(
            "auth_failure_missing_passkey",
            client_ip,
            {
                "reason": "Missing passkey",
                "path": request.url.path,
                "user_agent": request.headers.get('User-Agent', 'unknown')
            },
            severity="ERROR"
        )
        raise HTTPException(status_code=401, detail="Authentication required")

    if not secrets.compare_digest(str(provided_passkey).encode(), expected_passkey.encode()):
        log_security_event(
            "auth_failure_invalid_passkey",
            client_ip,
            {
                "reason": "Invalid passkey provided",
                "path": request.url.path,
                "passkey_hash": hash_passkey(str(provided_passkey)),
                "user_agent": request.headers.get('User-Agent', 'unknown')
            },
            severity="ERROR"
        )
        raise HTTPException(status_code=401, detail="Authentication failed")

    return True


def check_security_config(expected_passkey: str = None) -> Dict[str, Any]:
    """Check current security configuration and return status."""
    expected_passkey = config.ACOLYT_PASSKEY if expected_passkey is None else expected_passkey
    if not expected_passkey:
        logger.warning("[SECURITY] ACOLYT_PASSKEY not set - command and event endpoints are open!")
    return {
        "passkey_configured": bool(expected_passkey),
        "passkey_hash": hash_passkey(expected_passkey) if expected_passkey else None,
    }
