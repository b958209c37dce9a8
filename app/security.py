"""
API key authentication
"""
import hashlib
import hmac
import logging
from enum import Enum
from typing import Optional

from .shared.exceptions import AuthenticationError, ServiceMisconfiguredError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class AuthOutcome(str, Enum):
    """Result of checking a presented credential"""
    ABSENT_CONFIG = "absent_config"
    MISSING_CREDENTIAL = "missing_credential"
    MISMATCHED_CREDENTIAL = "mismatched_credential"
    ACCEPTED = "accepted"


def check_api_key(presented: Optional[str], configured: Optional[str]) -> AuthOutcome:
    """
    Compares a presented credential with the configured secret.

    Args:
        presented: Value of the X-API-Key header (None when absent)
        configured: Shared secret (None or empty when not configured)

    Returns:
        AuthOutcome. An unconfigured secret is reported before anything
        about the presented credential.
    """
    if not configured:
        return AuthOutcome.ABSENT_CONFIG
    if not presented:
        return AuthOutcome.MISSING_CREDENTIAL
    if not hmac.compare_digest(presented.encode('utf-8'), configured.encode('utf-8')):
        return AuthOutcome.MISMATCHED_CREDENTIAL
    return AuthOutcome.ACCEPTED


def authenticate(presented: Optional[str], configured: Optional[str]) -> str:
    """
    Raises unless the presented credential is accepted.

    Returns:
        The accepted credential

    Raises:
        ServiceMisconfiguredError: API_KEY is not set
        AuthenticationError: credential missing or wrong
    """
    outcome = check_api_key(presented, configured)

    if outcome is AuthOutcome.ABSENT_CONFIG:
        logger.error("API_KEY environment variable not set")
        raise ServiceMisconfiguredError("API key is not configured")
    if outcome is AuthOutcome.MISSING_CREDENTIAL:
        raise AuthenticationError("API key header missing")
    if outcome is AuthOutcome.MISMATCHED_CREDENTIAL:
        raise AuthenticationError(f"API key mismatch (key {key_fingerprint(presented)})")

    return presented


def key_fingerprint(credential: Optional[str]) -> str:
    """Short non-reversible tag for a credential, safe to log"""
    if not credential:
        return "-"
    return hashlib.sha256(credential.encode('utf-8')).hexdigest()[:8]
