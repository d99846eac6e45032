"""
Webhook signing and target URL validation.
"""
import hmac
import hashlib
import ipaddress
from dataclasses import dataclass, field
from typing import List
from urllib.parse import urlsplit

from sms_dev.core.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-SMS-Dev-Signature"

LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1", "0.0.0.0"}


def compute_signature(secret: str, body: bytes) -> str:
    """
    Compute HMAC-SHA256 signature for the given body.
    
    Args:
        secret: The webhook secret key
        body: Raw request body bytes
        
    Returns:
        Hex-encoded HMAC-SHA256 signature
    """
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256
    ).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """
    Verify HMAC-SHA256 signature using constant-time comparison.
    
    Receivers of simulated webhooks can use this to check the
    X-SMS-Dev-Signature header.
    """
    expected_signature = compute_signature(secret, body)
    return hmac.compare_digest(expected_signature, signature)


@dataclass
class UrlCheck:
    """Outcome of validating a webhook target."""
    
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _is_private(hostname: str) -> bool:
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return address.is_private and not address.is_loopback


def validate_webhook_url(url: str) -> UrlCheck:
    """
    Check that a webhook target is an absolute http(s) URL.
    
    Plain HTTP to a remote host, private network targets and privileged
    ports on remote hosts are allowed but reported as warnings.
    """
    check = UrlCheck(valid=True)
    if not url or not isinstance(url, str):
        check.errors.append("Webhook URL must be a non-empty string")
        check.valid = False
        return check
    
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        check.errors.append("Invalid URL format")
        check.valid = False
        return check
    
    hostname = parts.hostname or ""
    if parts.scheme not in ("http", "https"):
        check.errors.append("Webhook URL must use HTTP or HTTPS protocol")
    if not hostname:
        check.errors.append("Invalid URL format")
    
    is_local = hostname in LOCAL_HOSTS
    if parts.scheme == "http" and hostname and not is_local:
        check.warnings.append("HTTP URLs are not secure for production use")
    if _is_private(hostname):
        check.warnings.append("Webhook URL points to private network")
    if port is not None and port < 1024 and not is_local:
        check.warnings.append("Using privileged port on remote host")
    
    check.valid = not check.errors
    if check.warnings:
        logger.debug(
            "Webhook URL accepted with warnings",
            extra={"extra_data": {"warnings": check.warnings}}
        )
    return check
