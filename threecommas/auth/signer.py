"""
Request signing for the 3Commas API.

Signature = hex(HMAC-SHA256(secret, path[?payload])).
"""

import hashlib
import hmac


def build_message(path: str, payload: str = "") -> str:
    """
    Build the canonical string that gets signed.

    Args:
        path: Relative URL, e.g. /public/api/ver1/deals
        payload: Query string or JSON body (may be empty)

    Returns:
        ``path`` alone, or ``path?payload`` when a payload is present
    """
    if not payload:
        return path
    return f"{path}?{payload}"


def sign(secret: str, path: str, payload: str = "") -> str:
    """
    Compute the request signature.

    Args:
        secret: API secret; empty for anonymous calls
        path: Relative URL being requested
        payload: Serialized query string or body

    Returns:
        Lowercase hex digest, or "" when no secret is configured
    """
    if not secret:
        return ""

    h = hmac.new(
        secret.encode("utf-8"),
        build_message(path, payload).encode("utf-8"),
        hashlib.sha256
    )
    return h.hexdigest()


def verify_signature(secret: str, signature: str, path: str, payload: str = "") -> bool:
    """
    Verify a signature in constant time.

    Args:
        secret: API secret
        signature: Signature to verify
        path: Relative URL
        payload: Serialized query string or body

    Returns:
        True if signature is valid
    """
    return hmac.compare_digest(signature, sign(secret, path, payload))
