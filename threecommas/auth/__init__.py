"""Request signing for 3Commas client."""

from .signer import sign, verify_signature

__all__ = ["sign", "verify_signature"]
