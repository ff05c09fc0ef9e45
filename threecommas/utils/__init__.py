"""Utility modules for 3Commas client."""

from .query import stringify, flatten
from .structured_logging import CredentialRedactionFilter, configure_structured_logging

__all__ = [
    "stringify",
    "flatten",
    "CredentialRedactionFilter",
    "configure_structured_logging",
]
