"""
Query-string serialization compatible with the ``qs`` defaults 3Commas expects.

The signed query string is the one sent on the wire, so encoding must be
stable: insertion order, bracketed nesting, RFC 3986 percent-encoding.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import quote


def _format_scalar(value: Any) -> str:
    """Render a leaf value the way JavaScript would stringify it."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _flatten(prefix: str, value: Any) -> Iterator[Tuple[str, str]]:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten(f"{prefix}[{key}]", item)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _flatten(f"{prefix}[{index}]", item)
    else:
        yield prefix, _format_scalar(value)


def flatten(params: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """
    Flatten nested params into (key, value) pairs.

    Example:
        >>> flatten({"a": {"b": 1}, "ids": [4, 5]})
        [('a[b]', '1'), ('ids[0]', '4'), ('ids[1]', '5')]
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in (params or {}).items():
        pairs.extend(_flatten(str(key), value))
    return pairs


def stringify(params: Optional[Mapping[str, Any]]) -> str:
    """
    Serialize params to a query string (no leading ``?``).

    Args:
        params: Query parameters; None values are skipped

    Returns:
        Encoded query string, "" when there is nothing to send
    """
    return "&".join(
        f"{quote(key, safe='')}={quote(value, safe='')}"
        for key, value in flatten(params)
    )
