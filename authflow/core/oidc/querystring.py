"""Query-string parsing and serialization.

Splits ampersand-joined ``key=value`` strings into an ordered mapping and
joins mappings back into form-encoded strings. Parsing is lenient about
whitespace around keys and values:

- ``""`` fails (returns ``None``)
- ``"key"`` gives ``{"key": None}``
- ``"key="`` and ``"key=   "`` give ``{"key": ""}``
- ``"key=value&=value2"`` gives ``{"key": "value"}`` (empty keys are dropped)
- ``"key1=value1   & key2  "`` gives ``{"key1": "value1", "key2": None}``
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote_plus, unquote_plus


def parse_query(
    request: Any,
    pair_delimiter: str = "&",
    kv_delimiter: str = "=",
) -> dict[str, str | None] | None:
    """Split a request string into an ordered mapping of keys to values.

    Args:
        request: The request string, e.g. ``"client_id=&grant_type=refresh_token"``.
        pair_delimiter: Separator between key-value pairs.
        kv_delimiter: Separator between a key and its value. Only the first
            occurrence in each pair is significant.

    Returns:
        Mapping of key to value (``None`` when the pair has no ``kv_delimiter``),
        or ``None`` if the input is not a non-empty string or a delimiter is empty.
    """
    if not isinstance(request, str) or not pair_delimiter or not kv_delimiter:
        return None

    request = request.strip()
    if not request:
        return None

    result: dict[str, str | None] = {}
    for segment in request.split(pair_delimiter):
        key, sep, value = segment.partition(kv_delimiter)
        key = key.strip()
        if not key:
            continue
        result[key] = unquote_plus(value.strip()) if sep else None

    return result


def serialize_query(fields: Mapping[str, Any]) -> str:
    """Join a mapping into a form-encoded ``key=value&...`` string.

    Values are form encoded (space as ``+``); keys are written as given.
    ``None`` serializes as an empty value.
    """
    return "&".join(
        f"{key}={quote_plus('' if value is None else str(value))}"
        for key, value in fields.items()
    )
