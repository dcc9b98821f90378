"""Request field templating.

Provider templates declare request fields generically, for example
``client_id=&client_secret=&refresh_token=&grant_type=refresh_token``.
Blank fields are filled from the configuration values at call time while
explicit values in the template are kept.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from authflow.core.oidc.querystring import parse_query, serialize_query


def render_fields(template: str, values: Mapping[str, Any]) -> str:
    """Render a field template against a key-value store.

    Args:
        template: Ampersand-joined field template.
        values: Stored values; a missing key or ``None`` renders as empty.

    Returns:
        Form-encoded request string, or ``""`` if the template is empty.
    """
    fields = parse_query(template)
    if not fields:
        return ""

    rendered: dict[str, Any] = {}
    for key, value in fields.items():
        if value is None or value == "":
            rendered[key] = values.get(key)
        else:
            rendered[key] = value

    return serialize_query(rendered)
