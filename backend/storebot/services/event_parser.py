"""
Webhook Event Parser — pulls the gateway payment id out of a notification.

Priority, first match wins:
1. `id` query parameter
2. body `id`, `payment_id`, `data_id`
3. the same fields under the body's `data` object
4. last path segment of the body's `resource` URL
"""
import math
from typing import Any, Optional
from urllib.parse import urlparse

ID_FIELDS = ("id", "payment_id", "data_id")


def coerce_identifier(value: Any) -> Optional[str]:
    """Accept non-empty strings and finite numbers; everything else is no id."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    return None


def _first_identifier(node: dict) -> Optional[str]:
    for name in ID_FIELDS:
        identifier = coerce_identifier(node.get(name))
        if identifier:
            return identifier
    return None


def id_from_resource(resource: Any) -> Optional[str]:
    if not isinstance(resource, str) or not resource.strip():
        return None
    path = urlparse(resource.strip()).path or resource.strip()
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    return segment.strip() or None


def extract_payment_id(query_id: Optional[str], body: Any) -> Optional[str]:
    identifier = coerce_identifier(query_id)
    if identifier:
        return identifier

    if not isinstance(body, dict):
        return None

    identifier = _first_identifier(body)
    if identifier:
        return identifier

    data_node = body.get("data")
    if isinstance(data_node, dict):
        identifier = _first_identifier(data_node)
        if identifier:
            return identifier

    return id_from_resource(body.get("resource"))
