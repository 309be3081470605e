"""
Payload Utilities — size-capped JSON serialization and phone normalization.
"""
import json
import re
from typing import Any, Optional


def serialize_capped(data: Any, max_chars: int) -> Optional[str]:
    """Serialize to JSON and truncate to `max_chars` characters.

    The result may be cut mid-structure; it is stored for operators, not parsed back.
    """
    if data is None:
        return None
    text = json.dumps(data, default=str, ensure_ascii=False)
    return text[:max_chars]


def cap_metadata(metadata: dict, max_chars: int) -> dict:
    """Drop the oldest webhook history entries until the blob fits `max_chars`."""
    capped = dict(metadata)
    history = list(capped.get("webhookHistory") or [])
    while history and len(json.dumps({**capped, "webhookHistory": history}, default=str)) > max_chars:
        history.pop(0)
    if "webhookHistory" in capped:
        capped["webhookHistory"] = history
    return capped


def normalize_phone(phone: str) -> str:
    """Keep digits and a leading plus sign only."""
    return re.sub(r"[^0-9+]", "", phone)
