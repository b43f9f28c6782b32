"""Lenient readers for provider request parameters."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def same_amount(value: Any, expected: int) -> bool:
    """Exact comparison of a wire amount against stored minor units."""
    return is_number(value) and value == expected


def as_int(value: Any) -> Optional[int]:
    if is_number(value):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def numeric_request_id(body: Any) -> Any:
    """The envelope id when it is numeric, else 0 (used for malformed requests)."""
    if isinstance(body, Mapping) and is_number(body.get("id")):
        return body["id"]
    return 0


def nested(params: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = params.get(key)
    return value if isinstance(value, Mapping) else {}


def dump_payload(value: Any) -> Optional[dict[str, Any]]:
    """Turn a callback return value into a JSON-ready dict."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    return dict(value)
