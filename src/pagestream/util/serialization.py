from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

REDACTED_VALUE = "<redacted>"
# Page tokens are not credentials, so "token" alone is not listed here.
SENSITIVE_KEY_SUBSTRINGS = (
    "private_key",
    "passphrase",
    "password",
    "secret",
    "authorization",
    "api_key",
    "apikey",
    "access_token",
)


def is_sensitive_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.lower().replace("-", "_")
    return any(token in lowered for token in SENSITIVE_KEY_SUBSTRINGS)


def redact_mapping(data: Mapping[str, Any]) -> dict[str, Any]:
    return {k: (REDACTED_VALUE if is_sensitive_key(k) else v) for k, v in data.items()}


def sanitize_for_json(value: Any) -> Any:
    """
    Convert list items, requests and SDK models to JSON-serializable forms,
    redacting credential-looking fields.
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, Mapping):
        return {
            str(k): (REDACTED_VALUE if is_sensitive_key(k) else sanitize_for_json(v)) for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_for_json(v) for v in value]
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        try:
            return sanitize_for_json(to_dict())
        except Exception:
            return str(value)
    # OCI SDK models
    attribute_map = getattr(value, "attribute_map", None)
    if isinstance(attribute_map, dict):
        out = {}
        for attr, json_key in attribute_map.items():
            if is_sensitive_key(json_key):
                out[json_key] = REDACTED_VALUE
                continue
            out[json_key] = sanitize_for_json(getattr(value, attr, None))
        return out
    if hasattr(value, "__dict__"):
        return sanitize_for_json({k: v for k, v in vars(value).items() if not k.startswith("_")})
    return str(value)
