"""
Natours Backend — Payload Sanitizer
=====================================

What:  Scrubs JSON request bodies before validation.
Why:   Bodies are stored as documents; operator-shaped keys (`$gt`,
       `a.b`) and raw HTML in strings must never reach storage.
How:   Recursive walk over dicts and lists:
       - keys starting with "$" or containing "." are dropped
       - "<" and ">" in string values are HTML-escaped
"""

from typing import Any


def _clean_string(value: str) -> str:
    return value.replace("<", "&lt;").replace(">", "&gt;")


def sanitize_payload(value: Any) -> Any:
    """Return a scrubbed copy of `value`; the input is not modified."""
    if isinstance(value, dict):
        return {
            key: sanitize_payload(item)
            for key, item in value.items()
            if not (isinstance(key, str) and (key.startswith("$") or "." in key))
        }
    if isinstance(value, list):
        return [sanitize_payload(item) for item in value]
    if isinstance(value, str):
        return _clean_string(value)
    return value
