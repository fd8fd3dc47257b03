"""Utility functions for sanitizing client-supplied text."""

import json
from typing import Any, Optional

import bleach


def sanitize_plain_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Strip all HTML from free text reported by the exam client.

    Used for block reasons and violation metadata, which are later shown
    to staff on the marksheet.
    """
    sanitized = bleach.clean(text or "", tags=[], strip=True).strip()
    if max_length is not None:
        sanitized = sanitized[:max_length]
    return sanitized


def serialize_metadata(metadata: Any) -> Optional[str]:
    """Store activity metadata as a sanitized JSON string."""
    if metadata is None:
        return None
    if isinstance(metadata, (dict, list)):
        return sanitize_plain_text(json.dumps(metadata))
    return sanitize_plain_text(str(metadata))
