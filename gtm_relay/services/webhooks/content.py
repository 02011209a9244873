"""Normalize workflow responses into a single markdown content string."""

import json
from typing import Any, Optional

# Order of preference for fields carrying the answer text
CONTENT_FIELDS = ("content", "output", "message", "response", "text")

EMPTY_RESPONSE = "Empty response received."
UNEXTRACTABLE_RESPONSE = "Unable to extract content from response."


def extract_content(data: Any) -> str:
    """Best-effort extraction of displayable text from a webhook response.

    Preference order: a direct string, a recognized field on the top-level
    object, the first recognized field found by walking nested objects and
    lists, and finally the pretty-printed JSON of the whole value. Lists are
    extracted element by element and joined with newlines.
    """
    if isinstance(data, str):
        return data

    if isinstance(data, list):
        if not data:
            return EMPTY_RESPONSE
        return "\n".join(extract_content(item) for item in data)

    if isinstance(data, dict):
        found = _find_content(data)
        if found is not None:
            return found
        return json.dumps(data, indent=2, default=str)

    if data is None:
        return UNEXTRACTABLE_RESPONSE

    return json.dumps(data, default=str)


def _find_content(value: Any) -> Optional[str]:
    """Depth-first search for the first non-empty recognized field."""
    if isinstance(value, list):
        for item in value:
            found = _find_content(item)
            if found is not None:
                return found
        return None

    if not isinstance(value, dict):
        return None

    for key in CONTENT_FIELDS:
        candidate = value.get(key)
        if isinstance(candidate, str) and candidate:
            return candidate
        if isinstance(candidate, (dict, list)) and candidate:
            return extract_content(candidate)

    for nested in value.values():
        if isinstance(nested, (dict, list)):
            found = _find_content(nested)
            if found is not None:
                return found
    return None
