"""Pull a JSON payload out of free-form assistant text."""

from __future__ import annotations

import json
import re
from typing import Any

_RE_FENCED_JSON = re.compile(r"```(?:json)?\s*\n(.*?)\n?\s*```", re.DOTALL | re.IGNORECASE)


def extract_json_payload(text: str) -> Any | None:
    """Return the first fenced JSON block, else a bare top-level object/array.

    Returns None when nothing parses; callers fall back to plain prose.
    """
    if not text:
        return None

    match = _RE_FENCED_JSON.search(text)
    if match:
        try:
            return json.loads(match.group(1))
        except ValueError:
            pass

    stripped = text.strip()
    if (stripped.startswith("{") and stripped.endswith("}")) or (
        stripped.startswith("[") and stripped.endswith("]")
    ):
        try:
            return json.loads(stripped)
        except ValueError:
            return None
    return None
