"""Deny-list categories for the synchronous scope tier (no I/O).

Only unambiguous off-topic requests belong here; anything borderline is
left to the classifier tier.
"""

from __future__ import annotations

import re

DENY_PATTERNS: dict[str, re.Pattern[str]] = {
    "math_homework": re.compile(
        r"\b(derivatives?|integrals?|calculus|algebra|trigonometry|quadratic|polynomials?|"
        r"equations?|solve for [a-z]|math homework|homework|worksheet|simplify the expression)\b",
        re.IGNORECASE,
    ),
    "politics": re.compile(
        r"\b(politics|political|elections?|vote for|voting for|democrats?|republicans?|"
        r"left[- ]wing|right[- ]wing|senators?|congressman|congresswoman)\b",
        re.IGNORECASE,
    ),
    "dating": re.compile(
        r"\b(dating (?:advice|apps?|profile|tips)|tinder|bumble|hinge app|crush on|"
        r"break up with|relationship advice|ask (?:her|him|them) out)\b",
        re.IGNORECASE,
    ),
}


def check_deny_list(message: str, categories: list[str] | None = None) -> str | None:
    """Return the first matching deny category, or None."""
    names = categories if categories is not None else list(DENY_PATTERNS)
    for name in names:
        pattern = DENY_PATTERNS.get(name)
        if pattern is not None and pattern.search(message):
            return name
    return None
