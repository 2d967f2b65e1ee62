"""Lightweight validation of free-text rebalance preferences.

The text is forwarded into a generation prompt, so obvious attempts to
override the fund's exclusion rules are rejected before any network call.
This is a pattern guard, not a security boundary.
"""

from __future__ import annotations
import re

MAX_PREFERENCE_LENGTH = 500

_TARGETS = r"(the\s+)?(previous|above|all|safety|instructions?|rules?|guidelines?)"
SUSPICIOUS_PATTERNS = [
    re.compile(rf"{verb}\s+{_TARGETS}", re.IGNORECASE)
    for verb in ("ignore", "disregard", "override", "forget")
]


def validate_user_preferences(text: str | None) -> str:
    """Return sanitized preferences or raise ValueError.

    Args:
        text: Raw user input from the rebalance dialog.

    Returns:
        The input trimmed, with runs of whitespace collapsed to single spaces.

    Raises:
        ValueError: empty input, more than 500 characters, or an instruction
            override phrase such as "ignore previous instructions".
    """
    if not text or not text.strip():
        raise ValueError("Preferences cannot be empty")

    if len(text) > MAX_PREFERENCE_LENGTH:
        raise ValueError(f"Preferences must be under {MAX_PREFERENCE_LENGTH} characters")

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(text):
            raise ValueError("Invalid input detected. Please rephrase your preferences.")

    return re.sub(r"\s+", " ", text.strip())


def get_validation_message(error: Exception | None) -> str:
    """User-facing status line for a validation outcome."""
    if error is None:
        return "✓ Preferences accepted"
    return f"⚠ {error}"


__all__ = ["MAX_PREFERENCE_LENGTH", "validate_user_preferences", "get_validation_message"]
