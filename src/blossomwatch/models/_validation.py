"""Field checks shared by the frozen models.

Private to ``blossomwatch.models``. Relay-supplied values reach these checks
through [ServerRecord][blossomwatch.models.server.ServerRecord], so a failure
here is how the announcement parser learns that an event is unusable.
"""

from __future__ import annotations

from typing import Any


def validate_non_negative_int(value: Any, name: str) -> None:
    """Require a non-negative ``int`` (timestamps, counters); ``bool`` is rejected."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_text(value: Any, name: str, *, optional: bool = False) -> None:
    """Require a ``str`` free of null bytes.

    Args:
        value: Candidate field value.
        name: Field name used in error messages.
        optional: Accept ``None`` and empty strings. Required text must be
            non-empty.

    Raises:
        TypeError: If *value* is not a string (or ``None`` when optional).
        ValueError: If *value* holds a null byte, or is empty when required.
    """
    if optional and value is None:
        return
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")
    if not optional and not value:
        raise ValueError(f"{name} must not be empty")
