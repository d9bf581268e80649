"""Canonicalization helpers for answer values.

Provides stable string representations of answer values used for rule
comparisons and option matching, plus the shared notion of "unanswered".
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from fieldsync.models.template import Answer

_MISSING = object()


def canonicalize_answer_value(value: Any) -> Optional[str]:
    """Return a stable string representation for a scalar answer value.

    - Booleans -> "true" / "false"
    - Numbers  -> integer form when integral, else decimal string
    - Text     -> as-is string; "true"/"false" in any case fold to lowercase
    - None     -> None
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        f = value
        if math.isfinite(f) and float(int(f)) == f:
            return str(int(f))
        return str(f)
    s = str(value)
    return s.lower() if s.lower() in {"true", "false"} else s


def canonicalize_yes_no(value: Any) -> Optional[str]:
    """Fold yes/no spellings onto "true"/"false" for yes_no items."""
    token = canonicalize_answer_value(value)
    if token is None:
        return None
    low = token.strip().lower()
    if low in {"true", "yes", "y", "1", "pass"}:
        return "true"
    if low in {"false", "no", "n", "0", "fail"}:
        return "false"
    return token


def to_number(value: Any) -> Optional[float]:
    """Coerce a value to a finite float, or None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return f if math.isfinite(f) else None


def is_unanswered(value: Any) -> bool:
    if value is None or value is _MISSING:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


def answer_value(answers: Mapping[str, Any], question_id: str) -> Any:
    """Return the raw value answered for `question_id`, or None.

    Accepts `Answer` models, `{questionId, value}` dicts, or bare values keyed
    by question id.
    """
    raw = answers.get(question_id, _MISSING) if answers else _MISSING
    if raw is _MISSING:
        return None
    if isinstance(raw, Answer):
        return raw.value
    if isinstance(raw, dict) and "value" in raw:
        return raw.get("value")
    return raw


__all__ = [
    "canonicalize_answer_value",
    "canonicalize_yes_no",
    "to_number",
    "is_unanswered",
    "answer_value",
]
