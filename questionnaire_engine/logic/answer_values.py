"""Canonicalization helpers for answer values.

An answer is either absent, a scalar string, or an ordered list of strings
(multi-choice). None, blank strings and empty lists all count as "not
answered".
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

AnswerValue = Optional[Union[str, List[str]]]

# Placeholder the classification system returns when it has no data
AUTO_SOURCE_PLACEHOLDER = "Data not available"


def is_empty_answer(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def is_empty_auto_value(value: Any) -> bool:
    """Auto-source values additionally treat the placeholder text as empty."""
    if is_empty_answer(value):
        return True
    return isinstance(value, str) and value.strip() == AUTO_SOURCE_PLACEHOLDER


def canonicalize_answer_value(value: Any) -> AnswerValue:
    """Return a stable representation for an incoming answer value.

    - None                 -> None
    - bool                 -> "true" / "false"
    - int/float            -> integer form when integral, else decimal string
    - str                  -> as-is
    - list/tuple/set       -> list of strings, duplicates dropped, order kept
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        f = float(value)
        if f.is_integer():
            return str(int(f))
        return str(f)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else list(value)
        out: List[str] = []
        for item in items:
            canon = canonicalize_answer_value(item)
            if isinstance(canon, str) and canon not in out:
                out.append(canon)
        return out
    raise TypeError(f"unsupported answer value type: {type(value).__name__}")


def non_empty_answers(answers: Mapping[str, Any]) -> Dict[str, AnswerValue]:
    """Filter a name->value map down to genuinely answered entries."""
    out: Dict[str, AnswerValue] = {}
    for name, value in (answers or {}).items():
        canon = canonicalize_answer_value(value)
        if not is_empty_answer(canon):
            out[str(name)] = canon
    return out


__all__ = [
    "AnswerValue",
    "AUTO_SOURCE_PLACEHOLDER",
    "is_empty_answer",
    "is_empty_auto_value",
    "canonicalize_answer_value",
    "non_empty_answers",
]
