"""FieldKind enumeration for questionnaire field types.

Closed set of kinds. Raw type strings coming from the backend template are
mapped onto it by `FieldKind.from_raw`; anything unmapped is rejected.
"""

from __future__ import annotations

from enum import Enum


class FieldKind(str, Enum):
    TEXT = "text"
    LONG_TEXT = "long-text"
    SINGLE_CHOICE = "single-choice"
    MULTI_CHOICE = "multi-choice"

    @property
    def is_choice(self) -> bool:
        if self is FieldKind.TEXT or self is FieldKind.LONG_TEXT:
            return False
        if self is FieldKind.SINGLE_CHOICE or self is FieldKind.MULTI_CHOICE:
            return True
        raise ValueError(f"unhandled field kind: {self!r}")

    @property
    def is_multi(self) -> bool:
        return self is FieldKind.MULTI_CHOICE

    @classmethod
    def from_raw(cls, raw: str) -> "FieldKind":
        key = str(raw or "").strip().lower()
        try:
            return _RAW_KINDS[key]
        except KeyError:
            raise ValueError(f"unknown field type: {raw!r}") from None


_RAW_KINDS = {
    "text": FieldKind.TEXT,
    "input": FieldKind.TEXT,
    "date": FieldKind.TEXT,
    "long-text": FieldKind.LONG_TEXT,
    "long_text": FieldKind.LONG_TEXT,
    "textarea": FieldKind.LONG_TEXT,
    "single-choice": FieldKind.SINGLE_CHOICE,
    "radio": FieldKind.SINGLE_CHOICE,
    "select": FieldKind.SINGLE_CHOICE,
    "multi-choice": FieldKind.MULTI_CHOICE,
    "checkbox": FieldKind.MULTI_CHOICE,
    "multiselect": FieldKind.MULTI_CHOICE,
}


__all__ = ["FieldKind"]
