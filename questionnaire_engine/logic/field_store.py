"""Field Value Store: the authoritative answer state of one session.

Values live in three layers and are composed on read:

    in-session edit  >  persisted manual answer  >  auto-source value  >  unset

Because the layers are kept apart, auto-source data that arrives late can
never overwrite an edit or a recovered answer; it only shows through where
both higher layers are absent. An in-session edit that clears a field is
still an edit and masks the lower layers.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from questionnaire_engine.errors import ReadOnlyError
from questionnaire_engine.logic.answer_values import (
    AnswerValue,
    canonicalize_answer_value,
    is_empty_answer,
    is_empty_auto_value,
)

logger = logging.getLogger(__name__)

_MISSING = object()

ChangeListener = Callable[[List[str]], None]


def effective_value(
    name: str,
    edits: Mapping[str, AnswerValue],
    persisted: Mapping[str, AnswerValue],
    auto: Mapping[str, AnswerValue],
) -> AnswerValue:
    """Compose a field's value from its layers by precedence."""
    edit = edits.get(name, _MISSING)
    if edit is not _MISSING:
        return edit  # type: ignore[return-value]
    stored = persisted.get(name)
    if not is_empty_answer(stored):
        return stored
    auto_value = auto.get(name)
    if not is_empty_auto_value(auto_value):
        return auto_value
    return None


class FieldValueStore:
    def __init__(self, known_names: Optional[Iterable[str]] = None) -> None:
        self._edits: Dict[str, AnswerValue] = {}
        self._persisted: Dict[str, AnswerValue] = {}
        self._auto: Dict[str, AnswerValue] = {}
        self._known: Optional[set[str]] = set(known_names) if known_names is not None else None
        self._listeners: List[ChangeListener] = []
        self._read_only = False
        self.version = 0

    # -- reads -----------------------------------------------------------

    def get(self, name: str) -> AnswerValue:
        return effective_value(name, self._edits, self._persisted, self._auto)

    def names(self) -> List[str]:
        seen: Dict[str, None] = {}
        for layer in (self._auto, self._persisted, self._edits):
            for name in layer:
                seen.setdefault(name, None)
        return list(seen)

    def snapshot(self) -> Dict[str, AnswerValue]:
        """Effective value of every answered field."""
        out: Dict[str, AnswerValue] = {}
        for name in self.names():
            value = self.get(name)
            if not is_empty_answer(value):
                out[name] = list(value) if isinstance(value, list) else value
        return out

    def edits(self) -> Dict[str, AnswerValue]:
        return dict(self._edits)

    def persisted(self) -> Dict[str, AnswerValue]:
        return dict(self._persisted)

    def auto_values(self) -> Dict[str, AnswerValue]:
        return dict(self._auto)

    def has_manual_value(self, name: str) -> bool:
        return name in self._edits or not is_empty_answer(self._persisted.get(name))

    @property
    def read_only(self) -> bool:
        return self._read_only

    # -- writes ----------------------------------------------------------

    def set(self, name: str, value: Any) -> None:
        self.set_many({name: value})

    def set_many(self, patch: Mapping[str, Any]) -> None:
        """Apply in-session edits in the order given."""
        self._ensure_writable()
        changed: List[str] = []
        for name, raw in patch.items():
            name = str(name)
            value = canonicalize_answer_value(raw)
            if self._known is not None and name not in self._known:
                logger.warning("field_store_unknown_field name=%s", name)
            before = self.get(name)
            self._edits[name] = value
            if before != value:
                changed.append(name)
        self._notify(changed)

    def hydrate_persisted(self, answers: Mapping[str, Any]) -> int:
        """Load previously persisted manual answers; empty values are skipped.

        Names already edited in this session keep their edit.
        """
        self._ensure_writable()
        changed: List[str] = []
        loaded = 0
        for name, raw in (answers or {}).items():
            name = str(name)
            value = canonicalize_answer_value(raw)
            if is_empty_answer(value):
                continue
            before = self.get(name)
            self._persisted[name] = value
            loaded += 1
            if before != self.get(name):
                changed.append(name)
        self._notify(changed)
        return loaded

    def apply_auto_source(self, values: Mapping[str, Any]) -> List[str]:
        """Merge auto-source values; returns names where the value shows through."""
        self._ensure_writable()
        applied: List[str] = []
        for name, raw in (values or {}).items():
            name = str(name)
            value = canonicalize_answer_value(raw)
            if is_empty_auto_value(value):
                continue
            self._auto[name] = value
            if self.has_manual_value(name):
                logger.info("field_store_auto_source_masked name=%s", name)
                continue
            applied.append(name)
        self._notify(applied)
        return applied

    def make_read_only(self) -> None:
        self._read_only = True

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _ensure_writable(self) -> None:
        if self._read_only:
            raise ReadOnlyError("questionnaire has been submitted and is read-only")

    def _notify(self, changed: List[str]) -> None:
        self.version += 1
        if not changed:
            return
        for listener in list(self._listeners):
            listener(list(changed))


__all__ = ["FieldValueStore", "effective_value"]
