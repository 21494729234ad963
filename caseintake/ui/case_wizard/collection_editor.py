from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from caseintake.application.dto.case_dto import CollectionEntry, entry_model
from caseintake.domain.constants import CollectionKind
from caseintake.domain.rules.collection_rules import missing_required_fields


@dataclass(frozen=True)
class CollectionEditorState:
    kind: CollectionKind
    items: tuple[CollectionEntry, ...] = ()
    composer: Mapping[str, Any] | None = None
    missing_fields: tuple[str, ...] = ()

    @property
    def composer_open(self) -> bool:
        return self.composer is not None


@dataclass(frozen=True)
class BeginDraft:
    pass


@dataclass(frozen=True)
class UpdateDraftField:
    key: str
    value: Any


@dataclass(frozen=True)
class CommitDraft:
    pass


@dataclass(frozen=True)
class CancelDraft:
    pass


@dataclass(frozen=True)
class RemoveItem:
    index: int


@dataclass(frozen=True)
class ReplaceItems:
    items: tuple[CollectionEntry, ...]


CollectionAction = BeginDraft | UpdateDraftField | CommitDraft | CancelDraft | RemoveItem | ReplaceItems


def empty_composer(kind: CollectionKind | str) -> dict[str, Any]:
    return entry_model(kind)().model_dump()


def _update_composer(state: CollectionEditorState, key: str, value: Any) -> CollectionEditorState:
    composer = dict(state.composer) if state.composer is not None else empty_composer(state.kind)
    if key not in composer:
        raise ValueError(f"Unknown field '{key}' for {state.kind.value} entry")
    composer[key] = value
    missing = tuple(name for name in state.missing_fields if name != key)
    return replace(state, composer=composer, missing_fields=missing)


def _commit(state: CollectionEditorState) -> CollectionEditorState:
    composer = state.composer if state.composer is not None else empty_composer(state.kind)
    missing = missing_required_fields(state.kind, composer)
    if missing:
        return replace(state, missing_fields=missing)
    entry = entry_model(state.kind).model_validate({k: v for k, v in composer.items() if v is not None})
    return CollectionEditorState(kind=state.kind, items=(*state.items, entry))


def reduce_collection(state: CollectionEditorState, action: CollectionAction) -> CollectionEditorState:
    if isinstance(action, BeginDraft):
        if state.composer is not None:
            return state
        return replace(state, composer=empty_composer(state.kind), missing_fields=())
    if isinstance(action, UpdateDraftField):
        return _update_composer(state, action.key, action.value)
    if isinstance(action, CommitDraft):
        return _commit(state)
    if isinstance(action, CancelDraft):
        return replace(state, composer=None, missing_fields=())
    if isinstance(action, RemoveItem):
        if action.index < 0 or action.index >= len(state.items):
            return state
        items = state.items[: action.index] + state.items[action.index + 1 :]
        return replace(state, items=items)
    if isinstance(action, ReplaceItems):
        return replace(state, items=tuple(action.items))
    raise ValueError(f"Unsupported collection action: {action!r}")
