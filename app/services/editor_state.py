from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

from app.core.config import settings
from app.schemas.forms import FieldOption, FormDocument, FormField, FormRead
from app.services import field_catalog

if TYPE_CHECKING:
    from app.services.forms_gateway import FormsGateway

_LOG = logging.getLogger("app.editor")

DEFAULT_TITLE = "New Form"
DEFAULT_DESCRIPTION = "Please fill out this form."
COPY_SUFFIX = " (Copy)"

Snapshot = tuple[FormField, ...]

# wire alias or python name -> python name
_FIELD_KEYS: dict[str, str] = {}
for _name, _info in FormField.model_fields.items():
    _FIELD_KEYS[_name] = _name
    if _info.alias:
        _FIELD_KEYS[_info.alias] = _name


def generate_field_id() -> str:
    return uuid4().hex[:9]


def _normalize_keys(updates: dict[str, Any]) -> dict[str, Any]:
    return {_FIELD_KEYS.get(key, key): value for key, value in updates.items()}


def _check_option_index(options, index: int) -> None:
    if not 0 <= index < len(options):
        raise IndexError(f"option index {index} out of range for {len(options)} options")


class FormEditor:
    """Editing state for one form document.

    Holds the ordered field list, a bounded linear undo/redo history of
    field-list snapshots and the selected-field pointer. Every structural
    mutation commits a snapshot so that ``history[history_index] == fields``
    holds after each call.
    """

    def __init__(
        self,
        document: FormDocument | None = None,
        *,
        history_limit: int | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        limit = settings.EDITOR_HISTORY_LIMIT if history_limit is None else history_limit
        self.history_limit = max(1, int(limit))
        self._new_id = id_factory or generate_field_id
        self.title = DEFAULT_TITLE
        self.description = DEFAULT_DESCRIPTION
        self.fields: Snapshot = ()
        self.selected_field_id: str | None = None
        self.persisted_id: str | None = None
        self._history: list[Snapshot] = [()]
        self._history_index = 0
        if document is not None:
            self.load_document(document)

    @property
    def history(self) -> tuple[Snapshot, ...]:
        return tuple(self._history)

    @property
    def history_index(self) -> int:
        return self._history_index

    @property
    def can_undo(self) -> bool:
        return self._history_index > 0

    @property
    def can_redo(self) -> bool:
        return self._history_index < len(self._history) - 1

    @property
    def selected_field(self) -> FormField | None:
        if self.selected_field_id is None:
            return None
        return self.get_field(self.selected_field_id)

    def get_field(self, field_id: str) -> FormField | None:
        index = self._index_of(field_id)
        return None if index is None else self.fields[index]

    def _index_of(self, field_id: str) -> int | None:
        for index, field in enumerate(self.fields):
            if field.id == field_id:
                return index
        return None

    def _fresh_id(self) -> str:
        taken = {f.id for f in self.fields}
        while True:
            candidate = self._new_id()
            if candidate not in taken:
                return candidate

    def _commit(self, fields: Snapshot) -> None:
        # drop the redo branch, append, then evict the oldest over the cap
        del self._history[self._history_index + 1 :]
        self._history.append(fields)
        overflow = len(self._history) - self.history_limit
        if overflow > 0:
            del self._history[:overflow]
        self._history_index = len(self._history) - 1
        self.fields = fields

    def set_form(self, title: str | None = None, description: str | None = None) -> None:
        if title is not None:
            self.title = title
        if description is not None:
            self.description = description

    def add_field(self, field_type: str, **overrides: Any) -> FormField:
        attrs = field_catalog.defaults_for(field_type)
        attrs.update(_normalize_keys(overrides))
        attrs["type"] = field_type
        attrs["id"] = self._fresh_id()
        field = FormField.model_validate(attrs)
        self._commit(self.fields + (field,))
        self.selected_field_id = field.id
        return field

    def update_field(self, field_id: str, updates: dict[str, Any] | None = None, **changes: Any) -> FormField | None:
        patch = _normalize_keys({**(updates or {}), **changes})
        patch.pop("id", None)
        updated: FormField | None = None
        new_fields = []
        for field in self.fields:
            if field.id == field_id:
                updated = FormField.model_validate({**field.model_dump(), **patch, "id": field.id})
                new_fields.append(updated)
            else:
                new_fields.append(field)
        if updated is None:
            _LOG.debug("update_field ignored unknown id=%s", field_id)
        self._commit(tuple(new_fields))
        return updated

    def delete_field(self, field_id: str) -> bool:
        remaining = tuple(f for f in self.fields if f.id != field_id)
        removed = len(remaining) != len(self.fields)
        self._commit(remaining)
        if self.selected_field_id == field_id:
            self.selected_field_id = None
        return removed

    def duplicate_field(self, field_id: str) -> FormField | None:
        index = self._index_of(field_id)
        if index is None:
            _LOG.debug("duplicate_field ignored unknown id=%s", field_id)
            return None
        original = self.fields[index]
        clone = original.model_copy(update={"id": self._fresh_id(), "label": f"{original.label}{COPY_SUFFIX}"})
        self._commit(self.fields[: index + 1] + (clone,) + self.fields[index + 1 :])
        self.selected_field_id = clone.id
        return clone

    def reorder_fields(self, from_index: int, to_index: int) -> None:
        size = len(self.fields)
        for index in (from_index, to_index):
            if not 0 <= index < size:
                raise IndexError(f"field index {index} out of range for {size} fields")
        items = list(self.fields)
        moved = items.pop(from_index)
        items.insert(to_index, moved)
        self._commit(tuple(items))

    def select_field(self, field_id: str | None) -> None:
        self.selected_field_id = field_id

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self._history_index -= 1
        self.fields = self._history[self._history_index]
        self.selected_field_id = None
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self._history_index += 1
        self.fields = self._history[self._history_index]
        self.selected_field_id = None
        return True

    # options editor for select / radio / checkbox

    def add_option(self, field_id: str) -> FormField | None:
        field = self.get_field(field_id)
        if field is None:
            return None
        options = list(field.options or ())
        options.append(FieldOption(**field_catalog.next_option(options)))
        return self.update_field(field_id, options=options)

    def update_option(self, field_id: str, index: int, **changes: str) -> FormField | None:
        field = self.get_field(field_id)
        if field is None or not field.options:
            return None
        options = list(field.options)
        _check_option_index(options, index)
        options[index] = FieldOption(**{**options[index].model_dump(), **changes})
        return self.update_field(field_id, options=options)

    def remove_option(self, field_id: str, index: int) -> FormField | None:
        field = self.get_field(field_id)
        if field is None or not field.options:
            return None
        _check_option_index(field.options, index)
        options = [o for i, o in enumerate(field.options) if i != index]
        return self.update_field(field_id, options=options)

    # documents

    def export_snapshot(self) -> FormDocument:
        return FormDocument(title=self.title, description=self.description, fields=self.fields)

    def export_json(self) -> tuple[str, str]:
        """File name and JSON text of the downloadable form artifact."""
        document = self.export_snapshot()
        filename = re.sub(r"\s+", "-", document.title.lower()) + ".json"
        return filename, json.dumps(document.to_wire(), indent=2, ensure_ascii=False)

    def load_document(self, document: FormDocument, persisted_id: str | None = None) -> None:
        fields = tuple(document.fields)
        self.title = document.title
        self.description = document.description
        self.fields = fields
        self._history = [fields]
        self._history_index = 0
        self.selected_field_id = None
        self.persisted_id = persisted_id

    def save(self, gateway: "FormsGateway") -> FormRead:
        document = self.export_snapshot()
        if self.persisted_id:
            record = gateway.update_form(self.persisted_id, document)
        else:
            record = gateway.create_form(document)
        self.persisted_id = record.id
        _LOG.info("form saved id=%s fields=%s", record.id, len(document.fields))
        return record

    def load(self, gateway: "FormsGateway", form_id: str) -> FormRead:
        record = gateway.get_form(form_id)
        self.load_document(record.to_document(), persisted_id=record.id)
        return record
