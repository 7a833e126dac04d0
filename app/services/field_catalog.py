from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from app.schemas.forms import FIELD_TYPES, OPTION_FIELD_TYPES

_BASE_DEFAULTS: dict[str, Any] = {
    "required": False,
    "disabled": False,
    "hidden": False,
    "size": "medium",
    "width": "full",
}


def _default_options() -> list[dict[str, str]]:
    return [{"label": f"Option {n}", "value": f"option{n}"} for n in (1, 2, 3)]


@dataclass(frozen=True)
class CatalogEntry:
    type: str
    label: str
    description: str
    icon: str
    category: str
    defaults: dict[str, Any] = field(default_factory=dict)


def _entry(
    type_: str, palette_label: str, description: str, icon: str, category: str, **defaults: Any
) -> CatalogEntry:
    merged = dict(_BASE_DEFAULTS)
    merged.update(defaults)
    if type_ in OPTION_FIELD_TYPES:
        merged["options"] = _default_options()
    return CatalogEntry(
        type=type_, label=palette_label, description=description, icon=icon, category=category, defaults=merged
    )


BASIC_INPUTS = "Basic Inputs"
CHOICE_INPUTS = "Choice Inputs"
DATE_AND_TIME = "Date & Time"

_CATALOG: dict[str, CatalogEntry] = {
    e.type: e
    for e in (
        _entry("text", "Text Input", "Single line text field", "fa-align-left", BASIC_INPUTS,
               label="Text Input", placeholder="Enter text..."),
        _entry("number", "Number", "Numeric input field", "fa-hashtag", BASIC_INPUTS,
               label="Number Input", placeholder="Enter number..."),
        _entry("email", "Email", "Email input field", "fa-envelope", BASIC_INPUTS,
               label="Email Address", placeholder="Enter email address..."),
        _entry("textarea", "Textarea", "Multi-line text field", "fa-align-justify", BASIC_INPUTS,
               label="Message", placeholder="Enter your message..."),
        _entry("select", "Dropdown", "Select from list", "fa-chevron-down", CHOICE_INPUTS,
               label="Select Option", placeholder="Choose an option..."),
        _entry("radio", "Radio Group", "Single choice selection", "fa-dot-circle", CHOICE_INPUTS,
               label="Choose One"),
        _entry("checkbox", "Checkbox Group", "Multiple selections", "fa-check-square", CHOICE_INPUTS,
               label="Select All That Apply"),
        _entry("date", "Date Picker", "Select date", "fa-calendar", DATE_AND_TIME,
               label="Date", placeholder="Select date..."),
        _entry("time", "Time Picker", "Select time", "fa-clock", DATE_AND_TIME,
               label="Time", placeholder="Select time..."),
    )
}


def defaults_for(field_type: str) -> dict[str, Any]:
    """Default attributes (everything but ``id``) for a new field of ``field_type``.

    Returns a fresh copy; raises ``KeyError`` for a type outside the closed set.
    """
    entry = _CATALOG[field_type]
    defaults = copy.deepcopy(entry.defaults)
    defaults["type"] = entry.type
    return defaults


def supports_options(field_type: str) -> bool:
    return field_type in OPTION_FIELD_TYPES


def catalog_entries() -> list[CatalogEntry]:
    return list(_CATALOG.values())


def palette_categories() -> list[tuple[str, list[str]]]:
    grouped: dict[str, list[str]] = {}
    for entry in _CATALOG.values():
        grouped.setdefault(entry.category, []).append(entry.type)
    return list(grouped.items())


def next_option(options) -> dict[str, str]:
    n = len(options or ()) + 1
    return {"label": f"Option {n}", "value": f"option{n}"}
