from __future__ import annotations

from dataclasses import dataclass, field as dc_field, replace
from html import escape
from typing import Any, Callable, Iterable

from app.schemas.forms import FormDocument, FormField

ChangeCallback = Callable[[Any], None]

SIZE_CLASSES = {
    "small": "text-sm py-1.5",
    "medium": "py-2",
    "large": "text-lg py-3",
}

WIDTH_CLASSES = {
    "full": "w-full",
    "half": "w-1/2",
    "quarter": "w-1/4",
}


@dataclass(frozen=True)
class ControlOption:
    label: str
    value: str
    selected: bool = False


@dataclass
class Control:
    """Presentation of one field, bound to its current value and change callback."""

    field: FormField
    kind: str
    value: Any
    css_class: str
    wrapper_class: str
    input_type: str | None = None
    attrs: dict[str, Any] = dc_field(default_factory=dict)
    options: list[ControlOption] = dc_field(default_factory=list)
    on_change: ChangeCallback | None = None

    @property
    def dom_id(self) -> str:
        return f"field-{self.field.id}"

    def change(self, value: Any) -> None:
        if self.field.disabled:
            return
        if self.kind == "checkbox_group":
            value = frozenset(value or ())
        self.value = value
        if self.options:
            chosen = value if self.kind == "checkbox_group" else {value}
            self.options = [replace(o, selected=o.value in chosen) for o in self.options]
        if self.on_change is not None:
            self.on_change(value)

    def toggle(self, option_value: str, checked: bool) -> frozenset[str]:
        if self.kind != "checkbox_group":
            raise TypeError(f"toggle is only defined for checkbox fields, not {self.field.type}")
        current = frozenset(self.value)
        if self.field.disabled:
            return current
        updated = current | {option_value} if checked else current - {option_value}
        self.change(updated)
        return updated


def _classes(*parts: str | None) -> str:
    return " ".join(p for p in parts if p)


def _scalar(value: Any) -> Any:
    return "" if value is None else value


def _selected_set(value: Any) -> frozenset[str]:
    if value is None or isinstance(value, str):
        return frozenset()
    return frozenset(str(v) for v in value)


def _base(field: FormField, kind: str, value: Any, on_change: ChangeCallback | None, **kwargs) -> Control:
    width = WIDTH_CLASSES.get(field.width, WIDTH_CLASSES["full"])
    return Control(
        field=field,
        kind=kind,
        value=value,
        css_class=_classes(SIZE_CLASSES.get(field.size, SIZE_CLASSES["medium"]), width, field.css_classes),
        wrapper_class=width,
        on_change=on_change,
        **kwargs,
    )


def _input(input_type: str):
    def build(field: FormField, value: Any, on_change: ChangeCallback | None) -> Control:
        attrs: dict[str, Any] = {}
        if field.placeholder and input_type not in ("date", "time"):
            attrs["placeholder"] = field.placeholder
        if input_type == "number" and field.validation is not None:
            if field.validation.min is not None:
                attrs["min"] = field.validation.min
            if field.validation.max is not None:
                attrs["max"] = field.validation.max
        if input_type in ("text", "email") and field.min_length is not None:
            attrs["minlength"] = field.min_length
        if input_type in ("text", "email") and field.max_length is not None:
            attrs["maxlength"] = field.max_length
        if field.validation is not None and field.validation.pattern and input_type in ("text", "email"):
            attrs["pattern"] = field.validation.pattern
        return _base(field, "input", _scalar(value), on_change, input_type=input_type, attrs=attrs)

    return build


def _textarea(field: FormField, value: Any, on_change: ChangeCallback | None) -> Control:
    attrs: dict[str, Any] = {"rows": 4}
    if field.placeholder:
        attrs["placeholder"] = field.placeholder
    if field.min_length is not None:
        attrs["minlength"] = field.min_length
    if field.max_length is not None:
        attrs["maxlength"] = field.max_length
    return _base(field, "textarea", _scalar(value), on_change, attrs=attrs)


def _choice(kind: str):
    def build(field: FormField, value: Any, on_change: ChangeCallback | None) -> Control:
        if kind == "checkbox_group":
            current: Any = _selected_set(value)
            options = [ControlOption(o.label, o.value, o.value in current) for o in field.options or ()]
        else:
            current = _scalar(value)
            options = [ControlOption(o.label, o.value, o.value == current) for o in field.options or ()]
        attrs = {"placeholder": field.placeholder} if kind == "select" and field.placeholder else {}
        return _base(field, kind, current, on_change, attrs=attrs, options=options)

    return build


_RENDERERS = {
    "text": _input("text"),
    "number": _input("number"),
    "email": _input("email"),
    "textarea": _textarea,
    "select": _choice("select"),
    "radio": _choice("radio_group"),
    "checkbox": _choice("checkbox_group"),
    "date": _input("date"),
    "time": _input("time"),
}


def render(
    field: FormField,
    value: Any = None,
    on_change: ChangeCallback | None = None,
    *,
    editing: bool = False,
) -> Control | None:
    """Build the control for ``field``.

    Hidden fields yield ``None`` in the fill-out view but still render in the
    editing canvas so they can be configured.
    """
    if field.hidden and not editing:
        return None
    return _RENDERERS[field.type](field, value, on_change)


def _attr_text(attrs: dict[str, Any]) -> str:
    parts = []
    for key, value in attrs.items():
        if value is True:
            parts.append(key)
        elif value is not None and value is not False:
            parts.append(f'{key}="{escape(str(value))}"')
    return (" " + " ".join(parts)) if parts else ""


def _control_html(control: Control) -> str:
    field = control.field
    common = {"name": field.id, "disabled": field.disabled, "required": field.required}
    if control.kind == "input":
        attrs = {"type": control.input_type, "id": control.dom_id, "class": control.css_class}
        attrs.update(common)
        attrs.update(control.attrs)
        attrs["value"] = str(control.value)
        return f"<input{_attr_text(attrs)}>"
    if control.kind == "textarea":
        attrs = {"id": control.dom_id, "class": control.css_class}
        attrs.update(common)
        attrs.update(control.attrs)
        return f"<textarea{_attr_text(attrs)}>{escape(str(control.value))}</textarea>"
    if control.kind == "select":
        attrs = {"id": control.dom_id, "class": control.css_class}
        attrs.update(common)
        items = []
        placeholder = control.attrs.get("placeholder")
        if placeholder:
            items.append(f'<option value=""{_attr_text({"selected": not control.value})}>{escape(placeholder)}</option>')
        for option in control.options:
            items.append(
                f"<option{_attr_text({'value': option.value, 'selected': option.selected})}>{escape(option.label)}</option>"
            )
        return f"<select{_attr_text(attrs)}>{''.join(items)}</select>"

    input_type = "radio" if control.kind == "radio_group" else "checkbox"
    items = []
    for index, option in enumerate(control.options):
        option_id = f"{control.dom_id}-{index}"
        attrs = {
            "type": input_type,
            "id": option_id,
            "name": field.id,
            "value": option.value,
            "checked": option.selected,
            "disabled": field.disabled,
        }
        items.append(
            f'<div class="flex items-center space-x-2"><input{_attr_text(attrs)}>'
            f'<label for="{escape(option_id)}">{escape(option.label)}</label></div>'
        )
    return f'<div class="space-y-2 {escape(control.css_class)}">{"".join(items)}</div>'


def render_html(control: Control) -> str:
    field = control.field
    marker = '<span class="required">*</span>' if field.required else ""
    help_text = f'<p class="help-text">{escape(field.help_text)}</p>' if field.help_text else ""
    return (
        f'<div class="{escape(control.wrapper_class)}" data-field-id="{escape(field.id)}">'
        f'<label for="{escape(control.dom_id)}">{escape(field.label)}{marker}</label>'
        f"{_control_html(control)}{help_text}</div>"
    )


def render_fields(
    fields: Iterable[FormField],
    values: dict[str, Any] | None = None,
    *,
    editing: bool = False,
) -> list[Control]:
    values = values or {}
    controls = []
    for field in fields:
        control = render(field, values.get(field.id), editing=editing)
        if control is not None:
            controls.append(control)
    return controls


def render_form_html(
    document: FormDocument,
    values: dict[str, Any] | None = None,
    *,
    submit_url: str | None = None,
    notice: str | None = None,
    editing: bool = False,
) -> str:
    body = "".join(render_html(c) for c in render_fields(document.fields, values, editing=editing))
    description = f"<p>{escape(document.description)}</p>" if document.description else ""
    banner = f'<p class="notice" role="status">{escape(notice)}</p>' if notice else ""
    form_attrs = _attr_text({"class": "space-y-6", "method": "post" if submit_url else None, "action": submit_url})
    return (
        "<!DOCTYPE html>"
        f'<html><head><meta charset="utf-8"><title>{escape(document.title)}</title></head>'
        f"<body><h1>{escape(document.title)}</h1>{description}{banner}"
        f'<form{form_attrs}>{body}<button type="submit">Submit</button></form></body></html>'
    )
