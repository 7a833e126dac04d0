from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple, Union, get_args

FieldType = Literal["text", "number", "email", "textarea", "select", "radio", "checkbox", "date", "time"]
FieldSize = Literal["small", "medium", "large"]
FieldWidth = Literal["full", "half", "quarter"]

FIELD_TYPES: Tuple[str, ...] = get_args(FieldType)
OPTION_FIELD_TYPES = frozenset({"select", "radio", "checkbox"})

# camelCase on the wire, snake_case in Python; both accepted on input.
_WIRE = dict(alias_generator=to_camel, populate_by_name=True)


def _ensure_unique_ids(fields: Iterable["FormField"]) -> None:
    seen = set()
    for field in fields:
        if field.id in seen:
            raise ValueError(f"duplicate field id: {field.id}")
        seen.add(field.id)


class FieldOption(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str
    value: str


class FieldValidation(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    pattern: Optional[str] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None


class FormField(BaseModel):
    """One input definition. Frozen: edits go through ``model_validate`` on a merged dict."""

    model_config = ConfigDict(frozen=True, extra="forbid", **_WIRE)

    id: str = Field(min_length=1)
    type: FieldType
    label: str
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    required: bool = False
    disabled: bool = False
    hidden: bool = False
    min_length: Optional[int] = Field(default=None, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    size: FieldSize = "medium"
    width: FieldWidth = "full"
    css_classes: Optional[str] = None
    options: Optional[Tuple[FieldOption, ...]] = None
    validation: Optional[FieldValidation] = None

    @model_validator(mode="after")
    def _options_for_choice_types(self):
        if self.type in OPTION_FIELD_TYPES and self.options is None:
            raise ValueError(f"options are required for {self.type} fields")
        return self

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FormDocument(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str
    description: str = ""
    fields: Tuple[FormField, ...] = ()

    @model_validator(mode="after")
    def _unique_field_ids(self):
        _ensure_unique_ids(self.fields)
        return self

    def to_wire(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "fields": [f.to_wire() for f in self.fields],
        }


class FormCreate(BaseModel):
    title: str
    description: Optional[str] = None
    fields: List[FormField] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_field_ids(self):
        _ensure_unique_ids(self.fields)
        return self


class FormUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[FormField]] = None

    @model_validator(mode="after")
    def _unique_field_ids(self):
        if self.fields is not None:
            _ensure_unique_ids(self.fields)
        return self


class FormRead(BaseModel):
    model_config = ConfigDict(**_WIRE)

    id: str
    title: str
    description: Optional[str] = None
    fields: List[FormField] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_document(self) -> FormDocument:
        return FormDocument(title=self.title, description=self.description or "", fields=tuple(self.fields))


class SubmissionRead(BaseModel):
    model_config = ConfigDict(**_WIRE)

    id: str
    form_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
    submitted_at: Optional[str] = None
