from __future__ import annotations

import itertools
import logging
import uuid
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings
from app.db.session import Database
from app.models.common import utcnow
from app.models.form import Form
from app.models.form_submission import FormSubmission
from app.schemas.forms import FormCreate, FormRead, FormUpdate, SubmissionRead

_LOG = logging.getLogger("app.storage")


class StorageError(Exception):
    """Backend failure (connection loss, constraint, driver error)."""


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _fields_payload(fields) -> list[dict[str, Any]]:
    return [f.to_wire() for f in fields]


class FormStorage(Protocol):
    backend: str

    def list_forms(self) -> list[FormRead]:
        ...

    def get_form(self, form_id: str) -> FormRead | None:
        ...

    def create_form(self, payload: FormCreate) -> FormRead:
        ...

    def update_form(self, form_id: str, payload: FormUpdate) -> FormRead | None:
        ...

    def delete_form(self, form_id: str) -> bool:
        ...

    def list_submissions(self, form_id: str) -> list[SubmissionRead]:
        ...

    def create_submission(self, form_id: str, data: dict[str, Any]) -> SubmissionRead:
        ...

    def close(self) -> None:
        ...


class InMemoryFormStorage:
    backend = "memory"

    def __init__(self):
        self._forms: dict[str, dict[str, Any]] = {}
        self._submissions: dict[str, dict[str, Any]] = {}
        self._lock = Lock()
        self._seq = itertools.count()

    @staticmethod
    def _form_read(row: dict[str, Any]) -> FormRead:
        return FormRead(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            fields=row["fields"],
            created_at=_iso(row["created_at"]),
            updated_at=_iso(row["updated_at"]),
        )

    @staticmethod
    def _submission_read(row: dict[str, Any]) -> SubmissionRead:
        return SubmissionRead(
            id=row["id"],
            form_id=row["form_id"],
            data=row["data"],
            submitted_at=_iso(row["submitted_at"]),
        )

    def list_forms(self) -> list[FormRead]:
        with self._lock:
            rows = sorted(self._forms.values(), key=lambda r: (r["created_at"], r["seq"]), reverse=True)
            return [self._form_read(r) for r in rows]

    def get_form(self, form_id: str) -> FormRead | None:
        with self._lock:
            row = self._forms.get(form_id)
            return self._form_read(row) if row else None

    def create_form(self, payload: FormCreate) -> FormRead:
        now = utcnow()
        row = {
            "id": str(uuid.uuid4()),
            "title": payload.title,
            "description": payload.description or None,
            "fields": _fields_payload(payload.fields),
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            row["seq"] = next(self._seq)
            self._forms[row["id"]] = row
            return self._form_read(row)

    def update_form(self, form_id: str, payload: FormUpdate) -> FormRead | None:
        changes = payload.model_dump(exclude_unset=True)
        with self._lock:
            existing = self._forms.get(form_id)
            if existing is None:
                return None
            row = dict(existing)
            if "title" in changes and payload.title is not None:
                row["title"] = payload.title
            if "description" in changes:
                row["description"] = payload.description or None
            if payload.fields is not None:
                row["fields"] = _fields_payload(payload.fields)
            row["updated_at"] = utcnow()
            self._forms[form_id] = row
            return self._form_read(row)

    def delete_form(self, form_id: str) -> bool:
        with self._lock:
            if self._forms.pop(form_id, None) is None:
                return False
            for sub_id in [k for k, v in self._submissions.items() if v["form_id"] == form_id]:
                del self._submissions[sub_id]
            return True

    def list_submissions(self, form_id: str) -> list[SubmissionRead]:
        with self._lock:
            rows = [r for r in self._submissions.values() if r["form_id"] == form_id]
            rows.sort(key=lambda r: (r["submitted_at"], r["seq"]), reverse=True)
            return [self._submission_read(r) for r in rows]

    def create_submission(self, form_id: str, data: dict[str, Any]) -> SubmissionRead:
        row = {
            "id": str(uuid.uuid4()),
            "form_id": form_id,
            "data": dict(data),
            "submitted_at": utcnow(),
        }
        with self._lock:
            row["seq"] = next(self._seq)
            self._submissions[row["id"]] = row
            return self._submission_read(row)

    def close(self) -> None:
        with self._lock:
            self._forms.clear()
            self._submissions.clear()


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class DatabaseFormStorage:
    backend = "database"

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _form_read(row: Form) -> FormRead:
        return FormRead(
            id=str(row.id),
            title=row.title,
            description=row.description,
            fields=list(row.fields or []),
            created_at=_iso(row.created_at),
            updated_at=_iso(row.updated_at),
        )

    @staticmethod
    def _submission_read(row: FormSubmission) -> SubmissionRead:
        return SubmissionRead(
            id=str(row.id),
            form_id=str(row.form_id),
            data=dict(row.data or {}),
            submitted_at=_iso(row.submitted_at),
        )

    def _run(self, action: str, fn):
        try:
            with self.database.session() as db:
                return fn(db)
        except SQLAlchemyError as exc:
            _LOG.exception("storage_%s_failed", action)
            raise StorageError(f"{action} failed") from exc

    def list_forms(self) -> list[FormRead]:
        def _list(db):
            rows = db.scalars(select(Form).order_by(Form.created_at.desc())).all()
            return [self._form_read(r) for r in rows]

        return self._run("list_forms", _list)

    def get_form(self, form_id: str) -> FormRead | None:
        pk = _parse_uuid(form_id)
        if pk is None:
            return None

        def _get(db):
            row = db.get(Form, pk)
            return self._form_read(row) if row else None

        return self._run("get_form", _get)

    def create_form(self, payload: FormCreate) -> FormRead:
        def _create(db):
            row = Form(
                title=payload.title,
                description=payload.description or None,
                fields=_fields_payload(payload.fields),
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return self._form_read(row)

        return self._run("create_form", _create)

    def update_form(self, form_id: str, payload: FormUpdate) -> FormRead | None:
        pk = _parse_uuid(form_id)
        if pk is None:
            return None
        changes = payload.model_dump(exclude_unset=True)

        def _update(db):
            row = db.get(Form, pk)
            if row is None:
                return None
            if "title" in changes and payload.title is not None:
                row.title = payload.title
            if "description" in changes:
                row.description = payload.description or None
            if payload.fields is not None:
                row.fields = _fields_payload(payload.fields)
            row.updated_at = utcnow()
            db.add(row)
            db.commit()
            db.refresh(row)
            return self._form_read(row)

        return self._run("update_form", _update)

    def delete_form(self, form_id: str) -> bool:
        pk = _parse_uuid(form_id)
        if pk is None:
            return False

        def _delete(db):
            row = db.get(Form, pk)
            if row is None:
                return False
            db.execute(delete(FormSubmission).where(FormSubmission.form_id == pk))
            db.delete(row)
            db.commit()
            return True

        return self._run("delete_form", _delete)

    def list_submissions(self, form_id: str) -> list[SubmissionRead]:
        pk = _parse_uuid(form_id)
        if pk is None:
            return []

        def _list(db):
            rows = db.scalars(
                select(FormSubmission)
                .where(FormSubmission.form_id == pk)
                .order_by(FormSubmission.submitted_at.desc())
            ).all()
            return [self._submission_read(r) for r in rows]

        return self._run("list_submissions", _list)

    def create_submission(self, form_id: str, data: dict[str, Any]) -> SubmissionRead:
        pk = _parse_uuid(form_id)
        if pk is None:
            raise StorageError("create_submission failed: malformed form id")

        def _create(db):
            row = FormSubmission(form_id=pk, data=dict(data))
            db.add(row)
            db.commit()
            db.refresh(row)
            return self._submission_read(row)

        return self._run("create_submission", _create)

    def close(self) -> None:
        self.database.close()


def build_storage(config: Settings, *, database: Database | None = None) -> FormStorage:
    backend = config.storage_backend
    if backend == "memory":
        return InMemoryFormStorage()
    if backend == "database":
        db = database or Database(config.DATABASE_URL, echo=config.DATABASE_ECHO)
        db.open()
        return DatabaseFormStorage(db)
    raise ValueError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND!r}")
