from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response

from app.core.deps import get_storage
from app.schemas.forms import FormCreate, FormRead, FormUpdate, SubmissionRead
from app.services.form_storage import FormStorage, StorageError

router = APIRouter()

FORM_NOT_FOUND = "Form not found"


@contextmanager
def _storage_failure(message: str):
    try:
        yield
    except StorageError:
        raise HTTPException(status_code=500, detail=message)


def _form_or_404(storage: FormStorage, form_id: str) -> FormRead:
    form = storage.get_form(form_id)
    if form is None:
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    return form


@router.get("", response_model=List[FormRead])
def list_forms(search: Optional[str] = Query(None, max_length=200), storage: FormStorage = Depends(get_storage)):
    with _storage_failure("Failed to fetch forms"):
        forms = storage.list_forms()
    needle = str(search or "").strip().lower()
    if needle:
        forms = [f for f in forms if needle in f.title.lower()]
    return forms


@router.get("/{form_id}", response_model=FormRead)
def get_form(form_id: str, storage: FormStorage = Depends(get_storage)):
    with _storage_failure("Failed to fetch form"):
        return _form_or_404(storage, form_id)


@router.post("", response_model=FormRead, status_code=201)
def create_form(payload: FormCreate, storage: FormStorage = Depends(get_storage)):
    with _storage_failure("Failed to create form"):
        return storage.create_form(payload)


@router.put("/{form_id}", response_model=FormRead)
def update_form(form_id: str, payload: FormUpdate, storage: FormStorage = Depends(get_storage)):
    with _storage_failure("Failed to update form"):
        form = storage.update_form(form_id, payload)
    if form is None:
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    return form


@router.delete("/{form_id}", status_code=204)
def delete_form(form_id: str, storage: FormStorage = Depends(get_storage)):
    with _storage_failure("Failed to delete form"):
        deleted = storage.delete_form(form_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=FORM_NOT_FOUND)
    return Response(status_code=204)


@router.post("/{form_id}/submit", response_model=SubmissionRead, status_code=201)
def submit_form(form_id: str, data: Dict[str, Any] = Body(...), storage: FormStorage = Depends(get_storage)):
    with _storage_failure("Failed to submit form"):
        _form_or_404(storage, form_id)
        return storage.create_submission(form_id, data)


@router.get("/{form_id}/submissions", response_model=List[SubmissionRead])
def list_submissions(form_id: str, storage: FormStorage = Depends(get_storage)):
    with _storage_failure("Failed to fetch submissions"):
        _form_or_404(storage, form_id)
        return storage.list_submissions(form_id)
