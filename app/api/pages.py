import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse

from app.core.deps import get_storage
from app.schemas.forms import FormRead
from app.services.form_storage import FormStorage, StorageError
from app.services.renderer import render_form_html

_LOG = logging.getLogger("app.pages")

router = APIRouter()

SUBMITTED_NOTICE = "Form submitted successfully! Your response has been recorded."


def _page_form(storage: FormStorage, form_id: str) -> FormRead:
    try:
        form = storage.get_form(form_id)
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to fetch form")
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def _page_url(form: FormRead) -> str:
    return f"/forms/{form.id}"


def _answers(form: FormRead, items) -> Dict[str, Any]:
    # checkbox groups always submit a list, even with a single box ticked
    multi = {f.id for f in form.fields if f.type == "checkbox"}
    data: Dict[str, Any] = {}
    for key, value in items:
        if key in multi:
            data.setdefault(key, []).append(str(value))
        else:
            data[key] = str(value)
    return data


@router.get("/forms/{form_id}", response_class=HTMLResponse, include_in_schema=False)
def fill_out_page(form_id: str, storage: FormStorage = Depends(get_storage)):
    form = _page_form(storage, form_id)
    return HTMLResponse(render_form_html(form.to_document(), submit_url=_page_url(form)))


@router.post("/forms/{form_id}", response_class=HTMLResponse, status_code=201, include_in_schema=False)
async def submit_page(form_id: str, request: Request, storage: FormStorage = Depends(get_storage)):
    form = _page_form(storage, form_id)
    payload = await request.form()
    data = _answers(form, payload.multi_items())
    try:
        submission = storage.create_submission(form.id, data)
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to submit form")
    _LOG.info("page submission stored form_id=%s submission_id=%s", form.id, submission.id)
    html = render_form_html(form.to_document(), submit_url=_page_url(form), notice=SUBMITTED_NOTICE)
    return HTMLResponse(html, status_code=201)
