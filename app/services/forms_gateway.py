from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.config import settings
from app.schemas.forms import FormDocument, FormRead, SubmissionRead

_LOG = logging.getLogger("app.gateway")


class GatewayError(Exception):
    """Transport failure or unexpected response from the forms API."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FormNotFoundError(GatewayError):
    pass


class FormValidationError(GatewayError):
    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message, status_code=400)
        self.errors = list(errors or [])


class FormsGateway:
    """Client of the ``/api/forms`` CRUD surface.

    Owns its ``httpx.Client`` unless one is injected; call ``open()`` before
    use and ``close()`` afterwards, or use it as a context manager.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.Client | None = None,
        timeout: float | None = None,
    ):
        self.base_url = str(base_url or settings.FORMS_API_URL or "").rstrip("/")
        self.timeout = float(timeout if timeout is not None else settings.FORMS_API_TIMEOUT_SECONDS)
        self._client = client
        self._owns_client = client is None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> "FormsGateway":
        if self._client is None:
            if not self.base_url:
                raise GatewayError("FORMS_API_URL is not set")
            self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout)
            self._owns_client = True
        return self

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
        self._client = None

    def __enter__(self) -> "FormsGateway":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, *, json: Any = None, params: dict[str, Any] | None = None) -> httpx.Response:
        if self._client is None:
            raise GatewayError("gateway is not open")
        try:
            response = self._client.request(method, f"/api/forms{path}", json=json, params=params)
        except httpx.HTTPError as exc:
            _LOG.warning("forms api %s %s failed: %s", method, path or "/", exc)
            raise GatewayError(f"forms api unreachable: {exc}") from exc

        if response.status_code == 404:
            raise FormNotFoundError("Form not found", status_code=404)
        if response.status_code == 400:
            body = _json_or_empty(response)
            raise FormValidationError(str(body.get("detail") or "Validation error"), body.get("errors"))
        if response.status_code >= 400:
            body = _json_or_empty(response)
            raise GatewayError(
                str(body.get("detail") or f"forms api returned {response.status_code}"),
                status_code=response.status_code,
            )
        return response

    def list_forms(self, search: str | None = None) -> list[FormRead]:
        params = {"search": search} if search else None
        response = self._request("GET", "", params=params)
        return [FormRead.model_validate(item) for item in response.json()]

    def get_form(self, form_id: str) -> FormRead:
        response = self._request("GET", f"/{form_id}")
        return FormRead.model_validate(response.json())

    def create_form(self, document: FormDocument) -> FormRead:
        response = self._request("POST", "", json=document.to_wire())
        return FormRead.model_validate(response.json())

    def update_form(self, form_id: str, document: FormDocument) -> FormRead:
        response = self._request("PUT", f"/{form_id}", json=document.to_wire())
        return FormRead.model_validate(response.json())

    def delete_form(self, form_id: str) -> None:
        self._request("DELETE", f"/{form_id}")

    def submit(self, form_id: str, data: dict[str, Any]) -> SubmissionRead:
        response = self._request("POST", f"/{form_id}/submit", json=_json_ready(data))
        return SubmissionRead.model_validate(response.json())

    def list_submissions(self, form_id: str) -> list[SubmissionRead]:
        response = self._request("GET", f"/{form_id}/submissions")
        return [SubmissionRead.model_validate(item) for item in response.json()]


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _json_ready(data: dict[str, Any]) -> dict[str, Any]:
    # checkbox answers are sets in the renderer
    return {
        key: sorted(value) if isinstance(value, (set, frozenset)) else value
        for key, value in data.items()
    }
