import os
import unittest

import httpx
from fastapi.testclient import TestClient

os.environ.setdefault("STORAGE_BACKEND", "memory")

from app.main import create_app
from app.schemas.forms import FormDocument
from app.services.editor_state import FormEditor
from app.services.form_storage import InMemoryFormStorage
from app.services.forms_gateway import (
    FormNotFoundError,
    FormValidationError,
    FormsGateway,
    GatewayError,
)


class GatewayAgainstAppTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryFormStorage()
        self.http = TestClient(create_app(storage=self.storage))
        self.gateway = FormsGateway("http://testserver", client=self.http).open()

    def tearDown(self):
        self.gateway.close()
        self.http.close()

    def test_save_then_load_round_trip(self):
        editor = FormEditor()
        editor.set_form(title="T", description="")
        editor.save(self.gateway)
        self.assertIsNotNone(editor.persisted_id)
        saved = editor.export_snapshot()

        loaded = FormEditor()
        loaded.load(self.gateway, editor.persisted_id)
        self.assertEqual(loaded.export_snapshot(), saved)
        self.assertEqual(loaded.persisted_id, editor.persisted_id)

    def test_round_trip_with_fields(self):
        editor = FormEditor()
        editor.set_form(title="Event signup", description="Pick your sessions")
        name = editor.add_field("text", label="Name", required=True, minLength=2)
        editor.add_field("checkbox", label="Sessions")
        editor.add_field("number", validation={"min": 1, "max": 5})
        editor.update_field(name.id, width="half")
        editor.save(self.gateway)

        loaded = FormEditor()
        loaded.load(self.gateway, editor.persisted_id)
        self.assertEqual(loaded.export_snapshot(), editor.export_snapshot())
        self.assertEqual(loaded.history, (loaded.fields,))

    def test_second_save_updates_same_record(self):
        editor = FormEditor()
        first = editor.save(self.gateway)
        editor.add_field("date")
        second = editor.save(self.gateway)
        self.assertEqual(first.id, second.id)
        self.assertEqual(len(self.gateway.list_forms()), 1)
        self.assertEqual(len(self.gateway.get_form(first.id).fields), 1)

    def test_submit_and_list_submissions(self):
        record = self.gateway.create_form(FormDocument(title="Poll"))
        submission = self.gateway.submit(record.id, {"choice": frozenset({"b", "a"}), "name": "Ann"})
        self.assertEqual(submission.data, {"choice": ["a", "b"], "name": "Ann"})
        self.assertEqual([s.id for s in self.gateway.list_submissions(record.id)], [submission.id])

    def test_list_with_search(self):
        self.gateway.create_form(FormDocument(title="Alpha"))
        self.gateway.create_form(FormDocument(title="Beta"))
        self.assertEqual([f.title for f in self.gateway.list_forms(search="alp")], ["Alpha"])

    def test_delete_then_get_is_not_found(self):
        record = self.gateway.create_form(FormDocument(title="Gone"))
        self.gateway.delete_form(record.id)
        with self.assertRaises(FormNotFoundError):
            self.gateway.get_form(record.id)
        with self.assertRaises(FormNotFoundError):
            self.gateway.delete_form(record.id)

    def test_load_unknown_form_leaves_editor_untouched(self):
        editor = FormEditor()
        editor.add_field("text")
        before = editor.fields
        with self.assertRaises(FormNotFoundError):
            editor.load(self.gateway, "missing")
        self.assertEqual(editor.fields, before)


def _gateway_with(handler) -> FormsGateway:
    client = httpx.Client(base_url="http://forms.test", transport=httpx.MockTransport(handler))
    return FormsGateway("http://forms.test", client=client).open()


class GatewayErrorMappingTests(unittest.TestCase):
    def test_validation_error_carries_errors(self):
        errors = [{"path": ["fields", 0, "type"], "message": "bad", "type": "literal_error"}]

        def handler(request):
            return httpx.Response(400, json={"detail": "Validation error", "errors": errors})

        gateway = _gateway_with(handler)
        with self.assertRaises(FormValidationError) as ctx:
            gateway.create_form(FormDocument(title="T"))
        self.assertEqual(ctx.exception.errors, errors)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_server_error_is_generic_failure(self):
        def handler(request):
            return httpx.Response(500, json={"detail": "Failed to fetch forms"})

        gateway = _gateway_with(handler)
        with self.assertRaises(GatewayError) as ctx:
            gateway.list_forms()
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertNotIsInstance(ctx.exception, FormNotFoundError)
        self.assertEqual(str(ctx.exception), "Failed to fetch forms")

    def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = _gateway_with(handler)
        with self.assertLogs("app.gateway", level="WARNING"):
            with self.assertRaises(GatewayError):
                gateway.get_form("abc")

    def test_requests_target_forms_api(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=[])

        gateway = _gateway_with(handler)
        gateway.list_forms()
        self.assertEqual(seen, [("GET", "/api/forms")])

    def test_closed_gateway_refuses_requests(self):
        gateway = FormsGateway("http://forms.test")
        self.assertFalse(gateway.is_open)
        with self.assertRaises(GatewayError):
            gateway.list_forms()

    def test_context_manager_owns_client(self):
        with FormsGateway("http://forms.test", timeout=2) as gateway:
            self.assertTrue(gateway.is_open)
        self.assertFalse(gateway.is_open)


if __name__ == "__main__":
    unittest.main()
