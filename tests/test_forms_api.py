import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.pool import StaticPool

os.environ.setdefault("STORAGE_BACKEND", "memory")

from app.db.session import Database
from app.main import create_app
from app.models.form import Form
from app.models.form_submission import FormSubmission
from app.services.form_storage import DatabaseFormStorage, InMemoryFormStorage, StorageError

FIELDS = [
    {"id": "name", "type": "text", "label": "Full name", "required": True, "helpText": "As on your ID"},
    {
        "id": "topics",
        "type": "checkbox",
        "label": "Topics",
        "options": [{"label": "Billing", "value": "billing"}, {"label": "Support", "value": "support"}],
    },
]


class FormsApiContract:
    def make_storage(self):
        raise NotImplementedError

    def setUp(self):
        self.storage = self.make_storage()
        self.app = create_app(storage=self.storage)
        self.client = TestClient(self.app)

    def tearDown(self):
        self.client.close()

    def _create(self, **overrides):
        payload = {"title": "Contact", "description": "Say hi", "fields": FIELDS}
        payload.update(overrides)
        response = self.client.post("/api/forms", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_create_returns_decoded_fields_in_wire_format(self):
        body = self._create()
        self.assertTrue(body["id"])
        self.assertEqual(body["title"], "Contact")
        self.assertIn("createdAt", body)
        self.assertEqual(body["fields"][0]["helpText"], "As on your ID")
        self.assertEqual(body["fields"][0]["size"], "medium")
        self.assertEqual(body["fields"][1]["options"][1], {"label": "Support", "value": "support"})

    def test_create_accepts_missing_description(self):
        response = self.client.post("/api/forms", json={"title": "T", "fields": []})
        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.json()["description"])

    def test_validation_errors_report_field_paths(self):
        response = self.client.post(
            "/api/forms",
            json={"title": "T", "fields": [{"id": "a", "type": "signature", "label": "Sign"}]},
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["detail"], "Validation error")
        paths = [e["path"] for e in body["errors"]]
        self.assertTrue(any(p[:3] == ["fields", 0, "type"] for p in paths), paths)
        self.assertEqual(self.client.get("/api/forms").json(), [])

    def test_duplicate_field_ids_are_rejected(self):
        field = {"id": "a", "type": "text", "label": "A"}
        response = self.client.post("/api/forms", json={"title": "T", "fields": [field, field]})
        self.assertEqual(response.status_code, 400)

    def test_choice_field_without_options_is_rejected(self):
        response = self.client.post(
            "/api/forms",
            json={"title": "T", "fields": [{"id": "a", "type": "select", "label": "Pick"}]},
        )
        self.assertEqual(response.status_code, 400)

    def test_get_and_list(self):
        created = self._create()
        other = self._create(title="Feedback")

        response = self.client.get(f"/api/forms/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["fields"], created["fields"])

        listed = self.client.get("/api/forms").json()
        self.assertEqual([f["id"] for f in listed], [other["id"], created["id"]])

        searched = self.client.get("/api/forms", params={"search": "feed"}).json()
        self.assertEqual([f["id"] for f in searched], [other["id"]])

    def test_unknown_form_is_404(self):
        missing = "00000000-0000-0000-0000-000000000000"
        self.assertEqual(self.client.get(f"/api/forms/{missing}").status_code, 404)
        self.assertEqual(self.client.put(f"/api/forms/{missing}", json={"title": "x"}).status_code, 404)
        self.assertEqual(self.client.delete(f"/api/forms/{missing}").status_code, 404)
        self.assertEqual(self.client.post(f"/api/forms/{missing}/submit", json={}).status_code, 404)
        self.assertEqual(self.client.get(f"/api/forms/{missing}/submissions").status_code, 404)
        self.assertEqual(self.client.get(f"/api/forms/{missing}").json()["detail"], "Form not found")

    def test_partial_update(self):
        created = self._create()
        response = self.client.put(f"/api/forms/{created['id']}", json={"title": "Renamed"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["title"], "Renamed")
        self.assertEqual(body["description"], "Say hi")
        self.assertEqual(body["fields"], created["fields"])

        response = self.client.put(f"/api/forms/{created['id']}", json={"fields": [{"id": "x"}]})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get(f"/api/forms/{created['id']}").json()["fields"], created["fields"])

    def test_delete(self):
        created = self._create()
        response = self.client.delete(f"/api/forms/{created['id']}")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.content, b"")
        self.assertEqual(self.client.get(f"/api/forms/{created['id']}").status_code, 404)

    def test_submit_and_list_submissions(self):
        created = self._create()
        answers = {"name": "Ann", "topics": ["billing", "support"]}
        response = self.client.post(f"/api/forms/{created['id']}/submit", json=answers)
        self.assertEqual(response.status_code, 201)
        submission = response.json()
        self.assertEqual(submission["formId"], created["id"])
        self.assertEqual(submission["data"], answers)
        self.assertTrue(submission["submittedAt"])

        listed = self.client.get(f"/api/forms/{created['id']}/submissions").json()
        self.assertEqual([s["id"] for s in listed], [submission["id"]])

    def test_submit_requires_json_object(self):
        created = self._create()
        response = self.client.post(f"/api/forms/{created['id']}/submit", json=["not", "an", "object"])
        self.assertEqual(response.status_code, 400)

    def test_fill_out_page_renders_visible_fields(self):
        fields = FIELDS + [{"id": "ref", "type": "text", "label": "Internal ref", "hidden": True}]
        created = self._create(fields=fields)
        response = self.client.get(f"/forms/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertIn("text/html", response.headers["content-type"])
        self.assertIn("Full name", response.text)
        self.assertNotIn("Internal ref", response.text)
        self.assertEqual(self.client.get("/forms/unknown").status_code, 404)

    def test_fill_out_page_posts_back_to_itself(self):
        created = self._create()
        html = self.client.get(f"/forms/{created['id']}").text
        self.assertIn(f'method="post" action="/forms/{created["id"]}"', html)

    def test_submitting_through_page_stores_answers(self):
        created = self._create()
        response = self.client.post(
            f"/forms/{created['id']}",
            data={"name": "Ann", "topics": ["billing", "support"]},
        )
        self.assertEqual(response.status_code, 201)
        self.assertIn("Form submitted successfully!", response.text)

        listed = self.client.get(f"/api/forms/{created['id']}/submissions").json()
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]["data"], {"name": "Ann", "topics": ["billing", "support"]})

    def test_single_checkbox_answer_is_still_a_list(self):
        created = self._create()
        self.client.post(f"/forms/{created['id']}", data={"topics": "billing"})
        listed = self.client.get(f"/api/forms/{created['id']}/submissions").json()
        self.assertEqual(listed[0]["data"], {"topics": ["billing"]})

    def test_submitting_page_of_unknown_form_is_404(self):
        response = self.client.post("/forms/00000000-0000-0000-0000-000000000000", data={"name": "Ann"})
        self.assertEqual(response.status_code, 404)

    def test_health_reports_backend(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "storage": self.storage.backend})

    def test_storage_failure_is_500(self):
        with patch.object(self.storage, "list_forms", side_effect=StorageError("boom")):
            response = self.client.get("/api/forms")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to fetch forms")


class InMemoryFormsApiTests(FormsApiContract, unittest.TestCase):
    def make_storage(self):
        return InMemoryFormStorage()


class DatabaseFormsApiTests(FormsApiContract, unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Form.__table__.create(bind=cls.engine)
        FormSubmission.__table__.create(bind=cls.engine)
        cls.database = Database(engine=cls.engine).open()

    @classmethod
    def tearDownClass(cls):
        cls.database.close()
        FormSubmission.__table__.drop(bind=cls.engine)
        Form.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def make_storage(self):
        with self.database.session() as db:
            db.execute(delete(FormSubmission))
            db.execute(delete(Form))
            db.commit()
        return DatabaseFormStorage(self.database)


class AppLifespanTests(unittest.TestCase):
    def test_lifespan_builds_configured_storage(self):
        from app.core.config import Settings

        app = create_app(Settings(STORAGE_BACKEND="memory"))
        with TestClient(app) as client:
            self.assertIsInstance(app.state.storage, InMemoryFormStorage)
            response = client.post("/api/forms", json={"title": "T", "fields": []})
            self.assertEqual(response.status_code, 201)

    def test_missing_storage_is_503(self):
        app = create_app()
        client = TestClient(app)
        try:
            self.assertEqual(client.get("/api/forms").status_code, 503)
        finally:
            client.close()


if __name__ == "__main__":
    unittest.main()
