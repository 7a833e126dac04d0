import unittest

from sqlalchemy import inspect, text

from app.db.session import Database
from app.models.form import Form
from app.models.form_submission import FormSubmission


class DatabaseLifecycleTests(unittest.TestCase):
    def test_open_close_toggles_connected(self):
        database = Database("sqlite+pysqlite:///:memory:")
        self.assertFalse(database.connected)
        database.open()
        try:
            self.assertTrue(database.connected)
            with database.session() as db:
                self.assertEqual(db.execute(text("SELECT 1")).scalar(), 1)
        finally:
            database.close()
        self.assertFalse(database.connected)
        with self.assertRaises(RuntimeError):
            database.engine

    def test_session_requires_open_database(self):
        database = Database("sqlite+pysqlite:///:memory:")
        with self.assertRaises(RuntimeError):
            with database.session():
                pass

    def test_context_manager_and_create_all(self):
        with Database("sqlite+pysqlite:///:memory:") as database:
            database.create_all()
            tables = set(inspect(database.engine).get_table_names())
            self.assertTrue({Form.__tablename__, FormSubmission.__tablename__} <= tables)
        self.assertFalse(database.connected)

    def test_url_or_engine_is_required(self):
        with self.assertRaises(ValueError):
            Database()


if __name__ == "__main__":
    unittest.main()
