import unittest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.crud.documents import DocumentStore
from app.exceptions import NotFound

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles

# Use an in-memory SQLite DB
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# Fix JSONB for SQLite
@compiles(JSONB, 'sqlite')
def compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class TestDocumentStore(unittest.TestCase):
    def setUp(self):
        Base.metadata.create_all(bind=engine)
        self.db = TestingSessionLocal()
        self.store = DocumentStore(self.db)

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=engine)

    def test_set_get_roundtrip_is_a_copy(self):
        self.store.set("plans", "p1", {"status": "pending", "days": [1, 2]})

        doc = self.store.get("plans", "p1")
        doc["days"].append(3)

        self.assertEqual(self.store.get("plans", "p1")["days"], [1, 2])
        self.assertTrue(self.store.exists("plans", "p1"))
        self.assertIsNone(self.store.get("plans", "p2"))

    def test_set_replaces_whole_document(self):
        self.store.set("users", "u1", {"a": 1, "b": 2})
        self.store.set("users", "u1", {"a": 3})
        self.assertEqual(self.store.get("users", "u1"), {"a": 3})

    def test_update_merges_top_level_fields(self):
        self.store.set("users", "u1", {"a": 1, "nested": {"x": 1}})
        merged = self.store.update("users", "u1", {"nested": {"y": 2}, "b": True})

        self.assertEqual(merged, {"a": 1, "nested": {"y": 2}, "b": True})
        self.db.expire_all()
        self.assertEqual(self.store.get("users", "u1"), merged)

    def test_update_missing_document(self):
        with self.assertRaises(NotFound):
            self.store.update("users", "ghost", {"a": 1})

    def test_collections_are_separate_namespaces(self):
        self.store.set("plans", "same-id", {"kind": "plan"})
        self.store.set("shopping_lists", "same-id", {"kind": "list"})
        self.assertEqual(self.store.get("plans", "same-id"), {"kind": "plan"})
        self.assertEqual(self.store.get("shopping_lists", "same-id"), {"kind": "list"})

    def test_list_and_find_one(self):
        self.store.set("plans", "p1", {"userId": "u1", "status": "archived"})
        self.store.set("plans", "p2", {"userId": "u1", "status": "active"})
        self.store.set("plans", "p3", {"userId": "u2", "status": "active"})

        self.assertEqual([doc_id for doc_id, _ in self.store.list("plans", userId="u1")], ["p1", "p2"])
        self.assertEqual(self.store.find_one("plans", userId="u1", status="active")[0], "p2")
        self.assertIsNone(self.store.find_one("plans", userId="u3"))

    def test_delete(self):
        self.store.set("plans", "p1", {})
        self.assertTrue(self.store.delete("plans", "p1"))
        self.assertFalse(self.store.delete("plans", "p1"))


if __name__ == "__main__":
    unittest.main()
