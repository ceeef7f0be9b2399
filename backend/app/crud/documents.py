import copy
import logging
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from app.models.document import Document
from app.exceptions import NotFound

logger = logging.getLogger(__name__)

"""
Document Store
--------------
Key-addressed JSON documents stored in a single SQLAlchemy table.
Each write commits on its own: single-document atomicity, nothing more.
"""

USERS = "users"
LEARNED_PREFERENCES = "learned_preferences"
PLANS = "plans"
SHOPPING_LISTS = "shopping_lists"
FEEDBACKS = "feedbacks"
RECIPE_HISTORY = "recipe_history"


class DocumentStore:
    def __init__(self, db: Session):
        self.db = db

    def _row(self, collection: str, doc_id: str) -> Optional[Document]:
        return self.db.query(Document).filter(
            Document.collection == collection,
            Document.doc_id == doc_id
        ).first()

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        row = self._row(collection, doc_id)
        if not row:
            return None
        return copy.deepcopy(row.data)

    def exists(self, collection: str, doc_id: str) -> bool:
        return self._row(collection, doc_id) is not None

    def set(self, collection: str, doc_id: str, data: dict) -> dict:
        """Create or fully replace a document."""
        row = self._row(collection, doc_id)
        if row:
            row.data = copy.deepcopy(data)
        else:
            row = Document(collection=collection, doc_id=doc_id, data=copy.deepcopy(data))
            self.db.add(row)
        self.db.commit()
        logger.debug(f"[DocumentStore] set {collection}/{doc_id}")
        return copy.deepcopy(data)

    def update(self, collection: str, doc_id: str, fields: dict) -> dict:
        """Shallow-merge top-level fields into an existing document."""
        row = self._row(collection, doc_id)
        if not row:
            raise NotFound(f"{collection}/{doc_id} not found")

        merged = copy.deepcopy(row.data)
        merged.update(copy.deepcopy(fields))
        # Reassign so SQLAlchemy sees the JSON column as changed
        row.data = merged
        self.db.commit()
        logger.debug(f"[DocumentStore] update {collection}/{doc_id}: {list(fields.keys())}")
        return copy.deepcopy(merged)

    def delete(self, collection: str, doc_id: str) -> bool:
        row = self._row(collection, doc_id)
        if not row:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def list(self, collection: str, **filters) -> List[Tuple[str, dict]]:
        """All (doc_id, data) pairs of a collection whose top-level fields equal `filters`."""
        rows = self.db.query(Document).filter(
            Document.collection == collection
        ).order_by(Document.id).all()

        results = []
        for row in rows:
            data = row.data or {}
            if all(data.get(key) == value for key, value in filters.items()):
                results.append((row.doc_id, copy.deepcopy(data)))
        return results

    def find_one(self, collection: str, **filters) -> Optional[Tuple[str, dict]]:
        matches = self.list(collection, **filters)
        return matches[-1] if matches else None
