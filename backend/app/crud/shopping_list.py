from datetime import datetime
from typing import List, Optional

from app.crud.documents import DocumentStore, SHOPPING_LISTS
from app.schemas.meal_plan import ShoppingListDocument, ShoppingListItem


def create_shopping_list(store: DocumentStore, plan_id: str, items: List[ShoppingListItem]) -> ShoppingListDocument:
    shopping_list = ShoppingListDocument(plan_id=plan_id, items=items)
    store.set(SHOPPING_LISTS, plan_id, shopping_list.to_document())
    return shopping_list


def get_shopping_list(store: DocumentStore, plan_id: str) -> Optional[ShoppingListDocument]:
    data = store.get(SHOPPING_LISTS, plan_id)
    return ShoppingListDocument.model_validate(data) if data is not None else None


def save_items(store: DocumentStore, plan_id: str, items: List[ShoppingListItem]) -> None:
    store.update(SHOPPING_LISTS, plan_id, {
        "items": [item.to_document() for item in items],
        "updatedAt": datetime.utcnow().isoformat(),
    })
