from fastapi import APIRouter, Depends

from app.api.deps import get_store
from app.crud.documents import DocumentStore
from app.schemas.meal_plan import ShoppingListDocument, ShoppingListResponse, ToggleItemRequest
from app.services import shopping_list_service

router = APIRouter(prefix="/plans/{plan_id}/shopping-list", tags=["Shopping List"])


def _to_response(shopping_list: ShoppingListDocument) -> ShoppingListResponse:
    return ShoppingListResponse(
        plan_id=shopping_list.plan_id,
        items=shopping_list.items,
        unchecked_count=shopping_list_service.count_unchecked(shopping_list.items),
        grouped=shopping_list_service.group_by_category(shopping_list.items),
    )


@router.get("", response_model=ShoppingListResponse)
def get_shopping_list(plan_id: str, store: DocumentStore = Depends(get_store)):
    return _to_response(shopping_list_service.get_shopping_list(store, plan_id))


@router.put("/items/{item_index}", response_model=ShoppingListResponse)
def set_item_checked(
    plan_id: str,
    item_index: int,
    request: ToggleItemRequest,
    store: DocumentStore = Depends(get_store)
):
    shopping_list = shopping_list_service.set_checked(store, plan_id, item_index, request.checked)
    return _to_response(shopping_list)
