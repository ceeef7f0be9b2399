import logging
import re
from typing import Dict, Iterable, List

from app.crud import shopping_list as shopping_crud
from app.crud.documents import DocumentStore
from app.exceptions import NotFound
from app.schemas.meal_plan import IngredientUsage, ShoppingListDocument, ShoppingListItem

logger = logging.getLogger(__name__)

"""
Shopping List Service
---------------------
1. Splits generated free-text ingredients into name / amount.
2. Buckets every usage into a fixed category taxonomy by keyword.
3. Keeps the check state of a stored list.

Items with the same name are kept as separate lines: each one belongs to a
different meal and carries its own amount.
"""

CATEGORY_ORDER = ["vegetable", "meat", "fish", "seasoning", "other"]

# Amounts that mean "you probably have this at home"
STAPLE_MEASURES = ["大さじ", "小さじ", "少々", "適量", "少量", "たっぷり", "ひとつまみ"]

# Checked first so dairy / eggs / soy do not fall into meat via 牛 or 鶏
OTHER_KEYWORDS = ["牛乳", "卵", "チーズ", "ヨーグルト", "バター", "生クリーム", "豆腐", "納豆", "豆乳", "油揚げ", "厚揚げ"]
MEAT_KEYWORDS = ["肉", "牛", "豚", "鶏", "ひき肉", "ベーコン", "ハム", "ウィンナー", "ソーセージ", "ささみ", "チャーシュー"]
FISH_KEYWORDS = ["魚", "鮭", "サーモン", "マグロ", "海老", "えび", "イカ", "タコ", "貝", "刺身", "鯖", "サバ", "鯛",
                 "ぶり", "カツオ", "しらす", "アサリ", "イワシ", "ツナ"]
VEGETABLE_KEYWORDS = ["野菜", "玉ねぎ", "人参", "にんじん", "キャベツ", "レタス", "トマト", "ブロッコリー", "ピーマン",
                      "なす", "ほうれん草", "じゃがいも", "大根", "きのこ", "しめじ", "椎茸", "えのき", "セロリ",
                      "パプリカ", "もやし", "キュウリ", "きゅうり", "ニラ", "パセリ", "ネギ", "ねぎ", "バジル"]
SEASONING_KEYWORDS = ["塩", "胡椒", "こしょう", "醤油", "味噌", "みそ", "油", "だし", "砂糖", "酢", "みりん", "酒",
                      "マヨネーズ", "ケチャップ", "ソース", "コンソメ", "めんつゆ", "ドレッシング", "ポン酢",
                      "はちみつ", "片栗粉", "豆板醤", "生姜", "わさび", "にんにく", "ごま"]

_COLON_SPLIT = re.compile(r"^(?P<name>[^:：]+?)\s*[:：]\s*(?P<amount>.*)$")
_PAREN_AMOUNT = re.compile(r"^(?P<name>.+?)\s*[（(](?P<amount>[^）)]*)[）)]\s*$")
_SPACED_AMOUNT = re.compile(
    r"^(?P<name>.+?)\s+(?P<amount>\S*(?:\d|[０-９]|" + "|".join(STAPLE_MEASURES) + r")\S*)$"
)
_GLUED_STAPLE = re.compile(r"^(?P<name>.+?)(?P<amount>(?:大さじ|小さじ)\S*|少々|適量|少量|たっぷり|ひとつまみ)$")
_GLUED_NUMBER = re.compile(r"^(?P<name>[^\d０-９]+?)(?P<amount>[\d０-９][\d０-９./]*\s*\S*)$")


def parse_ingredient(text: str) -> IngredientUsage:
    """
    "鶏むね肉 200g" -> (鶏むね肉, 200g)
    "醤油: 大さじ1" -> (醤油, 大さじ1)
    "卵 (2個)"      -> (卵, 2個)
    Text without a recognizable amount keeps an empty amount.
    """
    text = (text or "").strip()
    for pattern in (_COLON_SPLIT, _PAREN_AMOUNT, _SPACED_AMOUNT, _GLUED_STAPLE, _GLUED_NUMBER):
        match = pattern.match(text)
        if match and match.group("name").strip():
            return IngredientUsage(name=match.group("name").strip(), amount=match.group("amount").strip())
    return IngredientUsage(name=text, amount="")


def categorize_ingredient(name: str, amount: str = "") -> str:
    if any(measure in (amount or "") for measure in STAPLE_MEASURES):
        return "seasoning"

    lowered = name.lower()
    if any(k in lowered for k in OTHER_KEYWORDS):
        return "other"
    if any(k in lowered for k in MEAT_KEYWORDS):
        return "meat"
    if any(k in lowered for k in FISH_KEYWORDS):
        return "fish"
    if any(k in lowered for k in VEGETABLE_KEYWORDS):
        return "vegetable"
    if any(k in lowered for k in SEASONING_KEYWORDS):
        return "seasoning"
    return "other"


def aggregate(usages: Iterable[IngredientUsage]) -> List[ShoppingListItem]:
    """One unchecked line per usage, in input order."""
    items = [
        ShoppingListItem(
            ingredient=usage.name,
            amount=usage.amount,
            category=categorize_ingredient(usage.name, usage.amount),
        )
        for usage in usages
        if usage.name
    ]
    logger.info(f"[Shopping List] Aggregated {len(items)} items")
    return items


def group_by_category(items: Iterable[ShoppingListItem]) -> Dict[str, List[ShoppingListItem]]:
    """Derived view: category -> items, in taxonomy order, empty categories omitted."""
    grouped: Dict[str, List[ShoppingListItem]] = {category: [] for category in CATEGORY_ORDER}
    for item in items:
        grouped[item.category].append(item)
    return {category: bucket for category, bucket in grouped.items() if bucket}


def count_unchecked(items: Iterable[ShoppingListItem]) -> int:
    return sum(1 for item in items if not item.checked)


def get_shopping_list(store: DocumentStore, plan_id: str) -> ShoppingListDocument:
    shopping_list = shopping_crud.get_shopping_list(store, plan_id)
    if shopping_list is None:
        raise NotFound(f"Shopping list for plan {plan_id} not found")
    return shopping_list


def set_checked(store: DocumentStore, plan_id: str, item_index: int, checked: bool) -> ShoppingListDocument:
    """Sets one item's checked flag. Setting the same value twice is a no-op."""
    shopping_list = get_shopping_list(store, plan_id)
    if item_index < 0 or item_index >= len(shopping_list.items):
        raise NotFound(f"Shopping list item {item_index} not found for plan {plan_id}")

    items = list(shopping_list.items)
    if items[item_index].checked == checked:
        return shopping_list

    items[item_index] = items[item_index].model_copy(update={"checked": checked})
    shopping_crud.save_items(store, plan_id, items)
    logger.info(f"[Shopping List] Plan {plan_id} item {item_index} checked={checked}")
    return shopping_list.model_copy(update={"items": items})
