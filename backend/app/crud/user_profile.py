# app/crud/user_profile.py
from datetime import datetime
from typing import Optional

from app.crud.documents import DocumentStore, USERS, LEARNED_PREFERENCES
from app.exceptions import NotFound
from app.schemas.user_profile import UserDocument, UserSettingsUpdate, NutritionTargets
from app.schemas.preferences import LearnedPreferenceProfile


def get_user(store: DocumentStore, user_id: str) -> Optional[UserDocument]:
    """Get user document by user ID"""
    data = store.get(USERS, user_id)
    return UserDocument.model_validate(data) if data is not None else None


def get_user_or_404(store: DocumentStore, user_id: str) -> UserDocument:
    user = get_user(store, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


def get_or_create_user(store: DocumentStore, user_id: str) -> UserDocument:
    user = get_user(store, user_id)
    if user is None:
        user = UserDocument()
        store.set(USERS, user_id, user.to_document())
    return user


def update_user_settings(store: DocumentStore, user_id: str, update: UserSettingsUpdate) -> UserDocument:
    """Apply the fields present in `update`; the stored nutrition targets are left to the caller."""
    user = get_or_create_user(store, user_id)
    changes = update.model_dump(exclude_unset=True)
    merged = user.model_copy(update={key: getattr(update, key) for key in changes})
    store.set(USERS, user_id, merged.to_document())
    return merged


def save_nutrition(store: DocumentStore, user_id: str, targets: NutritionTargets) -> None:
    get_or_create_user(store, user_id)
    store.update(USERS, user_id, {"nutrition": targets.to_document()})


def set_rejection_feedback(store: DocumentStore, user_id: str, feedback: Optional[str]) -> None:
    store.update(USERS, user_id, {"planRejectionFeedback": feedback})


def get_or_create_learned_profile(store: DocumentStore, user_id: str) -> LearnedPreferenceProfile:
    """Empty profile on first access."""
    data = store.get(LEARNED_PREFERENCES, user_id)
    if data is None:
        profile = LearnedPreferenceProfile(updated_at=datetime.utcnow())
        store.set(LEARNED_PREFERENCES, user_id, profile.to_document())
        return profile
    return LearnedPreferenceProfile.model_validate(data)


def save_learned_profile(store: DocumentStore, user_id: str, profile: LearnedPreferenceProfile) -> LearnedPreferenceProfile:
    saved = profile.model_copy(update={"updated_at": datetime.utcnow()})
    store.set(LEARNED_PREFERENCES, user_id, saved.to_document())
    return saved
