"""Dict-based stores for local development and tests."""

from __future__ import annotations

import copy
import uuid
from typing import Any

from urdigest.domain.models import SavedPost, User, apply_updates, parse_state
from urdigest.domain.stores import PostStore, StoreError, UserStore


class InMemoryUserStore(UserStore):
    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    def find_by_external_id(self, instagram_user_id: str) -> User | None:
        for user in self._users.values():
            if user.instagram_user_id == instagram_user_id:
                return copy.copy(user)
        return None

    def get(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return copy.copy(user) if user is not None else None

    def create(self, fields: dict[str, Any]) -> User:
        values = dict(fields)
        values.setdefault("id", str(uuid.uuid4()))
        if "onboarding_state" in values and isinstance(values["onboarding_state"], str):
            values["onboarding_state"] = parse_state(values["onboarding_state"])
        external_id = values.get("instagram_user_id")
        if external_id and self.find_by_external_id(external_id) is not None:
            raise StoreError("duplicate instagram_user_id")
        user = User(**values)
        self._users[user.id] = user
        return copy.copy(user)

    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        user = self._users.get(user_id)
        if user is None:
            raise StoreError(f"user not found: {user_id}")
        apply_updates(user, fields)

    def all(self) -> list[User]:
        return [copy.copy(u) for u in self._users.values()]


class InMemoryPostStore(PostStore):
    def __init__(self) -> None:
        self._posts: dict[str, SavedPost] = {}

    def find_by_user_and_external_post_id(
        self, user_id: str, instagram_post_id: str
    ) -> SavedPost | None:
        for post in self._posts.values():
            if post.user_id == user_id and post.instagram_post_id == instagram_post_id:
                return copy.deepcopy(post)
        return None

    def get(self, post_id: str) -> SavedPost | None:
        post = self._posts.get(post_id)
        return copy.deepcopy(post) if post is not None else None

    def insert(self, fields: dict[str, Any]) -> SavedPost:
        values = dict(fields)
        values.setdefault("id", str(uuid.uuid4()))
        post = SavedPost(**values)
        self._posts[post.id] = post
        return copy.deepcopy(post)

    def update(self, post_id: str, fields: dict[str, Any]) -> None:
        post = self._posts.get(post_id)
        if post is None:
            raise StoreError(f"post not found: {post_id}")
        apply_updates(post, copy.deepcopy(fields))

    def list_by_status(self, status: str, limit: int = 50) -> list[SavedPost]:
        matching = [p for p in self._posts.values() if p.processing_status == status]
        return [copy.deepcopy(p) for p in matching[:limit]]

    def all(self) -> list[SavedPost]:
        return [copy.deepcopy(p) for p in self._posts.values()]
