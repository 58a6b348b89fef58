"""Storage interfaces consumed by the onboarding dialogue and the enricher.

Implement these ABCs to plug in a backend. The package ships
``InMemoryUserStore``/``InMemoryPostStore`` for development and tests and
Postgres repositories for production.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import SavedPost, User


class StoreError(Exception):
    """Raised when a store read or write fails."""


class UserStore(ABC):
    @abstractmethod
    def find_by_external_id(self, instagram_user_id: str) -> User | None:
        """Get the user bound to an Instagram sender id, or None."""
        ...

    @abstractmethod
    def get(self, user_id: str) -> User | None:
        ...

    @abstractmethod
    def create(self, fields: dict[str, Any]) -> User:
        """Insert a user row. ``fields`` must contain ``email``."""
        ...

    @abstractmethod
    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        ...


class PostStore(ABC):
    @abstractmethod
    def find_by_user_and_external_post_id(
        self, user_id: str, instagram_post_id: str
    ) -> SavedPost | None:
        ...

    @abstractmethod
    def insert(self, fields: dict[str, Any]) -> SavedPost:
        """Insert a saved post. ``fields`` must contain user_id and instagram_url."""
        ...

    @abstractmethod
    def update(self, post_id: str, fields: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def list_by_status(self, status: str, limit: int = 50) -> list[SavedPost]:
        """Posts in a processing status, oldest first."""
        ...


class AuthDirectory(ABC):
    """Login/auth account mirror of the user's email."""

    @abstractmethod
    def update_email(self, user_id: str, email: str) -> bool:
        """Return False on failure; never raises."""
        ...
