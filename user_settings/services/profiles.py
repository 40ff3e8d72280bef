"""Profile read/update service for the signed-in user."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from authentication.models import User
from counsel_be.monitoring import track_service_operation


class UserRepository(Protocol):
    """Abstraction for user persistence operations."""

    def get_active(self, *, user_id: str) -> User | None:
        raise NotImplementedError

    def save_display_name(self, user: User, display_name: str) -> None:
        raise NotImplementedError


class DjangoUserRepository:
    """Concrete repository backed by Django's ORM."""

    def get_active(self, *, user_id: str) -> User | None:
        return User.objects.filter(user_id=user_id, is_active=True).first()

    def save_display_name(self, user: User, display_name: str) -> None:
        User.objects.filter(pk=user.pk).update(display_name=display_name)
        # keep the in-memory object consistent with the row
        user.display_name = display_name


@dataclass(frozen=True)
class ProfileUpdateResult:
    """Value object describing the result of a profile update."""

    user: User
    changed: bool


class ProfileService:
    """Reads and edits the caller's own profile. Users are never deleted here."""

    def __init__(self, *, user_repository: UserRepository) -> None:
        self._users = user_repository

    @track_service_operation("user_settings", "profile_update")
    def update_profile(self, *, user: User, name: str) -> ProfileUpdateResult:
        if name == user.display_name:
            return ProfileUpdateResult(user=user, changed=False)
        self._users.save_display_name(user, name)
        return ProfileUpdateResult(user=user, changed=True)
