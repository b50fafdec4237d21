"""Service for managing registered users and the active session."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..models import InvalidArgumentError, User


@dataclass(slots=True)
class UserRegistry:
    """Owns every registered user, keyed by email in registration order."""

    users: dict[str, User] = field(default_factory=dict)
    current_user: Optional[User] = None

    def register(self, user: User) -> User:
        if user.email in self.users:
            raise InvalidArgumentError("Email is already registered.")
        self.users[user.email] = user
        return user

    def create_user(self, name: str, email: str, secret: str) -> User:
        return self.register(User(name=name, email=email, secret=secret))

    def find_by_email(self, email: str) -> Optional[User]:
        return self.users.get(email)

    def login(self, email: str, secret: str) -> User:
        user = self.find_by_email(email)
        if user is None:
            raise InvalidArgumentError("Email is not registered.")
        if not user.verify_secret(secret):
            raise InvalidArgumentError("Wrong password.")
        self.current_user = user
        return user

    def logout(self) -> None:
        self.current_user = None

    def all_users(self) -> tuple[User, ...]:
        return tuple(self.users.values())
