"""User repository: identity lookups for token resolution."""

import uuid
from typing import Optional

from ..exceptions import UserNotFoundError
from ..models.user import User
from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for users created by the GitHub sign-in flow."""

    model_class = User
    not_found_error = UserNotFoundError

    def find_by_github_id(self, github_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.github_id == github_id).first()

    def create(self, github_id: str, name: str, email: Optional[str] = None) -> User:
        user = User(id=str(uuid.uuid4()), github_id=github_id, name=name, email=email)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
