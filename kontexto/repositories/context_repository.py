"""Context repository for database operations."""

import uuid
from typing import List, Optional

from ..exceptions import ContextNotFoundError
from ..models.context import Context
from ..models.job import utcnow
from .base import BaseRepository


class ContextRepository(BaseRepository[Context]):
    """Repository for context CRUD operations."""

    model_class = Context
    not_found_error = ContextNotFoundError

    def create(
        self,
        owner_id: str,
        name: str,
        repo_url: str,
        branch: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Context:
        now = utcnow()
        context = Context(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            repo_url=repo_url,
            branch=branch,
            owner_id=owner_id,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(context)
        self.db.commit()
        self.db.refresh(context)
        return context

    def list_for_owner(self, owner_id: str) -> List[Context]:
        """Active contexts of one owner, most recently updated first."""
        return (
            self.db.query(Context)
            .filter(Context.owner_id == owner_id, Context.is_active.is_(True))
            .order_by(Context.updated_at.desc())
            .all()
        )

    def deactivate(self, context_id: str) -> Context:
        context = self.get_by_id(context_id)
        context.is_active = False
        self.db.commit()
        self.db.refresh(context)
        return context
