"""Context registration: GitHub repositories a user wants analyzed."""

import logging
import re
from typing import List, Optional

from sqlalchemy.orm import Session

from ..exceptions import ForbiddenError, ValidationError
from ..models.context import Context
from ..repositories.context_repository import ContextRepository

logger = logging.getLogger(__name__)

_GITHUB_REPO_RE = re.compile(r"^https://github\.com/([A-Za-z0-9][A-Za-z0-9-]*)/([A-Za-z0-9._-]+)$")


def normalize_repo_url(url: str) -> str:
    """Canonical ``https://github.com/<owner>/<repo>`` form of a repository URL.

    A trailing slash and a ``.git`` suffix are dropped. Anything that is not a
    GitHub repository URL raises ValidationError.
    """
    candidate = (url or "").strip().rstrip("/")
    if candidate.endswith(".git"):
        candidate = candidate[: -len(".git")]
    match = _GITHUB_REPO_RE.match(candidate)
    if not match or match.group(2) in (".", ".."):
        raise ValidationError(
            "Repository URL must look like https://github.com/<owner>/<repo>",
            field="repoUrl",
        )
    return candidate


class ContextService:
    """Owner-scoped context operations."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ContextRepository(db)

    def create_context(
        self,
        owner_id: str,
        name: str,
        repo_url: str,
        branch: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Context:
        context = self.repo.create(
            owner_id=owner_id,
            name=name,
            repo_url=normalize_repo_url(repo_url),
            branch=branch,
            description=description,
        )
        logger.info(
            "Created context %s for %s", context.id, context.repo_url,
            extra={"context_id": context.id},
        )
        return context

    def list_contexts(self, owner_id: str) -> List[Context]:
        return self.repo.list_for_owner(owner_id)

    def get_context(self, context_id: str, owner_id: str) -> Context:
        context = self.repo.get_by_id(context_id)
        if context.owner_id != owner_id:
            raise ForbiddenError("Access denied")
        return context

    def deactivate_context(self, context_id: str, owner_id: str) -> Context:
        self.get_context(context_id, owner_id)
        context = self.repo.deactivate(context_id)
        logger.info("Deactivated context %s", context_id, extra={"context_id": context_id})
        return context
