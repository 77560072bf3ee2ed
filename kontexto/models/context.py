"""Context model: a user-owned binding to a GitHub repository and branch."""

from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey

from ..database import Base
from .job import utcnow


class Context(Base):
    """
    Repository binding that analysis jobs run against.

    Only ``id``, ``repo_url``, ``branch``, ``name`` and ``owner_id`` feed the
    job lifecycle. Deactivated contexts stay in the table so historic jobs
    keep resolving.
    """

    __tablename__ = "contexts"

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Normalized https://github.com/<owner>/<repo>
    repo_url = Column(Text, nullable=False)
    branch = Column(String(255), nullable=True)

    owner_id = Column(String(50), ForeignKey("users.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
