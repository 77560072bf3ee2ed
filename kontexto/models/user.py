"""User model.

Users sign in through GitHub OAuth; the provider creates the row and the API
only reads it to resolve tokens that carry nothing but a GitHub id.
"""

from sqlalchemy import Column, String, DateTime

from ..database import Base
from .job import utcnow


class User(Base):
    """GitHub-backed user account."""

    __tablename__ = "users"

    id = Column(String(50), primary_key=True)
    github_id = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
