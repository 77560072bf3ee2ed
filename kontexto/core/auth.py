"""Authentication module exposing FastAPI dependencies.

Public interface:
    ``require_user``    returns the caller's AuthContext with a resolved
                        internal user id, or raises 401/404.
    ``require_service`` returns the worker's AuthContext, raises 403 for
                        anything but a service token.

Every job mutation is authorized against ``AuthContext.user_id``; that id is
the only identity the services ever see.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import ROLE_SERVICE, TokenPayload, decode_token
from ..database import get_db
from ..exceptions import AuthenticationError, ForbiddenError, UserNotFoundError
from ..repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Resolved authentication context available to every endpoint."""

    user_id: str
    role: str


def _decode(credentials: Optional[HTTPAuthorizationCredentials]) -> TokenPayload:
    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        raise AuthenticationError("Invalid or expired token")
    return payload


def resolve_user_id(payload: TokenPayload, users: UserRepository) -> str:
    """Map a token to an internal user id.

    Tokens minted right after the OAuth callback may carry only the GitHub
    id; those are resolved through the users table.
    """
    if payload.sub:
        return payload.sub

    if payload.github_id:
        user = users.find_by_github_id(payload.github_id)
        if user is None:
            raise UserNotFoundError(f"github:{payload.github_id}")
        return user.id

    raise AuthenticationError("Unable to identify user")


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Require a valid user token. Service tokens are refused here."""
    payload = _decode(credentials)
    if payload.role == ROLE_SERVICE:
        logger.warning("Service token used on user endpoint", extra={"sub": payload.sub})
        raise ForbiddenError("User token required")
    user_id = resolve_user_id(payload, UserRepository(db))
    return AuthContext(user_id=user_id, role=payload.role)


def require_service(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthContext:
    """Require a service token (used by the analysis worker)."""
    payload = _decode(credentials)
    if payload.role != ROLE_SERVICE:
        logger.warning("Non-service token used on worker endpoint", extra={"sub": payload.sub})
        raise ForbiddenError("Service token required")
    return AuthContext(user_id=payload.sub, role=payload.role)
