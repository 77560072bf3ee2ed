"""Context registration endpoints."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..core.auth import AuthContext, require_user
from ..schemas.context import ContextCreate, ContextResponse
from ..services.context_service import ContextService

router = APIRouter(prefix="/api/contexts", tags=["contexts"])


@router.post("", response_model=ContextResponse, status_code=201)
def create_context(
    request: ContextCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Register a GitHub repository as a context owned by the caller."""
    return ContextService(db).create_context(
        owner_id=auth.user_id,
        name=request.name,
        repo_url=request.repo_url,
        branch=request.branch,
        description=request.description,
    )


@router.get("", response_model=List[ContextResponse])
def list_contexts(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    return ContextService(db).list_contexts(auth.user_id)


@router.get("/{context_id}", response_model=ContextResponse)
def get_context(
    context_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    return ContextService(db).get_context(context_id, auth.user_id)


@router.delete("/{context_id}", response_model=ContextResponse)
def deactivate_context(
    context_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Deactivate a context. Its jobs are kept."""
    return ContextService(db).deactivate_context(context_id, auth.user_id)
