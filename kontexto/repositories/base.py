"""Primary-key lookups shared by every repository."""

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from ..database import Base
from ..exceptions import KontextoException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Binds a session to one model.

    Subclasses set ``model_class`` and the ``not_found_error`` raised by
    ``get_by_id``; every model here is keyed by a string ``id``.
    """

    model_class: Type[ModelT]
    not_found_error: Type[KontextoException]

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, entity_id: str) -> Optional[ModelT]:
        return self.db.get(self.model_class, entity_id)

    def get_by_id(self, entity_id: str) -> ModelT:
        entity = self.find_by_id(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity
