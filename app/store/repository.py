"""Generic repository over one ORM model: create, read, update-by-id, count, delete.

Every call is atomic at the single-row level and translates transient
SQLAlchemy failures into StoreError. Entity-specific queries live in
app.store.queries as free functions.
"""

from collections.abc import Callable, Sequence
from functools import wraps
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.errors import StoreError
from app.models import Base

ModelT = TypeVar("ModelT", bound=Base)
F = TypeVar("F", bound=Callable[..., Any])


def translate_store_errors(fn: F) -> F:
    """Re-raise driver/connection failures as StoreError; integrity violations pass through."""

    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except IntegrityError:
            raise
        except (OperationalError, DBAPIError) as e:
            raise StoreError(f"Store operation {fn.__name__} failed.", cause=e) from e

    return wrapper  # type: ignore[return-value]


class Repository(Generic[ModelT]):
    """Small typed facade over a session for one model class."""

    def __init__(self, session: Session, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    def _filtered(self, filters: dict[str, Any] | None):
        stmt = select(self.model)
        for field, value in (filters or {}).items():
            stmt = stmt.where(getattr(self.model, field) == value)
        return stmt

    @translate_store_errors
    def create(self, **values: Any) -> ModelT:
        entity = self.model(**values)
        self.session.add(entity)
        self.session.flush()
        return entity

    @translate_store_errors
    def get(self, entity_id: int) -> ModelT | None:
        return self.session.get(self.model, entity_id)

    @translate_store_errors
    def find_one(self, **filters: Any) -> ModelT | None:
        return self.session.scalars(self._filtered(filters).limit(1)).first()

    @translate_store_errors
    def find_all(self, order_by: Any = None, limit: int | None = None, **filters: Any) -> Sequence[ModelT]:
        stmt = self._filtered(filters).order_by(order_by if order_by is not None else self.model.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.scalars(stmt).all()

    @translate_store_errors
    def update(self, entity_id: int, **values: Any) -> ModelT | None:
        entity = self.session.get(self.model, entity_id)
        if entity is None:
            return None
        for field, value in values.items():
            setattr(entity, field, value)
        self.session.flush()
        return entity

    @translate_store_errors
    def count(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self._filtered(filters).subquery())
        return int(self.session.scalar(stmt) or 0)

    @translate_store_errors
    def delete(self, entity_id: int) -> bool:
        entity = self.session.get(self.model, entity_id)
        if entity is None:
            return False
        self.session.delete(entity)
        self.session.flush()
        return True
