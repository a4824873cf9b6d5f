"""Entity store access: generic repository, entity-specific queries and retry."""

from app.store.repository import Repository
from app.store.retry import with_store_retry

__all__ = ["Repository", "with_store_retry"]
