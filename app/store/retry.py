"""Retry transient store failures with exponential backoff at the adapter boundary."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.orm import Session

from app.core.errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_store_retry(
    session: Session,
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    base_delay: float,
    label: str = "store operation",
) -> T:
    """
    Run operation, retrying on StoreError up to attempts times.

    The session is rolled back before each retry so the operation starts from
    committed state. All store mutations in the pipeline are idempotent, so a
    retry after a partial write is safe. Re-raises the last StoreError.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except StoreError as e:
            session.rollback()
            if attempt >= attempts:
                logger.error("%s failed after %s attempts: %s", label, attempts, e)
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "%s failed (attempt %s/%s); retrying in %.2fs: %s",
                label,
                attempt,
                attempts,
                delay,
                e,
            )
            await asyncio.sleep(delay)
            attempt += 1
