"""
Check every component for newer versions and re-evaluate affected services. Run from cron, e.g.:

  python -m app.scripts.check_updates

Daily: 0 3 * * * cd /path/to/stackwatch && .venv/bin/python -m app.scripts.check_updates
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from app.core.config import get_settings
from app.core.database import StoreContext
from app.services.context import build_pipeline
from app.services.version_check import check_all_updates

logger = logging.getLogger(__name__)


async def _run(store: StoreContext) -> int:
    settings = get_settings()
    db = store.session()
    try:
        result = await check_all_updates(build_pipeline(db, settings))
    finally:
        db.close()
    counts = result.results
    logger.info(
        "Update check completed: total=%s updated=%s with_updates=%s upstream_unavailable=%s dropped=%s notifications=%s",
        counts.total,
        counts.updated,
        counts.with_updates,
        counts.upstream_unavailable,
        counts.dropped,
        len(result.notifications),
    )
    return 0


def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    store = StoreContext(settings.DATABASE_URL)
    try:
        return asyncio.run(_run(store))
    except Exception as e:
        logger.exception("Update check failed: %s", e)
        return 1
    finally:
        store.dispose()


if __name__ == "__main__":
    sys.exit(main())
