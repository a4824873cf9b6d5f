"""
CLI entrypoint for the notification retention job. Run from cron, e.g.:

  python -m app.retention

Or hourly: 0 * * * * cd /path/to/stackwatch && .venv/bin/python -m app.retention
"""

import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from app.core.config import get_settings
from app.core.database import StoreContext
from app.services.retention import run_retention

logger = logging.getLogger(__name__)


def main() -> int:
    """Run retention: delete notifications past expires_at."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    store = StoreContext(settings.DATABASE_URL)
    db = store.session()
    try:
        deleted = run_retention(db, settings)
        logger.info("Retention completed: notifications_deleted=%s", deleted)
        return 0
    except Exception as e:
        logger.exception("Retention job failed: %s", e)
        return 1
    finally:
        db.close()
        store.dispose()


if __name__ == "__main__":
    sys.exit(main())
