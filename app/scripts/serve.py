"""
Run the API under uvicorn, bound to HOST:PORT from the environment.

  python -m app.scripts.serve [--reload]

Schema changes are applied separately with `alembic upgrade head`.
"""

import argparse

from dotenv import load_dotenv

load_dotenv()

import uvicorn

from app.core.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the Stackwatch API.")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
