"""Run the s3fm HTTP service: ``python -m s3fm``."""

from __future__ import annotations

import uvicorn

from s3fm.api import create_app
from s3fm.config import Settings, configure_logging


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
