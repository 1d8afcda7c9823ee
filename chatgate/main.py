"""Server entry point.

Loads ``.env``, configures logging and serves the gateway with uvicorn.
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv


def main() -> None:
    load_dotenv()

    import uvicorn

    from .config import get_settings
    from .gateway import create_app

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger = logging.getLogger(__name__)

    if not settings.provider_api_key:
        logger.warning("No provider API key configured; /chat will fail")
    if not settings.storage_url or not settings.storage_key:
        logger.warning("No storage credentials configured; /upload will fail")

    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
