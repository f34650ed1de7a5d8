"""
Run the GitHub gateway with uvicorn.

Settings are read once from the environment (and ``.env``) here and passed
into the app; nothing below reads the environment again.
"""

import uvicorn

from .api import create_app
from .config import get_settings
from .utils.jsonl_logger import setup_jsonl_logger


def main() -> None:
    settings = get_settings()
    logger = setup_jsonl_logger(
        "github-gateway", log_dir=settings.log_dir, level=settings.log_level
    )
    if not settings.api_key:
        logger.warning("MCP_API_KEY is not set; authenticated routes will answer 503")

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
