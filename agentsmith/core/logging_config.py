"""Logging setup shared by the CLI and the processing queue."""

import logging
from typing import Optional

from agentsmith.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # Provider SDKs are chatty at INFO
    for name in ("httpx", "openai", "anthropic"):
        logging.getLogger(name).setLevel(logging.WARNING)
