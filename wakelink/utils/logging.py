from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

# Chatty below WARNING during websocket handshakes and HTTP retries
THIRD_PARTY_LOGGERS = ("httpx", "openai", "websockets", "asyncio")


def configure_logging(level: Optional[str] = None, quiet: Iterable[str] = THIRD_PARTY_LOGGERS) -> int:
    """Configure root logging once and return the numeric level in effect."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    for name in quiet:
        logging.getLogger(name).setLevel(max(logging.WARNING, numeric_level))
    return numeric_level
