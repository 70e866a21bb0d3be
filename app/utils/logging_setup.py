"""
Process-wide logging bootstrap. Called once at startup, never torn down.
"""

import logging
from pydantic import BaseModel

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_initialized = False


class LoggingConfig(BaseModel):
    level: int = logging.INFO
    format: str = DEFAULT_FORMAT


def init_logging(config: LoggingConfig = LoggingConfig()) -> bool:
    """
    Configure the root logger from ``config``.

    Returns True when this call did the configuration, False when logging was
    already initialized earlier in the process.
    """
    global _initialized
    if _initialized:
        return False

    logging.basicConfig(level=config.level, format=config.format)
    # uvicorn ships its own handlers; keep its loggers at the same level
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(config.level)

    _initialized = True
    return True
