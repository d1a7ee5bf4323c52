"""
Logging setup shared by every module of the application.

Modules grab a logger once at import time and tag it with a bracketed
prefix so that lines from one subsystem are easy to grep:

```python
from be_my_guide.managers.logging_manager import get_logger

logger = get_logger(prefix="[TripService]")
logger.info("Created trip %s", trip_id)
# 2024-06-01 10:00:00 [INFO] be_my_guide: [TripService] Created trip 665f...
```

`setup_logging()` configures the root handler exactly once; it is called
from the application lifespan with `settings.LOG_LEVEL`.
"""

import logging
from typing import Any, MutableMapping, Tuple

DEFAULT_LOGGER_NAME = "be_my_guide"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class PrefixedLogger(logging.LoggerAdapter):
    """Logger adapter that prepends a fixed prefix to every message."""

    def __init__(self, logger: logging.Logger, prefix: str = ""):
        super().__init__(logger, {})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if self.prefix:
            return f"{self.prefix} {msg}", kwargs
        return msg, kwargs


def get_logger(name: str = DEFAULT_LOGGER_NAME, prefix: str = "") -> PrefixedLogger:
    """
    Return a logger for `name`, optionally tagged with `prefix`.

    Args:
        name: Logger name, defaults to the application logger.
        prefix: Text prepended to each message, e.g. `"[DATABASE]"`.
    """
    return PrefixedLogger(logging.getLogger(name), prefix)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the application logger with a console handler.

    Calling it again only updates the level, so repeated app creation (tests)
    does not stack handlers.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    app_logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    app_logger.setLevel(numeric_level)

    if app_logger.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    app_logger.addHandler(handler)
