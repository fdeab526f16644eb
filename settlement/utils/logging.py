"""Root logger setup for the API process."""

import logging
import sys

from settlement.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str | None = None):
    """Configure the root logger once; repeated calls only adjust the level."""
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    if any(getattr(h, "_settlement_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._settlement_handler = True
    root.addHandler(handler)

    # httpx logs every request at INFO; price lookups happen on each close
    logging.getLogger("httpx").setLevel(logging.WARNING)
