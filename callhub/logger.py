"""Root logger setup. Modules log through ``logging.getLogger(__name__)``."""

import logging
import sys

from callhub.config import LOG_LEVEL


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Send records to stdout at ``LOG_LEVEL``; later calls are no-ops."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout,
    )
