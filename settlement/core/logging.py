"""
Logging setup

Services log through logging.getLogger(__name__); this module only wires
the root handler once at application start.
"""
import logging
import sys

from settlement.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that are noisy at INFO
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def setup_logging() -> None:
    """Send records at settings.LOG_LEVEL and above to stdout"""
    level = logging.getLevelName(settings.LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logging.basicConfig(level=level, handlers=[handler])

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s env=%s", settings.LOG_LEVEL, settings.APP_ENV
    )
