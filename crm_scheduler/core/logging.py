import logging
import sys
from typing import Optional, Union

import newrelic.agent

from crm_scheduler.core.config import settings

LOG_FORMAT = '%(asctime)s - %(service)s - %(name)s - %(levelname)s - %(message)s'

# Engine modules that log per-request detail
SCHEDULER_LOGGERS = ("crm_scheduler.services", "crm_scheduler.api")


class ServiceNameFilter(logging.Filter):
    """Stamps every record with the service name so mixed log streams stay attributable."""

    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        return True


def resolve_level(level: Optional[Union[int, str]] = None) -> int:
    level = settings.log_level if level is None else level
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(level: Optional[Union[int, str]] = None) -> logging.Handler:
    """
    Installs the scheduling service's stdout handler on the root logger.

    The level comes from LOG_LEVEL unless given. With a New Relic license key the
    handler uses New Relic's context formatter so logs link to traces; otherwise
    records carry the service name from APP_NAME.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_level(level))

    # Uvicorn reloads re-import the app
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ServiceNameFilter(settings.app_name))
    if settings.new_relic_license_key:
        handler.setFormatter(newrelic.agent.NewRelicContextFormatter())
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    if settings.debug_scheduler:
        for name in SCHEDULER_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG)

    for name in ("uvicorn.access", "uvicorn.error", "httpx", "hpack"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
