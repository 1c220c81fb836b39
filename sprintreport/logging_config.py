import logging
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty client libraries; their request lines drown out the pipeline's own
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: Optional[Union[str, int]] = None) -> None:
    """Configure root logging once for a host process."""
    if level is None:
        from sprintreport.config import get_settings
        level = get_settings().log_level

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
