from __future__ import annotations

import logging

from tailorguard.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
NOISY_LOGGERS = ("httpx", "httpcore", "openai")

_LOG_CONFIGURED = False


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once per process; later calls only adjust the level."""
    global _LOG_CONFIGURED
    resolved = getattr(logging, (level or get_settings().log_level).upper(), logging.INFO)
    if _LOG_CONFIGURED:
        logging.getLogger().setLevel(resolved)
        return

    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    # prompt bodies travel through the HTTP client; keep its request logging off
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOG_CONFIGURED = True
