import logging
import os
from typing import Optional

# Logger that DiagnosticLog echoes every entry through.
DIAGNOSTICS_LOGGER = "deploystore.diagnostics"


def configure_logging(default_level: int = logging.INFO, echo_level: Optional[int] = None) -> None:
    """Configure root logger with a sane default format.

    Respects DEPLOYSTORE_LOG_LEVEL env var if present. ``echo_level`` sets the
    diagnostic-log console echo separately, so a command that prints log
    entries itself does not get each one echoed twice.
    DEPLOYSTORE_ECHO_LEVEL overrides it.
    """
    level = _level_from_env("DEPLOYSTORE_LOG_LEVEL", default_level)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
    echo = _level_from_env("DEPLOYSTORE_ECHO_LEVEL", echo_level)
    logging.getLogger(DIAGNOSTICS_LOGGER).setLevel(echo if echo is not None else logging.NOTSET)


def _level_from_env(var: str, default: Optional[int]) -> Optional[int]:
    level_name = os.getenv(var)
    if level_name:
        return getattr(logging, level_name.upper(), default)
    return default
