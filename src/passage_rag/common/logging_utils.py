"""passage_rag.common.logging_utils

Logging setup for entry points (HTTP app, ingestion script).

Library modules only create module-level loggers; handlers are installed
here, once, by whichever entry point runs.
"""

import logging
import sys
from typing import Any, Mapping, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_NAME = "passage_rag"


def configure_logging(config: Optional[Mapping[str, Any]] = None) -> logging.Logger:
    """Install a stream handler on the ``passage_rag`` logger.

    Parameters
    ----------
    config : Mapping[str, Any] or None, optional
        The ``logging`` config section. Reads ``level`` (default ``"INFO"``)
        and ``format`` (default :data:`DEFAULT_FORMAT`).

    Returns
    -------
    logging.Logger
        The configured package logger.

    Raises
    ------
    ValueError
        If ``level`` is not a known logging level name.

    Notes
    -----
    Calling this more than once replaces the previously installed handler
    rather than adding a second one.
    """
    cfg = dict(config or {})
    level_name = str(cfg.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level: {level_name!r}")

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(cfg.get("format") or DEFAULT_FORMAT))

    package_logger = logging.getLogger("passage_rag")
    for existing in list(package_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            package_logger.removeHandler(existing)

    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    return package_logger


__all__ = ["configure_logging", "DEFAULT_FORMAT"]
