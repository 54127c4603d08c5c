"""Central logging configuration for the API process and seed scripts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Union[str, int] = "INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging once; later calls are no-ops."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _map_level(level)
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(level=resolved, filename=path, filemode="a", format=LOG_FORMAT)
    else:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
    _CONFIGURED = True


def _map_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if isinstance(value, int):
        return value
    return logging.INFO
