"""
Logging for storage-proofs.

All module loggers live under the ``storage_proofs`` logger, which gets one
stream handler the first time any of them is requested. The level comes from
PROOFS_LOG_LEVEL (default INFO) and can be changed later with set_log_level.
"""

import logging
import os
from typing import Optional, Union

PACKAGE_LOGGER = "storage_proofs"

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv("PROOFS_LOG_LEVEL", "INFO").upper())
    # getLevelName returns "Level X" for unknown names
    return level if isinstance(level, int) else logging.INFO


def _configure_package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.setLevel(_level_from_env())
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for ``name`` (a module path), parented under the package logger"""
    root = _configure_package_logger()
    if not name or name == PACKAGE_LOGGER:
        return root
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def set_log_level(level: Union[int, str]) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    _configure_package_logger().setLevel(level)
