"""
Logging for the zvote toolkit.

Every module logs through a child of the "zvote_toolkit" logger. The
package logger owns the only handler, so wallet, sync and audit messages
share one format and one level. The level defaults to ZV_LOG_LEVEL and
the CLI can override it with --log-level.
"""

import logging
from typing import Optional, Union

from zvote_toolkit.shared.constants import GlobalConstants

PACKAGE_LOGGER = "zvote_toolkit"

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        root.addHandler(handler)
        root.setLevel(_resolve_level(GlobalConstants.LOG_LEVEL))
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a toolkit logger.

    Names outside the package are nested under it so they share its
    handler, e.g. "scripts.tally" becomes "zvote_toolkit.scripts.tally".
    """
    root = _package_logger()
    if not name or name == PACKAGE_LOGGER:
        return root
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def set_log_level(level: Union[str, int]) -> None:
    _package_logger().setLevel(_resolve_level(level))
