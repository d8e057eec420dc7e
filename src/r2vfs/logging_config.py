"""Log output setup for r2vfs.

Only the ``r2vfs`` logger is touched, never the root logger: r2vfs is
embedded in other applications, which own their own logging. The host can
opt out entirely with ``logging.install_handler: false`` and attach its own
handlers to ``logging.getLogger("r2vfs")``.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from r2vfs.config import LoggingConfig

PACKAGE_LOGGER = "r2vfs"

# Attribute set on handlers installed here so a reconfigure replaces only them
_OWNED = "_r2vfs_handler"

# Attributes every LogRecord carries; anything else came in through ``extra=``
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Carries timestamp, level, logger and message, the formatted traceback
    when there is one, and every field passed through ``extra=`` (the
    filesystem adds ``operation``, ``key`` and ``duration_ms``).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name, value in vars(record).items():
            if name not in _STANDARD_ATTRS and not name.startswith("_"):
                entry[name] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Apply a ``logging`` config section to the ``r2vfs`` logger.

    Sets the level and, unless ``install_handler`` is off, replaces the
    stderr handler installed by an earlier call with one using the
    configured format (``text`` or ``json``). Records handled here do not
    propagate further, so the host's root handlers do not print them twice.

    Returns:
        The ``r2vfs`` logger.
    """
    config = config or LoggingConfig()
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.setLevel(_level(config.level))

    for handler in [h for h in pkg_logger.handlers if getattr(h, _OWNED, False)]:
        pkg_logger.removeHandler(handler)

    if not config.install_handler:
        pkg_logger.propagate = True
        return pkg_logger

    handler = logging.StreamHandler(sys.stderr)
    setattr(handler, _OWNED, True)
    if config.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False
    return pkg_logger
