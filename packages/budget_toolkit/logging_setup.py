"""Logging for ``budget_toolkit``.

The interactive CLI owns the terminal, so the package stays quiet unless asked:
modules log through ``get_logger("budget_toolkit.<module>")`` and only the CLI
entry point calls :func:`configure_logging`, which writes to stderr at WARNING
(or ``--verbose`` / ``BUDGET_TOOLKIT_LOG_LEVEL``).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_ROOT = "budget_toolkit"
_LEVEL_ENV = "BUDGET_TOOLKIT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_configured = False


def _level_from_name(value: str) -> int | None:
    value = value.strip().upper()
    if value.isdigit():
        return int(value)
    numeric = logging.getLevelNamesMapping().get(value)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None, *, default: int = logging.WARNING) -> int:
    if isinstance(level, int):
        return level
    explicit = _level_from_name(level) if isinstance(level, str) else None
    if explicit is not None:
        return explicit
    from_env = _level_from_name(os.getenv(_LEVEL_ENV) or "")
    return from_env if from_env is not None else default


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Install the one stderr handler on the ``budget_toolkit`` logger.

    Later calls are no-ops. An unusable ``level`` falls back to the env var,
    then to WARNING.
    """

    global _configured
    if _configured:
        return

    root = logging.getLogger(_ROOT)
    for h in [h for h in root.handlers if isinstance(h, logging.NullHandler)]:
        root.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    root.setLevel(resolved)
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not _configured and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)
