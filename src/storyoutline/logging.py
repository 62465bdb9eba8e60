"""Logging utilities."""

from __future__ import annotations

import contextlib
import contextvars
import logging
from datetime import date
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


_op_var: contextvars.ContextVar[str] = contextvars.ContextVar("storyoutline_op", default="-")
_ref_var: contextvars.ContextVar[str] = contextvars.ContextVar("storyoutline_ref", default="-")

_FORMAT = "%(asctime)s %(levelname)s op=%(op)s ref=%(ref)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ContextFilter(logging.Filter):
    """Inject operation context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.op = _op_var.get()  # type: ignore[attr-defined]
        record.ref = _ref_var.get()  # type: ignore[attr-defined]
        return True


class _DailyFileHandler(logging.FileHandler):
    """Append to `outline-YYYY-MM-DD.log` under a directory."""

    def __init__(self, log_dir: Path) -> None:
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir = log_dir
        super().__init__(log_dir / f"outline-{date.today().isoformat()}.log", encoding="utf-8")


@contextlib.contextmanager
def operation_context(op: str, ref: str | None = None) -> Any:
    """Temporarily bind the current outline operation for structured logging.

    Args:
        op: Operation name, e.g. ``add_node``.
        ref: Optional path or chapter reference the operation targets.
    """

    token_op = _op_var.set(op)
    token_ref = _ref_var.set(ref if ref is not None else "-")
    try:
        yield
    finally:
        _op_var.reset(token_op)
        _ref_var.reset(token_ref)


def configure_logging(level: str = "INFO", log_dir: Path | None = None) -> None:
    """Configure application logging.

    Args:
        level: Logging level name.
        log_dir: Optional directory receiving a per-day plain-text log file.
    """

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_level=True,
    )
    handler.addFilter(_ContextFilter())
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    # Avoid duplicate handlers if configure_logging is called multiple times
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if isinstance(h, RichHandler):
                h.addFilter(_ContextFilter())
                h.setFormatter(formatter)

    if log_dir is not None:
        log_dir = Path(log_dir)
        exists = any(
            isinstance(h, _DailyFileHandler) and h.log_dir == log_dir for h in root.handlers
        )
        if not exists:
            file_handler = _DailyFileHandler(log_dir)
            file_handler.addFilter(_ContextFilter())
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    logger = logging.getLogger(name)
    if not any(isinstance(f, _ContextFilter) for f in logger.filters):
        logger.addFilter(_ContextFilter())
    return logger


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log an exception with optional structured context."""

    if context:
        logger.exception("%s | context=%s", msg, context)
    else:
        logger.exception("%s", msg)
