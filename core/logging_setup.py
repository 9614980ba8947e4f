"""Logging configuration for the LayerEdge node bot.

Sets up a dual-handler logging pipeline:

1. **Console** -- :class:`SafeStreamHandler` that gracefully handles
   Unicode on Windows by falling back to ``cp1252`` replacement
   encoding.
2. **File** -- :class:`CompressedRotatingFileHandler` writing to
   ``logs/layeredge_bot.log`` with automatic gzip rotation (10 MiB per
   file, 5 backups).

On top of the standard library logger, :class:`BotLogger` is the
logging capability handed to the executor, the wallet sessions and the
scheduler.  It adds the ``verbose``, ``success`` and ``progress``
levels and renders HTTP transport error details.

Usage::

    from core.logging_setup import BotLogger, setup_logging
    setup_logging("DEBUG")
    log = BotLogger(verbose=True)
"""

import gzip
import io
import json
import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from core.config import LOGS_DIR

VERBOSE = 15
SUCCESS = 25
logging.addLevelName(VERBOSE, "VERBOSE")
logging.addLevelName(SUCCESS, "SUCCESS")

PROGRESS_MARKS = {
    "success": "✔",
    "failed": "✘",
}


class CompressedRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that gzip-compresses rotated log files.

    Rotated files are renamed with a ``.gz`` suffix and compressed
    in-place, keeping disk usage low for a bot that never exits.
    """

    def rotation_filename(self, default_name: str) -> str:
        """Append ``.gz`` to the rotated file name."""
        return f"{default_name}.gz"

    def rotate(self, source: str, dest: str) -> None:
        """Compress *source* into *dest* using gzip, then remove *source*."""
        with open(source, 'rb') as f_in:
            with gzip.open(dest, 'wb') as f_out:
                shutil.copyfileobj(f_in, f_out)
        os.remove(source)


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that safely handles Unicode on Windows.

    Progress lines carry check marks that narrow Windows code pages
    cannot encode; on :exc:`UnicodeEncodeError` the message is
    re-encoded as ``cp1252`` with replacement characters.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            stream = self.stream
            if sys.platform == "win32":
                try:
                    stream.write(msg + self.terminator)
                except UnicodeEncodeError:
                    safe_msg = msg.encode(
                        'cp1252', errors='replace',
                    ).decode('cp1252')
                    stream.write(safe_msg + self.terminator)
            else:
                stream.write(msg + self.terminator)
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure the root logger with console and file handlers.

    Args:
        log_level: Logging level name (``"VERBOSE"`` is accepted in
            addition to the standard names).  Defaults to ``"INFO"``.
        log_file: Override for the log file path.
    """
    if sys.platform == "win32" and hasattr(sys.stdout, 'reconfigure'):
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')
        sys.stderr.reconfigure(encoding='utf-8', errors='replace')
    elif sys.platform == "win32":
        sys.stdout = io.TextIOWrapper(
            sys.stdout.buffer,
            encoding='utf-8',
            errors='replace',
            line_buffering=True,
        )

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    log_path = log_file or str(LOGS_DIR / "layeredge_bot.log")
    os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
    file_handler = CompressedRotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8',
    )
    stream_handler = SafeStreamHandler(sys.stdout)

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s - %(message)s',
        handlers=[file_handler, stream_handler],
        force=True,
    )


def format_error(error: Optional[BaseException]) -> str:
    """Render an exception for the log, with HTTP details when known.

    For :class:`~core.requester.HttpTransportError` the output lists the
    status code, status text, request URL, method, response body and
    request headers.
    """
    from core.requester import HttpTransportError

    if error is None:
        return ""
    text = str(error) or error.__class__.__name__
    if isinstance(error, HttpTransportError):
        text += (
            f"\nStatus: {error.status if error.status is not None else 'N/A'}"
            f"\nStatus text: {error.reason or 'N/A'}"
            f"\nURL: {error.url or 'N/A'}"
            f"\nMethod: {(error.method or 'N/A').upper()}"
            f"\nResponse data: {_to_json(error.body or {}, indent=2)}"
            f"\nRequest headers: {_to_json(error.headers or {}, indent=2)}"
        )
    return text


def _to_json(value: Any, indent: Optional[int] = None) -> str:
    try:
        return json.dumps(value, indent=indent, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


class BotLogger:
    """Leveled logging capability passed to bot components.

    Every call takes a *message* and an optional *value* (dicts and
    lists are JSON-encoded).  ``error`` additionally accepts the
    exception whose details are appended when ``verbose`` is on.

    Args:
        name: Name of the underlying :mod:`logging` logger.
        verbose: Emit ``verbose`` lines and error details.
        logger: Pre-built logger to wrap instead of *name*.
    """

    def __init__(
        self,
        name: str = "layeredge",
        verbose: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.verbose_enabled = verbose
        self._logger = logger or logging.getLogger(name)

    def log(
        self,
        level: int,
        message: str,
        value: Any = "",
        error: Optional[BaseException] = None,
    ) -> None:
        text = message
        if value not in ("", None):
            formatted = _to_json(value) if isinstance(value, (dict, list)) else str(value)
            text = f"{text} {formatted}"
        if error is not None and self.verbose_enabled:
            text = f"{text}\n{format_error(error)}"
        self._logger.log(level, text)

    def info(self, message: str, value: Any = "") -> None:
        self.log(logging.INFO, message, value)

    def warn(self, message: str, value: Any = "", error: Optional[BaseException] = None) -> None:
        self.log(logging.WARNING, message, value, error)

    def error(self, message: str, value: Any = "", error: Optional[BaseException] = None) -> None:
        self.log(logging.ERROR, message, value, error)

    def success(self, message: str, value: Any = "") -> None:
        self.log(SUCCESS, message, value)

    def debug(self, message: str, value: Any = "") -> None:
        self.log(logging.DEBUG, message, value)

    def verbose(self, message: str, value: Any = "") -> None:
        if self.verbose_enabled:
            self.log(VERBOSE, message, value)

    def progress(self, wallet: str, step: str, status: str) -> None:
        """Log one step of a wallet's sequence.

        *status* is ``"start"``, ``"processing"``, ``"success"`` or
        ``"failed"``.
        """
        mark = PROGRESS_MARKS.get(status, "➤")
        self._logger.info("[PROGRESS] %s %s - %s", mark, wallet, step)
