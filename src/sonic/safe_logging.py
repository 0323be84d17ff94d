"""Secret-safe logging utilities for sonic.

httpx logs full request URLs at INFO, and AcoustID takes its API key as a
query parameter, so log output is scrubbed before it is written:
- API keys and bearer tokens are redacted
- Audio file paths are shortened or hashed
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# Query parameters whose values are credentials
SECRET_PARAMS = ("client", "api_key", "apikey", "token", "access_token")

PATTERNS = {
    "query_secret": re.compile(
        r"([?&](?:" + "|".join(SECRET_PARAMS) + r")=)([^&\s\"']+)", re.I
    ),
    "bearer": re.compile(r"(Bearer\s+)([A-Za-z0-9._~+/=-]+)", re.I),
}


def redact_value(value: str, visible_chars: int = 4) -> str:
    """Redact a sensitive value, showing only first few characters.

    Args:
        value: Value to redact
        visible_chars: Number of characters to show

    Returns:
        Redacted string (e.g., "cSpU***")
    """
    if len(value) <= visible_chars:
        return "***"
    return f"{value[:visible_chars]}***"


def sanitize_message(message: str) -> str:
    """Redact credentials embedded in URLs and auth headers."""
    result = PATTERNS["query_secret"].sub(lambda m: m.group(1) + redact_value(m.group(2)), message)
    return PATTERNS["bearer"].sub(lambda m: m.group(1) + redact_value(m.group(2)), result)


def hash_path(file_path: Path | str, length: int = 12) -> str:
    """Hash a file path for logging."""
    return hashlib.sha256(str(file_path).encode()).hexdigest()[:length]


def safe_path(file_path: Path | str, use_hash: bool = False) -> str:
    """Get a safe representation of a path for logging.

    Returns ``parent/filename``, or a ``file:<hash>`` token when
    ``use_hash`` is set.
    """
    if use_hash:
        return f"file:{hash_path(file_path)}"
    path = Path(file_path)
    if path.parent.name:
        return f"{path.parent.name}/{path.name}"
    return path.name


class SafeLogFormatter(logging.Formatter):
    """Log formatter that redacts credentials and shortens paths."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        hash_paths: bool = False,
    ):
        super().__init__(fmt, datefmt)
        self.hash_paths = hash_paths

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so other handlers see the original record
        record = logging.makeLogRecord(record.__dict__)

        if record.args:
            record.args = self._sanitize_args(record.args)

        record.msg = sanitize_message(record.getMessage())
        record.args = None

        return super().format(record)

    def _sanitize_args(
        self, args: tuple[Any, ...] | Mapping[str, Any]
    ) -> tuple[Any, ...] | dict[str, Any]:
        if isinstance(args, Mapping):
            return {k: self._sanitize_value(v) for k, v in args.items()}
        return tuple(self._sanitize_value(arg) for arg in args)

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, Path):
            return safe_path(value, use_hash=self.hash_paths)
        return value


def configure_rich_logging(
    level: int = logging.WARNING,
    fmt: str = "%(message)s",
    hash_paths: bool = False,
    show_time: bool = True,
    show_path: bool = False,
) -> Console:
    """Configure root logging through a Rich handler on stderr.

    Returns:
        The Console used for log output, for sharing with CLI output
    """
    console = Console(stderr=True)
    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(SafeLogFormatter(fmt=fmt, hash_paths=hash_paths))

    root_logger = logging.getLogger()
    for existing in [h for h in root_logger.handlers if isinstance(h, RichHandler)]:
        root_logger.removeHandler(existing)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    return console


## Tests


def test_redact_value():
    assert redact_value("cSpUJKoF") == "cSpU***"
    assert redact_value("abc") == "***"


def test_sanitize_message_redacts_query_key():
    msg = "GET https://api.acoustid.org/v2/lookup?client=cSpUJKoF&duration=180"
    sanitized = sanitize_message(msg)
    assert "cSpUJKoF" not in sanitized
    assert "client=cSpU***" in sanitized
    assert "duration=180" in sanitized


def test_sanitize_message_redacts_bearer():
    sanitized = sanitize_message("Authorization: Bearer BQDx9abcdef")
    assert "BQDx9abcdef" not in sanitized


def test_safe_log_formatter_paths():
    formatter = SafeLogFormatter(fmt="%(message)s", hash_paths=True)
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="Recognizing %s",
        args=(Path("/home/user/music/song.mp3"),),
        exc_info=None,
    )
    formatted = formatter.format(record)
    assert "song.mp3" not in formatted
    assert "file:" in formatted


def test_configure_rich_logging_uses_format():
    root_logger = logging.getLogger()
    previous_level = root_logger.level
    configure_rich_logging(level=logging.INFO, fmt="[%(name)s] %(message)s")
    try:
        handler = next(h for h in root_logger.handlers if isinstance(h, RichHandler))
        formatter = handler.formatter
        assert isinstance(formatter, SafeLogFormatter)
        record = logging.LogRecord("sonic.primary", logging.INFO, "", 0, "hello", None, None)
        assert formatter.format(record) == "[sonic.primary] hello"
    finally:
        for h in [h for h in root_logger.handlers if isinstance(h, RichHandler)]:
            root_logger.removeHandler(h)
        root_logger.setLevel(previous_level)
