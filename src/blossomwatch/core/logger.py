"""
Event-style structured logging.

Every log line is an event name followed by fields::

    info discovery relays_selected core=4 sampled=16 total=20

[Logger][blossomwatch.core.logger.Logger] attaches the fields to the stdlib
record as ``structured_kv``; [StructuredFormatter][blossomwatch.core.logger.StructuredFormatter],
installed by the CLI on the root handler, renders them. The utils and nips
layers log through plain ``logging.getLogger(__name__)`` with the fields
already interpolated, and the formatter gives them the same prefix.

A ``Logger`` built with ``json_output=True`` emits one JSON object per line
instead, for log shippers.
"""

import datetime
import json
import logging
from typing import Any, ClassVar


_NEEDS_QUOTING = frozenset(" =\"'")


def _truncate(value: str, limit: int | None) -> str:
    if not limit or len(value) <= limit:
        return value
    return f"{value[:limit]}...<truncated {len(value) - limit} chars>"


def _render_value(value: Any, limit: int | None) -> str:
    text = _truncate(str(value), limit)
    if text and _NEEDS_QUOTING.isdisjoint(text):
        return text
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Render *kwargs* as ``key=value`` pairs separated by spaces.

    Empty values and values holding spaces, ``=`` or quotes are wrapped in
    double quotes with backslash escaping. Returns ``""`` for no fields,
    otherwise the pairs preceded by *prefix*.
    """
    if not kwargs:
        return ""
    return prefix + " ".join(f"{key}={_render_value(value, max_value_length)}" for key, value in kwargs.items())


class StructuredFormatter(logging.Formatter):
    """Render records as ``<level> <logger> <event> [key=value ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = " ".join((record.levelname.lower(), record.name, record.getMessage()))
        fields = getattr(record, "structured_kv", None)
        if fields:
            line += format_kv_pairs(fields)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class Logger:
    """Thin wrapper over a stdlib logger taking event fields as keywords.

    Field values longer than *max_value_length* (default 1000 characters)
    are truncated before they reach the handler, so a relay echoing a huge
    payload cannot flood the log.

    Examples:
        ```python
        logger = Logger("discovery")
        logger.info("cycle_completed", servers=12, duration_s=4.2)
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = (
            self._DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length
        )

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, event: str, fields: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            document = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "service": self.name,
                "message": event,
                **fields,
            }
            self._logger.log(level, json.dumps(document, default=str), exc_info=exc_info)
            return

        extra = {}
        if fields:
            extra["structured_kv"] = {
                key: _truncate(str(value), self._max_value_length)
                if len(str(value)) > self._max_value_length > 0
                else value
                for key, value in fields.items()
            }
        self._logger.log(level, event, extra=extra, exc_info=exc_info)

    def debug(self, event: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields)

    def critical(self, event: str, **fields: Any) -> None:
        self._emit(logging.CRITICAL, event, fields)

    def exception(self, event: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, event, fields, exc_info=True)
