"""
Diagnostic event logger for the credential issuer.

Writes structured events as JSON lines, human-readable text, or both, and
masks secrets (private keys, RPC URLs carrying API keys, mnemonics) before
anything reaches the output stream. This is operator diagnostics; the
user-facing record of issuance actions lives in tx_log.TxLog.
"""

import json
import sys
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO

from .enums import LogLevel


@dataclass
class LogEvent:
    """A single diagnostic event."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)


class EventLogger:
    """
    Structured logger with JSON and text output.

    Supports:
    - 'json', 'text' or 'both' output formats
    - A minimum level below which events are dropped
    - Recursive masking of sensitive keys in event data
    """

    SENSITIVE_KEYS = frozenset({
        'private_key', 'secret', 'password', 'api_key', 'mnemonic',
        'seed', 'rpc_url', 'access_token', 'bearer', 'authorization',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.INFO,
        history: int = 500,
    ):
        """
        Initialize the event logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for events (defaults to sys.stderr)
            min_level: Events below this level are discarded
            history: Number of recent events kept in memory
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._min_level = min_level
        self._events: deque[LogEvent] = deque(maxlen=history)

    @classmethod
    def from_level_name(
        cls,
        level: str,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
    ) -> "EventLogger":
        """Build a logger from a level name such as 'debug' or 'warn'."""
        try:
            min_level = LogLevel(level.lower())
        except ValueError:
            min_level = LogLevel.INFO
        return cls(output_format, output_stream, min_level)

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def events(self) -> list[LogEvent]:
        """Most recent emitted events, oldest first."""
        return list(self._events)

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEvent]:
        """
        Emit an event if it meets the minimum level.

        Returns:
            The emitted LogEvent, or None if it was filtered out
        """
        if level.rank < self._min_level.rank:
            return None

        event = LogEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._events.append(event)
        self._write(event)
        return event

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEvent]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEvent]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEvent]:
        return self.log(LogLevel.WARN, component, message, data)

    def error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        data: Optional[dict] = None,
    ) -> Optional[LogEvent]:
        """Log an error, attaching the exception type and message if given."""
        payload = dict(data) if data else {}
        if error is not None:
            payload["error_message"] = str(error)
            payload["error_type"] = type(error).__name__
        return self.log(LogLevel.ERROR, component, message, payload)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Return a copy of data with sensitive values replaced."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if any(s in key_lower for s in self.SENSITIVE_KEYS):
                masked[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                masked[key] = self.mask_sensitive_data(value)
            elif isinstance(value, (list, tuple)):
                masked[key] = [
                    self.mask_sensitive_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value
        return masked

    def format_json(self, event: LogEvent) -> str:
        return json.dumps({
            "timestamp": event.timestamp,
            "level": event.level.value,
            "component": event.component,
            "message": event.message,
            "data": event.data,
        }, ensure_ascii=False, default=str)

    def format_text(self, event: LogEvent) -> str:
        # [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        line = f"[{event.timestamp}] {event.level.value.upper()} [{event.component}] {event.message}"
        if event.data:
            line += " " + json.dumps(event.data, ensure_ascii=False, default=str)
        return line

    def _write(self, event: LogEvent) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self.format_json(event) + "\n")
        if self._output_format in ("text", "both"):
            self._output_stream.write(self.format_text(event) + "\n")
        self._output_stream.flush()
