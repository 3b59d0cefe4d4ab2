"""Data model: log entries, request context, search filters and stats."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

JsonValue = Union[None, bool, int, float, str, list["JsonValue"], dict[str, "JsonValue"]]

LEVELS = ("INFO", "WARN", "ERROR", "DEBUG")
ANONYMOUS_USER = "Anonymous"


def to_json_value(value) -> JsonValue:
    """Normalize *value* into plain JSON data.

    Datetimes become ISO-8601 strings, tuples become lists and mappings
    become dicts with string keys. Anything else raises TypeError.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(k): to_json_value(v) for k, v in value.items()}
    raise TypeError(f"Unsupported JSON value: {type(value).__name__}")


def parse_instant(value) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware datetime, or None.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# attribute -> (wire name, input aliases)
_WIRE_NAMES = {
    "timestamp": ("timestamp", ("@timestamp",)),
    "level": ("level", ()),
    "message": ("message", ()),
    "source": ("source", ("service",)),
    "application_name": ("applicationName", ()),
    "correlation_id": ("correlationId", ()),
    "user_id": ("userId", ("user",)),
    "request_path": ("requestPath", ()),
    "remote_server_ip": ("remoteServerIp", ()),
    "server_name": ("serverName", ()),
    "status_code": ("statusCode", ("status",)),
    "error_code": ("errorCode", ()),
    "stack_trace": ("stackTrace", ()),
    "request_id": ("requestId", ()),
    "request_date_time": ("requestDateTime", ()),
    "response_date_time": ("responseDateTime", ()),
    "request_headers": ("requestHeaders", ()),
    "metadata": ("metadata", ()),
}

DOCUMENT_TIMESTAMP_FIELD = "@timestamp"


@dataclass
class LogEntry:
    """A submitted log event.

    Values are kept exactly as decoded from the request body; type and
    format problems are reported by the validator rather than raised here.
    """

    timestamp: Optional[str] = None
    level: Optional[str] = None
    message: Optional[str] = None
    source: Optional[str] = None
    application_name: Optional[str] = None
    correlation_id: Optional[str] = None
    user_id: Optional[str] = None
    request_path: Optional[str] = None
    remote_server_ip: Optional[str] = None
    server_name: Optional[str] = None
    status_code: Optional[int] = None
    error_code: Optional[str] = None
    stack_trace: Optional[str] = None
    request_id: Optional[str] = None
    request_date_time: Optional[str] = None
    response_date_time: Optional[str] = None
    request_headers: Optional[dict[str, str]] = None
    metadata: Optional[dict[str, JsonValue]] = None

    @classmethod
    def from_dict(cls, payload: Mapping) -> "LogEntry":
        """Build an entry from a wire payload, accepting field aliases."""
        kwargs = {}
        for attr, (wire, aliases) in _WIRE_NAMES.items():
            for key in (wire, *aliases):
                if key in payload:
                    kwargs[attr] = payload[key]
                    break
        return cls(**kwargs)

    @classmethod
    def from_document(cls, document: Mapping) -> "LogEntry":
        return cls.from_dict(document)

    def to_dict(self) -> dict[str, JsonValue]:
        """Wire form with camelCase names; unset fields are omitted."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                result[_WIRE_NAMES[f.name][0]] = value
        return result

    def to_document(self) -> dict[str, JsonValue]:
        """Store form: like the wire form but with ``@timestamp``."""
        document = to_json_value(self.to_dict())
        if "timestamp" in document:
            document[DOCUMENT_TIMESTAMP_FIELD] = document.pop("timestamp")
        return document


def document_to_entry_dict(document: Mapping) -> dict[str, JsonValue]:
    """Convert a stored document back into the wire form."""
    return LogEntry.from_document(document).to_dict()


@dataclass(frozen=True)
class RequestContext:
    correlation_id: str
    remote_ip: Optional[str] = None
    request_path: Optional[str] = None
    server_name: Optional[str] = None
    user_name: Optional[str] = None
    received_at: datetime = field(default_factory=utcnow)


_WINDOW_RE = re.compile(r"^\s*(\d+)\s*([dhm])\s*$", re.IGNORECASE)
_WINDOW_UNITS = {"d": "days", "h": "hours", "m": "minutes"}


def parse_window(last) -> Optional[timedelta]:
    """Parse a relative window such as ``2d``, ``6h`` or ``15m``.

    Returns None for anything malformed, meaning no time filter.
    """
    if not isinstance(last, str):
        return None
    match = _WINDOW_RE.match(last)
    if not match:
        return None
    amount, unit = int(match.group(1)), match.group(2).lower()
    try:
        return timedelta(**{_WINDOW_UNITS[unit]: amount})
    except OverflowError:
        return None


def parse_size(value, default: int, max_size: int) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(size, max_size))


@dataclass(frozen=True)
class SearchFilter:
    query: Optional[str] = None
    application_name: Optional[str] = None
    window: Optional[timedelta] = None
    size: int = 100

    @classmethod
    def from_args(cls, args: Mapping, default_size: int = 100, max_size: int = 10000) -> "SearchFilter":
        """Build a filter from query-string arguments.

        Malformed ``last`` and ``size`` values are ignored.
        """
        query = (args.get("query") or "").strip() or None
        application_name = (args.get("applicationName") or "").strip() or None
        return cls(
            query=query,
            application_name=application_name,
            window=parse_window(args.get("last")),
            size=parse_size(args.get("size"), default_size, max_size),
        )


@dataclass(frozen=True)
class StatsSnapshot:
    total_logs: int
    validation_errors: int
    server_errors: int
    validation_error_rate: float
    server_error_rate: float
    total_error_rate: float
    most_active_user: str
    computed_at: datetime

    def to_dict(self) -> dict[str, JsonValue]:
        return {
            "totalLogs": self.total_logs,
            "validationErrors": self.validation_errors,
            "serverErrors": self.server_errors,
            "validationErrorRate": self.validation_error_rate,
            "serverErrorRate": self.server_error_rate,
            "totalErrorRate": self.total_error_rate,
            "mostActiveUser": self.most_active_user,
            "timestamp": self.computed_at.isoformat(),
        }
