"""Server-side enrichment of submitted entries."""

from log_ingest_api.models import ANONYMOUS_USER, LogEntry, RequestContext


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def enrich(entry: LogEntry, context: RequestContext) -> LogEntry:
    """Fill server-known fields that the caller left empty.

    Caller-supplied values are never replaced, so enriching twice is the
    same as enriching once. The entry is modified in place and returned.
    """
    defaults = {
        "correlation_id": context.correlation_id,
        "server_name": context.server_name,
        "remote_server_ip": context.remote_ip,
        "request_path": context.request_path,
        "timestamp": context.received_at.isoformat(),
        "user_id": context.user_name or ANONYMOUS_USER,
    }
    for attr, value in defaults.items():
        if _is_blank(getattr(entry, attr)) and not _is_blank(value):
            setattr(entry, attr, value)
    return entry
