"""Search and statistics over stored log entries."""

import logging

from log_ingest_api.models import (
    DOCUMENT_TIMESTAMP_FIELD,
    SearchFilter,
    StatsSnapshot,
    document_to_entry_dict,
    utcnow,
)
from log_ingest_api.outcomes import Outcome
from log_ingest_api.store import StoreError

logger = logging.getLogger(__name__)

TEXT_FIELDS = ["message", "source", "errorCode", "stackTrace", "requestPath", "userId"]
NO_ACTIVE_USER = "N/A"

VALIDATION_ERROR_RANGE = {"range": {"statusCode": {"gte": 400, "lte": 499}}}
SERVER_ERROR_RANGE = {"range": {"statusCode": {"gte": 500}}}


def _window_start(now, window):
    # windows reaching past datetime.min apply no filter
    if window is None:
        return None
    try:
        return now - window
    except OverflowError:
        return None


def build_search_query(search: SearchFilter, now) -> dict:
    """AND together the application, free-text and time-window clauses."""
    clauses = []
    if search.application_name:
        clauses.append({"term": {"applicationName": search.application_name}})
    if search.query:
        clauses.append({"multi_match": {"query": search.query, "fields": TEXT_FIELDS}})
    since = _window_start(now, search.window)
    if since is not None:
        clauses.append({
            "range": {
                "requestDateTime": {
                    "gte": since.isoformat(),
                    "lte": now.isoformat(),
                }
            }
        })
    if not clauses:
        return {"match_all": {}}
    return {"bool": {"filter": clauses}}


def _rate(count, total):
    if total == 0:
        return 0.0
    return round(count * 100.0 / total, 2)


def compute_snapshot(total, validation_errors, server_errors, top_user, computed_at) -> StatsSnapshot:
    validation_rate = _rate(validation_errors, total)
    server_rate = _rate(server_errors, total)
    return StatsSnapshot(
        total_logs=total,
        validation_errors=validation_errors,
        server_errors=server_errors,
        validation_error_rate=validation_rate,
        server_error_rate=server_rate,
        total_error_rate=round(validation_rate + server_rate, 2),
        most_active_user=top_user[0] if top_user else NO_ACTIVE_USER,
        computed_at=computed_at,
    )


class QueryEngine:
    """Read side of the service. Every call goes to the store; nothing is cached."""

    def __init__(self, store, clock=utcnow):
        self._store = store
        self._clock = clock

    def search(self, search: SearchFilter, correlation_id=None) -> Outcome:
        query = build_search_query(search, self._clock())
        try:
            docs = self._store.search(query, search.size, "requestDateTime")
        except StoreError as exc:
            logger.error("Log search failed [%s]: %s", correlation_id, exc)
            return Outcome.store_failure(str(exc))
        entries = [document_to_entry_dict(d) for d in docs]
        return Outcome.success(f"Found {len(entries)} log entries.", entries)

    def recent(self, size: int, correlation_id=None) -> Outcome:
        try:
            docs = self._store.search({"match_all": {}}, size, DOCUMENT_TIMESTAMP_FIELD)
        except StoreError as exc:
            logger.error("Fetching recent logs failed [%s]: %s", correlation_id, exc)
            return Outcome.store_failure(str(exc))
        entries = [document_to_entry_dict(d) for d in docs]
        if not entries:
            return Outcome.success("No log entries stored yet.", [])
        return Outcome.success(f"Retrieved {len(entries)} recent log entries.", entries)

    def statistics(self, correlation_id=None) -> Outcome:
        try:
            total = self._store.count()
            validation_errors = self._store.count(VALIDATION_ERROR_RANGE)
            server_errors = self._store.count(SERVER_ERROR_RANGE)
            top_user = self._store.top_value("userId")
        except StoreError as exc:
            logger.error("Computing statistics failed [%s]: %s", correlation_id, exc)
            return Outcome.store_failure(str(exc))
        snapshot = compute_snapshot(total, validation_errors, server_errors, top_user, self._clock())
        return Outcome.success("Statistics computed.", snapshot.to_dict())

    def health(self, correlation_id=None) -> Outcome:
        try:
            payload = self._store.health()
        except StoreError as exc:
            logger.error("Store health check failed [%s]: %s", correlation_id, exc)
            return Outcome.store_unavailable(str(exc))
        if not payload["isHealthy"]:
            logger.error("Store health check [%s]: cluster status %s", correlation_id, payload["status"])
            return Outcome.store_unavailable(f"cluster status {payload['status']}", payload)
        return Outcome.success("Store is healthy.", payload)
