"""Ingestion pipeline: authenticate, authorize, enrich, validate, persist."""

import logging
from collections.abc import Mapping

from log_ingest_api.authorization import is_authorized
from log_ingest_api.enrichment import enrich
from log_ingest_api.models import LogEntry
from log_ingest_api.outcomes import Outcome
from log_ingest_api.store import StoreError

logger = logging.getLogger(__name__)

_ENTRY_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


class IngestionPipeline:
    """Turns an untrusted request into a persisted log entry.

    Each step can end the request: no usable credential (401), an entry for
    another application (403), validation failures (400) or a rejected store
    write (500). Steps never run out of order and nothing is retried.
    """

    def __init__(self, verifier, validator, store):
        self._verifier = verifier
        self._validator = validator
        self._store = store

    def ingest(self, authorization, payload, context) -> Outcome:
        cid = context.correlation_id

        claim = self._verifier.verify(authorization)
        if claim is None:
            logger.warning("Rejected log submission [%s]: missing or invalid credential", cid)
            return Outcome.unauthenticated()

        if not isinstance(payload, Mapping):
            logger.warning("Rejected log submission [%s]: body is not a JSON object", cid)
            return Outcome.invalid(["A log entry is required."])

        entry = LogEntry.from_dict(payload)
        if not is_authorized(claim, entry.application_name):
            logger.warning(
                "Rejected log submission [%s]: token for %r cannot submit for %r",
                cid, claim, entry.application_name,
            )
            return Outcome.forbidden(entry.application_name)

        enrich(entry, context)

        is_valid, errors = self._validator.validate(entry)
        if not is_valid:
            logger.warning("Rejected log submission [%s]: %d validation errors: %s",
                           cid, len(errors), "; ".join(errors))
            return Outcome.invalid(errors)

        try:
            self._store.index(entry.correlation_id, entry.to_document())
        except StoreError as exc:
            logger.error("Rejected log submission [%s]: store write failed: %s", cid, exc)
            return Outcome.store_failure(str(exc))

        self._log_accepted(entry)
        return Outcome.persisted(entry.to_dict())

    @staticmethod
    def _log_accepted(entry):
        level = entry.level.strip().upper()
        message = "[%s] %s %s: %s"
        args = [level, entry.application_name, entry.timestamp, entry.message]
        if level == "ERROR":
            message += "\nCode: %s\nStack: %s"
            args += [entry.error_code, entry.stack_trace]
        logger.log(_ENTRY_LOG_LEVELS.get(level, logging.INFO), message, *args)
