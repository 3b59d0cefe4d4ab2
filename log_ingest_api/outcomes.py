"""Typed results of ingestion and query operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from log_ingest_api.models import JsonValue


class OutcomeKind(Enum):
    OK = "ok"
    PERSISTED = "persisted"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    INVALID = "invalid"
    STORE_FAILURE = "store_failure"
    STORE_UNAVAILABLE = "store_unavailable"


STATUS_CODES = {
    OutcomeKind.OK: 200,
    OutcomeKind.PERSISTED: 201,
    OutcomeKind.UNAUTHENTICATED: 401,
    OutcomeKind.FORBIDDEN: 403,
    OutcomeKind.INVALID: 400,
    OutcomeKind.STORE_FAILURE: 500,
    OutcomeKind.STORE_UNAVAILABLE: 503,
}

ERROR_LABELS = {
    OutcomeKind.UNAUTHENTICATED: "Unauthenticated",
    OutcomeKind.FORBIDDEN: "Forbidden",
    OutcomeKind.INVALID: "Invalid log format.",
    OutcomeKind.STORE_FAILURE: "Store failure",
    OutcomeKind.STORE_UNAVAILABLE: "Store unavailable",
}


@dataclass(frozen=True)
class Outcome:
    """Terminal state of one operation.

    ``detail`` holds the internal cause of a failure. It is logged, and only
    returned to callers when the debug profile is enabled.
    """

    kind: OutcomeKind
    message: str
    data: JsonValue = None
    errors: tuple[str, ...] = ()
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.OK, OutcomeKind.PERSISTED)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_body(self, correlation_id: Optional[str] = None, debug: bool = False) -> dict:
        if self.ok:
            return {"success": True, "message": self.message, "data": self.data}
        body = {
            "success": False,
            "message": self.message,
            "error": ERROR_LABELS[self.kind],
        }
        if self.errors:
            body["errors"] = list(self.errors)
        if self.data is not None:
            body["data"] = self.data
        if debug and self.detail:
            body["detail"] = self.detail
        if correlation_id:
            body["correlationId"] = correlation_id
        return body

    @classmethod
    def success(cls, message: str, data: JsonValue = None) -> "Outcome":
        return cls(OutcomeKind.OK, message, data)

    @classmethod
    def persisted(cls, data: JsonValue) -> "Outcome":
        return cls(OutcomeKind.PERSISTED, "Log accepted.", data)

    @classmethod
    def unauthenticated(cls) -> "Outcome":
        return cls(OutcomeKind.UNAUTHENTICATED, "A valid bearer token is required.")

    @classmethod
    def forbidden(cls, application_name) -> "Outcome":
        return cls(
            OutcomeKind.FORBIDDEN,
            f"Token is not authorized to submit logs for application '{application_name or ''}'.",
        )

    @classmethod
    def invalid(cls, errors) -> "Outcome":
        return cls(OutcomeKind.INVALID, "Validation failed", errors=tuple(errors))

    @classmethod
    def store_failure(cls, detail: str) -> "Outcome":
        return cls(
            OutcomeKind.STORE_FAILURE,
            "The log store could not complete the request.",
            detail=detail,
        )

    @classmethod
    def store_unavailable(cls, detail: str, data: JsonValue = None) -> "Outcome":
        return cls(
            OutcomeKind.STORE_UNAVAILABLE,
            "The log store is unavailable.",
            data=data,
            detail=detail,
        )
