import copy
import ipaddress
import json
import os
import re

import jsonschema
from rfc3339_validator import validate_rfc3339

from log_ingest_api.models import LEVELS, parse_instant

DEFAULT_SCHEMA_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "schemas", "log_entry.json"
)

PROFILES = ("standard", "strict")
STRICT_REQUIRED = ["statusCode", "requestDateTime", "responseDateTime", "requestHeaders"]

_REQUIRED_RE = re.compile(r"^'(?P<field>[^']+)' is a required property")


def _build_format_checker():
    checker = jsonschema.FormatChecker(formats=())

    @checker.checks("date-time")
    def is_date_time(value):
        # RFC 3339 only: the store's date mapping rejects other ISO-8601 forms
        if not isinstance(value, str):
            return True
        if value != value.strip() or not validate_rfc3339(value):
            return False
        return parse_instant(value) is not None

    @checker.checks("ip-address", raises=ValueError)
    def is_ip_address(value):
        if not isinstance(value, str):
            return True
        ipaddress.ip_address(value)
        return True

    return checker


def _label(field):
    return field[:1].upper() + field[1:]


def _describe(error):
    """Translate a jsonschema error into a (field, message) pair."""
    if error.validator == "required":
        match = _REQUIRED_RE.match(error.message)
        field = match.group("field") if match else None
        if field:
            return field, f"The {field} field is required."
        return None, error.message

    field = error.absolute_path[0] if error.absolute_path else None
    if field is None:
        return None, error.message
    if field == "level" and error.validator == "pattern":
        return field, f"Level must be one of: {', '.join(LEVELS)}"
    if error.validator == "pattern":
        return field, f"{_label(field)} must not be empty or whitespace."
    if error.validator in ("minimum", "maximum"):
        return field, f"{_label(field)} must be between 100 and 599."
    if error.validator == "type":
        if len(error.absolute_path) > 1:
            return field, f"{_label(field)} values must be strings."
        return field, f"{_label(field)} must be of type {error.validator_value}."
    if error.validator == "format":
        if error.validator_value == "date-time":
            return field, f"{_label(field)} must be an ISO-8601 date-time."
        if error.validator_value == "ip-address":
            return field, f"{_label(field)} must be a valid IP address."
    return field, f"{_label(field)}: {error.message}"


class LogEntryValidator:
    """Validates log entries against the JSON schema plus cross-field rules.

    The ``strict`` profile additionally requires the status code, request
    and response timing, and at least one request header.
    """

    def __init__(self, schema_path=None, profile="strict"):
        if profile not in PROFILES:
            raise ValueError(f"Unknown validation profile: {profile!r}")
        with open(schema_path or DEFAULT_SCHEMA_PATH, "r") as f:
            schema = json.load(f)

        self._profile = profile
        self._schema = self._apply_profile(schema, profile)
        self._field_order = list(self._schema.get("properties", {}))
        self._validator = jsonschema.Draft202012Validator(
            self._schema, format_checker=_build_format_checker()
        )

    @property
    def profile(self):
        return self._profile

    @staticmethod
    def _apply_profile(schema, profile):
        schema = copy.deepcopy(schema)
        if profile == "strict":
            required = schema.setdefault("required", [])
            required.extend(f for f in STRICT_REQUIRED if f not in required)
        return schema

    def _rank(self, field):
        try:
            return self._field_order.index(field)
        except ValueError:
            return len(self._field_order)

    def validate(self, entry):
        """Validate a log entry.

        Returns:
            tuple: (is_valid: bool, errors: list[str]) with every failure,
            in schema field order, followed by cross-field failures.
        """
        if entry is None:
            return False, ["A log entry is required."]

        document = entry.to_dict()
        described = [_describe(e) for e in self._validator.iter_errors(document)]
        described.sort(key=lambda item: self._rank(item[0]))
        errors = []
        for _, message in described:
            if message not in errors:
                errors.append(message)

        errors.extend(self._cross_field_errors(entry))
        return not errors, errors

    def _cross_field_errors(self, entry):
        errors = []
        requested = parse_instant(entry.request_date_time)
        responded = parse_instant(entry.response_date_time)
        if requested and responded and responded < requested:
            errors.append("ResponseDateTime must not be earlier than RequestDateTime.")

        if self._profile == "strict" and isinstance(entry.request_headers, dict):
            if not entry.request_headers:
                errors.append("RequestHeaders must contain at least one entry.")
        return errors
