from datetime import datetime, timezone

import pytest

from log_ingest_api.app import create_app
from log_ingest_api.config import Config
from log_ingest_api.credentials import CredentialVerifier, TokenService
from log_ingest_api.models import RequestContext
from log_ingest_api.store import InMemoryLogStore
from log_ingest_api.validator import LogEntryValidator

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_payload():
    return {
        "timestamp": "2024-01-15T10:30:00Z",
        "level": "INFO",
        "message": "Transfer completed",
        "source": "payments-service",
        "applicationName": "Bank",
        "userId": "user-123",
        "requestPath": "/api/transfers",
        "statusCode": 200,
        "requestDateTime": "2024-01-15T10:29:59Z",
        "responseDateTime": "2024-01-15T10:30:00Z",
        "requestHeaders": {"Content-Type": "application/json"},
    }


@pytest.fixture
def context():
    return RequestContext(
        correlation_id="corr-001",
        remote_ip="10.0.0.5",
        request_path="/logs",
        server_name="log-api-01",
        received_at=FIXED_NOW,
    )


@pytest.fixture
def config():
    return Config(env={})


@pytest.fixture
def tokens(config):
    return TokenService.from_config(config["jwt"])


@pytest.fixture
def verifier(tokens):
    return CredentialVerifier(tokens)


@pytest.fixture
def validator():
    return LogEntryValidator()


@pytest.fixture
def store():
    return InMemoryLogStore()


@pytest.fixture
def app(config, store):
    """Create a Flask test app backed by the in-memory store."""
    application = create_app(config, store=store)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()


@pytest.fixture
def auth_headers(tokens):
    return {"Authorization": f"Bearer {tokens.issue('Bank')}"}
