import logging
import socket
import time
import uuid

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from log_ingest_api.config import Config
from log_ingest_api.credentials import CredentialVerifier, TokenService
from log_ingest_api.elastic_store import ElasticsearchLogStore
from log_ingest_api.models import RequestContext, SearchFilter, parse_size, utcnow
from log_ingest_api.outcomes import Outcome
from log_ingest_api.pipeline import IngestionPipeline
from log_ingest_api.query import QueryEngine
from log_ingest_api.store import InMemoryLogStore, StoreError
from log_ingest_api.validator import LogEntryValidator

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def build_store(config):
    """Create the store backend named in the config."""
    backend = config["store"]["backend"]
    if backend == "memory":
        return InMemoryLogStore(max_size=config["store"]["max_logs"])
    if backend == "elasticsearch":
        store = ElasticsearchLogStore.from_config(config["elasticsearch"])
        try:
            store.ensure_template()
        except StoreError as exc:
            logger.error(
                "Could not install index template, retrying on each write until it succeeds "
                "(until then keyword fields map as text and stats aggregations fail): %s", exc,
            )
        return store
    raise ValueError(f"Unknown store backend: {backend!r}")


def create_app(config=None, store=None, clock=utcnow):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config()
    if store is None:
        store = build_store(config)

    server_name = config["server"]["name"] or socket.gethostname()
    debug = config["server"]["debug"]
    query_cfg = config["query"]

    tokens = TokenService.from_config(config["jwt"])
    verifier = CredentialVerifier(tokens)
    validator = LogEntryValidator(
        config["validation"]["schema_path"], profile=config["validation"]["profile"]
    )
    pipeline = IngestionPipeline(verifier, validator, store)
    engine = QueryEngine(store, clock=clock)

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "store": store,
        "tokens": tokens,
        "verifier": verifier,
        "validator": validator,
        "pipeline": pipeline,
        "engine": engine,
    }

    def request_context():
        return RequestContext(
            correlation_id=g.correlation_id,
            remote_ip=request.remote_addr,
            request_path=request.path,
            server_name=server_name,
            received_at=clock(),
        )

    def respond(outcome: Outcome):
        body = outcome.to_body(
            correlation_id=None if outcome.ok else g.correlation_id, debug=debug
        )
        return jsonify(body), outcome.status_code

    def require_credential():
        if verifier.verify(request.headers.get("Authorization")) is None:
            logger.warning("Rejected %s %s [%s]: missing or invalid credential",
                           request.method, request.path, g.correlation_id)
            return respond(Outcome.unauthenticated())
        return None

    # --- Request logging ---

    @app.before_request
    def start_request():
        g.started_at = time.perf_counter()
        g.correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

    @app.after_request
    def finish_request(response):
        correlation_id = g.get("correlation_id")
        if correlation_id:
            response.headers[CORRELATION_HEADER] = correlation_id
        elapsed_ms = (time.perf_counter() - g.get("started_at", time.perf_counter())) * 1000
        logger.info(
            "API %s %s responded %d in %.1fms [correlation_id=%s remote_ip=%s]",
            request.method, request.path, response.status_code, elapsed_ms,
            correlation_id, request.remote_addr,
        )
        return response

    @app.errorhandler(Exception)
    def handle_error(exc):
        correlation_id = g.get("correlation_id")
        if isinstance(exc, HTTPException):
            body = {"success": False, "message": exc.description, "error": exc.name}
            return jsonify(body), exc.code
        logger.exception("Unhandled exception occurred [%s]", correlation_id)
        return jsonify({
            "success": False,
            "message": "An error occurred while processing your request",
            "error": "Unexpected",
            "correlationId": correlation_id,
        }), 500

    # --- Routes ---

    @app.route("/auth/token", methods=["POST"])
    def issue_token():
        data = request.get_json(silent=True) or {}
        application_name = data.get("applicationName") if isinstance(data, dict) else None
        if not isinstance(application_name, str) or not application_name.strip():
            return jsonify({"success": False, "message": "Missing ApplicationName"}), 400
        logger.info("Issued token for application %s", application_name)
        return jsonify({"token": tokens.issue(application_name)})

    @app.route("/logs", methods=["POST"])
    def submit_log():
        outcome = pipeline.ingest(
            request.headers.get("Authorization"),
            request.get_json(silent=True),
            request_context(),
        )
        return respond(outcome)

    @app.route("/logs", methods=["GET"])
    def ping():
        return respond(Outcome.success("API is up!", clock().isoformat()))

    @app.route("/logs/recent")
    def recent_logs():
        denied = require_credential()
        if denied:
            return denied
        size = parse_size(request.args.get("size"), query_cfg["recent_size"], query_cfg["max_size"])
        return respond(engine.recent(size, g.correlation_id))

    @app.route("/logs/search")
    def search_logs():
        denied = require_credential()
        if denied:
            return denied
        search = SearchFilter.from_args(
            request.args,
            default_size=query_cfg["default_size"],
            max_size=query_cfg["max_size"],
        )
        return respond(engine.search(search, g.correlation_id))

    @app.route("/logs/stats")
    def stats():
        return respond(engine.statistics(g.correlation_id))

    @app.route("/logs/health")
    @app.route("/logs/es-health")
    def store_health():
        return respond(engine.health(g.correlation_id))

    return app
