"""Elasticsearch backend for the log store."""

import logging

from elasticsearch import ApiError, Elasticsearch, TransportError

from log_ingest_api.models import utcnow
from log_ingest_api.store import LogStore, StoreError

logger = logging.getLogger(__name__)

_KEYWORD = {"type": "keyword"}
_DATE = {"type": "date"}

LOG_MAPPINGS = {
    "properties": {
        "@timestamp": _DATE,
        "level": _KEYWORD,
        "message": {"type": "text"},
        "source": _KEYWORD,
        "applicationName": _KEYWORD,
        "correlationId": _KEYWORD,
        "userId": _KEYWORD,
        "requestPath": _KEYWORD,
        "remoteServerIp": _KEYWORD,
        "serverName": _KEYWORD,
        "statusCode": {"type": "integer"},
        "errorCode": _KEYWORD,
        "stackTrace": {"type": "text"},
        "requestId": _KEYWORD,
        "requestDateTime": _DATE,
        "responseDateTime": _DATE,
        "requestHeaders": {"type": "flattened"},
        "metadata": {"type": "object", "enabled": False},
    }
}

_STATUS_DESCRIPTIONS = {
    "green": "All primary and replica shards are allocated",
    "yellow": "All primary shards are allocated, some replicas are not",
    "red": "Some primary shards are not allocated",
}


class ElasticsearchLogStore(LogStore):
    """Stores one document per entry in daily ``<prefix>-YYYY.MM.DD`` indices."""

    def __init__(self, client, index_prefix="logging-api", clock=utcnow):
        self._client = client
        self._prefix = index_prefix
        self._clock = clock
        self._template_ready = False

    @classmethod
    def from_config(cls, es_config: dict) -> "ElasticsearchLogStore":
        kwargs = {
            "request_timeout": es_config["request_timeout"],
            "max_retries": 0,
            "retry_on_timeout": False,
            "verify_certs": es_config["verify_certs"],
        }
        if es_config.get("username"):
            kwargs["basic_auth"] = (es_config["username"], es_config.get("password") or "")
        client = Elasticsearch(es_config["url"], **kwargs)
        return cls(client, index_prefix=es_config["index_prefix"])

    @property
    def write_index(self):
        return f"{self._prefix}-{self._clock():%Y.%m.%d}"

    @property
    def read_pattern(self):
        return f"{self._prefix}-*"

    def ensure_template(self):
        """Install the index template for the daily indices."""
        try:
            self._client.indices.put_index_template(
                name=f"{self._prefix}-template",
                index_patterns=[self.read_pattern],
                template={"mappings": LOG_MAPPINGS},
            )
        except (ApiError, TransportError) as exc:
            raise StoreError(f"index template update failed: {exc}") from exc
        self._template_ready = True
        logger.info("Index template installed for %s", self.read_pattern)

    def index(self, doc_id, document):
        if not self._template_ready:
            try:
                self.ensure_template()
            except StoreError as exc:
                logger.error("Index template still missing, writing with dynamic mappings: %s", exc)
        index = self.write_index
        try:
            resp = self._client.index(index=index, id=doc_id, document=document, op_type="create")
        except (ApiError, TransportError) as exc:
            raise StoreError(f"index into {index} failed: {exc}") from exc
        logger.debug("ES index %s/%s -> %s", index, doc_id, resp.get("result"))

    def search(self, query, size, sort_field, descending=True):
        order = "desc" if descending else "asc"
        try:
            resp = self._client.search(
                index=self.read_pattern,
                query=query,
                size=size,
                sort=[{sort_field: {"order": order, "unmapped_type": "date"}}],
                ignore_unavailable=True,
                allow_no_indices=True,
            )
        except (ApiError, TransportError) as exc:
            raise StoreError(f"search failed: {exc}") from exc
        hits = resp.get("hits", {}).get("hits", [])
        logger.debug("ES search %s returned %d hits", self.read_pattern, len(hits))
        return [hit.get("_source", {}) for hit in hits]

    def count(self, query=None):
        try:
            resp = self._client.count(
                index=self.read_pattern,
                query=query or {"match_all": {}},
                ignore_unavailable=True,
                allow_no_indices=True,
            )
        except (ApiError, TransportError) as exc:
            raise StoreError(f"count failed: {exc}") from exc
        return resp["count"]

    def top_value(self, field):
        try:
            resp = self._client.search(
                index=self.read_pattern,
                size=0,
                aggs={"top_value": {"terms": {"field": field, "size": 1}}},
                ignore_unavailable=True,
                allow_no_indices=True,
            )
        except (ApiError, TransportError) as exc:
            raise StoreError(f"aggregation on {field} failed: {exc}") from exc
        buckets = resp.get("aggregations", {}).get("top_value", {}).get("buckets", [])
        if not buckets:
            return None
        return buckets[0]["key"], buckets[0]["doc_count"]

    def health(self):
        try:
            resp = self._client.cluster.health()
        except (ApiError, TransportError) as exc:
            raise StoreError(f"cluster health failed: {exc}") from exc
        status = resp.get("status", "red")
        return {
            "status": status,
            "statusDescription": _STATUS_DESCRIPTIONS.get(status, "Unknown cluster status"),
            "nodeCount": resp.get("number_of_nodes", 0),
            "isHealthy": status in ("green", "yellow"),
            "timestamp": self._clock().isoformat(),
        }

    def close(self):
        self._client.close()
