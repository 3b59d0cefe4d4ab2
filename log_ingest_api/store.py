"""Log store interface and the in-memory backend."""

import collections
import re
import threading
from collections import Counter

from log_ingest_api.models import parse_instant, utcnow


class StoreError(Exception):
    """The backing store rejected an operation or could not be reached."""


class LogStore:
    """Operations the pipeline and query engine need from a document store.

    Queries are Elasticsearch query DSL dicts. Implementations raise
    StoreError for any backend failure.
    """

    def index(self, doc_id, document):
        raise NotImplementedError

    def search(self, query, size, sort_field, descending=True):
        raise NotImplementedError

    def count(self, query=None):
        raise NotImplementedError

    def top_value(self, field):
        """Return (value, count) for the most frequent value of *field*, or None."""
        raise NotImplementedError

    def health(self):
        raise NotImplementedError

    def close(self):
        pass


_TOKEN_RE = re.compile(r"\w+")


def _tokens(value):
    if value is None:
        return set()
    return {t.lower() for t in _TOKEN_RE.findall(str(value))}


def _compare(value, bound):
    """Coerce *value* to the type of *bound* for range checks."""
    if isinstance(bound, (int, float)) and not isinstance(bound, bool):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value, bound
        return None, None
    left, right = parse_instant(value), parse_instant(bound)
    if left is None or right is None:
        return None, None
    return left, right


def _in_range(value, bounds):
    checks = {
        "gte": lambda a, b: a >= b,
        "gt": lambda a, b: a > b,
        "lte": lambda a, b: a <= b,
        "lt": lambda a, b: a < b,
    }
    for op, bound in bounds.items():
        if op not in checks:
            continue
        left, right = _compare(value, bound)
        if left is None or not checks[op](left, right):
            return False
    return True


def matches(document, query):
    """Evaluate the query DSL subset produced by the query engine."""
    if not query or "match_all" in query:
        return True
    if "bool" in query:
        clauses = query["bool"]
        return all(matches(document, c) for c in clauses.get("filter", []) + clauses.get("must", []))
    if "term" in query:
        (field, value), = query["term"].items()
        if isinstance(value, dict):
            value = value.get("value")
        return document.get(field) == value
    if "multi_match" in query:
        clause = query["multi_match"]
        wanted = _tokens(clause["query"])
        present = set()
        for field in clause.get("fields", []):
            present |= _tokens(document.get(field))
        return bool(wanted & present)
    if "range" in query:
        (field, bounds), = query["range"].items()
        return _in_range(document.get(field), bounds)
    raise ValueError(f"Unsupported query clause: {sorted(query)}")


class InMemoryLogStore(LogStore):
    """Thread-safe in-memory log storage backed by a bounded deque."""

    def __init__(self, max_size=10000):
        self._docs = collections.deque(maxlen=max_size)
        self._ids = set()
        self._lock = threading.Lock()

    def index(self, doc_id, document):
        with self._lock:
            if doc_id in self._ids:
                raise StoreError(f"document {doc_id!r} already exists")
            if len(self._docs) == self._docs.maxlen:
                evicted_id, _ = self._docs[0]
                self._ids.discard(evicted_id)
            self._docs.append((doc_id, dict(document)))
            self._ids.add(doc_id)

    def _snapshot(self):
        with self._lock:
            return [doc for _, doc in self._docs]

    def search(self, query, size, sort_field, descending=True):
        hits = [doc for doc in self._snapshot() if matches(doc, query)]
        with_key = [d for d in hits if parse_instant(d.get(sort_field)) is not None]
        missing = [d for d in hits if parse_instant(d.get(sort_field)) is None]
        with_key.sort(key=lambda d: parse_instant(d[sort_field]), reverse=descending)
        return (with_key + missing)[:size]

    def count(self, query=None):
        return sum(1 for doc in self._snapshot() if matches(doc, query))

    def top_value(self, field):
        counts = Counter(doc[field] for doc in self._snapshot() if doc.get(field) is not None)
        if not counts:
            return None
        return counts.most_common(1)[0]

    def health(self):
        with self._lock:
            size = len(self._docs)
        return {
            "status": "green",
            "statusDescription": f"In-memory store holding {size} documents",
            "nodeCount": 1,
            "isHealthy": True,
            "timestamp": utcnow().isoformat(),
        }

    def clear(self):
        with self._lock:
            self._docs.clear()
            self._ids.clear()
