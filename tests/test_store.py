import threading

import pytest

from log_ingest_api.store import InMemoryLogStore, StoreError, matches


class TestMatches:
    def test_match_all(self):
        assert matches({"a": 1}, {"match_all": {}}) is True
        assert matches({"a": 1}, None) is True

    def test_term_is_exact(self):
        doc = {"applicationName": "Bank"}
        assert matches(doc, {"term": {"applicationName": "Bank"}}) is True
        assert matches(doc, {"term": {"applicationName": "bank"}}) is False

    def test_numeric_range(self):
        query = {"range": {"statusCode": {"gte": 400, "lte": 499}}}
        assert matches({"statusCode": 404}, query) is True
        assert matches({"statusCode": 500}, query) is False
        assert matches({"statusCode": "404"}, query) is False
        assert matches({}, query) is False

    def test_date_range(self):
        query = {"range": {"requestDateTime": {"gte": "2024-01-13T12:00:00+00:00"}}}
        assert matches({"requestDateTime": "2024-01-14T00:00:00Z"}, query) is True
        assert matches({"requestDateTime": "2024-01-12T00:00:00Z"}, query) is False
        assert matches({"requestDateTime": "garbage"}, query) is False

    def test_bool_filter_is_and(self):
        query = {"bool": {"filter": [
            {"term": {"level": "ERROR"}},
            {"range": {"statusCode": {"gte": 500}}},
        ]}}
        assert matches({"level": "ERROR", "statusCode": 503}, query) is True
        assert matches({"level": "ERROR", "statusCode": 200}, query) is False

    def test_multi_match_any_token(self):
        query = {"multi_match": {"query": "refused timeout", "fields": ["message", "stackTrace"]}}
        assert matches({"message": "Connection refused"}, query) is True
        assert matches({"stackTrace": "TimeoutError at line 3"}, query) is False
        assert matches({"message": "ok"}, query) is False

    def test_unsupported_clause(self):
        with pytest.raises(ValueError):
            matches({}, {"wildcard": {"message": "*x*"}})


class TestInMemoryLogStore:
    def test_index_and_count(self):
        store = InMemoryLogStore()
        store.index("a", {"userId": "bob"})
        store.index("b", {"userId": "alice"})
        assert store.count() == 2
        assert store.count({"term": {"userId": "bob"}}) == 1

    def test_duplicate_id_rejected(self):
        store = InMemoryLogStore()
        store.index("a", {})
        with pytest.raises(StoreError):
            store.index("a", {})

    def test_bounded_eviction_frees_ids(self):
        store = InMemoryLogStore(max_size=2)
        store.index("a", {})
        store.index("b", {})
        store.index("c", {})
        assert store.count() == 2
        store.index("a", {})
        assert store.count() == 2

    def test_documents_are_copied(self):
        store = InMemoryLogStore()
        doc = {"message": "original"}
        store.index("a", doc)
        doc["message"] = "changed"
        assert store.search(None, 10, "@timestamp")[0]["message"] == "original"

    def test_search_puts_missing_sort_values_last(self):
        store = InMemoryLogStore()
        store.index("a", {"id": "a"})
        store.index("b", {"id": "b", "@timestamp": "2024-01-15T10:00:00Z"})
        store.index("c", {"id": "c", "@timestamp": "2024-01-15T11:00:00Z"})
        assert [d["id"] for d in store.search(None, 10, "@timestamp")] == ["c", "b", "a"]

    def test_top_value(self):
        store = InMemoryLogStore()
        assert store.top_value("userId") is None
        for i, user in enumerate(["bob", "alice", "alice"]):
            store.index(str(i), {"userId": user})
        assert store.top_value("userId") == ("alice", 2)

    def test_concurrent_writes(self):
        store = InMemoryLogStore()

        def write(prefix):
            for i in range(200):
                store.index(f"{prefix}-{i}", {"n": i})

        threads = [threading.Thread(target=write, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.count() == 800

    def test_health(self):
        health = InMemoryLogStore().health()
        assert health["status"] == "green"
        assert health["isHealthy"] is True
