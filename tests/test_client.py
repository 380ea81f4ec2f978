"""Behavioral tests for ConsulClient against the fake Consul agent."""

from __future__ import annotations

import threading

import httpx
import pytest

from goffkv_consul import (
    ClientClosedError,
    ConsulClient,
    EntryExistsError,
    MalformedKeyError,
    NoEntryError,
    TransportError,
    Txn,
    TxnFailedError,
    TxnOpKind,
    TxnOpResult,
    UnexpectedTxnError,
)


class TestCreate:
    def test_create_then_get(self, kv):
        ver = kv.create("/a", b"hello")
        got_ver, value, watch = kv.get("/a")
        assert ver > 0
        assert got_ver == ver
        assert value == b"hello"
        assert watch is None

    def test_create_existing_fails(self, kv):
        kv.create("/a", b"1")
        with pytest.raises(EntryExistsError):
            kv.create("/a", b"2")
        assert kv.get("/a")[1] == b"1"

    def test_create_after_erase(self, kv):
        kv.create("/a", b"1")
        kv.erase("/a")
        assert kv.create("/a", b"2") > 0
        assert kv.get("/a")[1] == b"2"

    def test_create_without_parent(self, kv):
        with pytest.raises(NoEntryError):
            kv.create("/missing/child", b"x")

    def test_create_nested(self, kv):
        kv.create("/a", b"")
        kv.create("/a/b", b"")
        assert kv.create("/a/b/c", b"deep") > 0

    def test_versions_increase(self, kv):
        v1 = kv.create("/a", b"")
        v2 = kv.create("/b", b"")
        assert v2 > v1

    def test_empty_value_round_trips(self, kv):
        kv.create("/a", b"")
        assert kv.get("/a")[1] == b""


class TestLeasedCreate:
    def test_creates_one_session(self, kv, consul):
        kv.create("/a", b"", lease=True)
        kv.create("/b", b"", lease=True)
        assert len(consul.sessions) == 1
        session = next(iter(consul.sessions.values()))
        assert session["Behavior"] == "delete"
        assert session["TTL"] == "10s"
        assert consul.kv["a"].session == consul.kv["b"].session

    def test_close_removes_leased_keys(self, consul, config):
        client = ConsulClient(config=config, http_client=consul.http_client())
        client.create("/eph", b"x", lease=True)
        client.create("/durable", b"y")
        client.close()
        assert "eph" not in consul.kv
        assert "durable" in consul.kv
        assert len(consul.destroyed_sessions) == 1

    def test_concurrent_creates_share_session(self, kv, consul):
        kv.create("/p", b"")
        errors: list[Exception] = []

        def worker(i: int) -> None:
            try:
                kv.create(f"/p/{i}", b"", lease=True)
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(consul.sessions) == 1
        assert len(kv.children("/p")[0]) == 8

    def test_lock_rejected_is_unexpected(self, kv, consul):
        kv.create("/a", b"", lease=True)
        consul.expire_session(next(iter(consul.sessions)))
        # The client still holds the stale id until its keep-alive notices.
        with pytest.raises(UnexpectedTxnError) as exc_info:
            kv.create("/b", b"", lease=True)
        assert exc_info.value.op_index == 1
        assert "invalid session" in exc_info.value.what


class TestSet:
    def test_set_creates_and_overwrites(self, kv):
        v1 = kv.set("/a", b"1")
        v2 = kv.set("/a", b"2")
        assert v2 > v1
        assert kv.get("/a")[:2] == (v2, b"2")

    def test_set_without_parent(self, kv):
        with pytest.raises(NoEntryError):
            kv.set("/missing/child", b"x")


class TestCas:
    def test_cas_success(self, kv):
        ver = kv.create("/a", b"1")
        new_ver = kv.cas("/a", b"2", ver)
        assert new_ver > ver
        assert kv.get("/a")[:2] == (new_ver, b"2")

    def test_stale_cas_is_noop(self, kv):
        old = kv.create("/a", b"1")
        current = kv.set("/a", b"2")
        assert kv.cas("/a", b"3", old) == 0
        assert kv.get("/a")[:2] == (current, b"2")

    def test_cas_missing_key(self, kv):
        with pytest.raises(NoEntryError):
            kv.cas("/missing", b"x", 5)

    def test_cas_zero_creates(self, kv):
        ver = kv.cas("/a", b"1", 0)
        assert ver > 0
        assert kv.get("/a")[1] == b"1"

    def test_cas_zero_on_existing_returns_zero(self, kv):
        kv.create("/a", b"1")
        assert kv.cas("/a", b"2", 0) == 0
        assert kv.get("/a")[1] == b"1"

    def test_cas_zero_without_parent(self, kv):
        with pytest.raises(NoEntryError):
            kv.cas("/missing/child", b"x", 0)


class TestErase:
    def test_erase_missing(self, kv):
        with pytest.raises(NoEntryError):
            kv.erase("/missing")

    def test_erase_removes_subtree(self, kv):
        kv.create("/a", b"")
        kv.create("/a/b", b"")
        kv.create("/a/b/c", b"")
        kv.create("/a/d", b"")
        kv.erase("/a/b")
        assert kv.children("/a")[0] == ["/a/d"]
        assert kv.exists("/a/b/c")[0] == 0

    def test_erase_does_not_touch_siblings_sharing_prefix(self, kv):
        kv.create("/a", b"")
        kv.create("/ab", b"")
        kv.erase("/a")
        assert kv.exists("/ab")[0] > 0

    def test_erase_with_matching_version(self, kv):
        ver = kv.create("/a", b"")
        kv.erase("/a", ver)
        assert kv.exists("/a")[0] == 0

    def test_erase_with_stale_version_is_silent(self, kv):
        old = kv.create("/a", b"1")
        kv.set("/a", b"2")
        kv.erase("/a", old)
        assert kv.get("/a")[1] == b"2"


class TestReads:
    def test_exists(self, kv):
        assert kv.exists("/a") == (0, None)
        ver = kv.create("/a", b"")
        assert kv.exists("/a") == (ver, None)

    def test_get_missing(self, kv):
        with pytest.raises(NoEntryError):
            kv.get("/missing")

    def test_children_direct_only(self, kv):
        kv.create("/a", b"")
        kv.create("/a/c", b"")
        kv.create("/a/b", b"")
        kv.create("/a/b/d", b"")
        children, watch = kv.children("/a")
        assert children == ["/a/b", "/a/c"]
        assert watch is None

    def test_children_of_leaf(self, kv):
        kv.create("/a", b"")
        assert kv.children("/a")[0] == []

    def test_children_missing(self, kv):
        with pytest.raises(NoEntryError):
            kv.children("/missing")

    def test_reads_are_consistent(self, kv, consul):
        kv.create("/a", b"")
        consul.requests.clear()
        kv.get("/a")
        kv.children("/a")
        assert all("consistent" in r.url.params for r in consul.requests)


class TestUrlReservedCharacters:
    @pytest.mark.parametrize("key", ["/a?b", "/a#b", "/100%", "/a b"])
    def test_get_and_exists(self, kv, consul, key):
        ver = kv.create(key, b"v")
        assert consul.value(key[1:]) == b"v"
        assert kv.get(key)[:2] == (ver, b"v")
        assert kv.exists(key)[0] == ver

    def test_percent_escape_is_not_decoded(self, kv):
        kv.create("/x", b"plain")
        kv.create("/%78", b"pct")
        assert kv.get("/%78")[1] == b"pct"
        assert kv.get("/x")[1] == b"plain"

    def test_query_marker_does_not_truncate(self, kv):
        kv.create("/a", b"short")
        kv.create("/a?recurse", b"long")
        assert kv.get("/a?recurse")[1] == b"long"

    def test_children_listing(self, kv):
        kv.create("/d", b"")
        kv.create("/d/q?x", b"")
        kv.create("/d/h#y", b"")
        assert kv.children("/d")[0] == ["/d/h#y", "/d/q?x"]


class TestMount:
    def test_keys_live_under_prefix(self, mounted_kv, consul):
        mounted_kv.create("/a", b"x")
        assert consul.value("app/v1/a") == b"x"

    def test_children_are_mount_relative(self, mounted_kv):
        mounted_kv.create("/a", b"")
        mounted_kv.create("/a/b", b"")
        assert mounted_kv.children("/a")[0] == ["/a/b"]

    def test_prefix_property(self, mounted_kv, kv):
        assert mounted_kv.prefix == "/app/v1"
        assert kv.prefix == "/"

    def test_invalid_prefix(self, consul):
        with pytest.raises(MalformedKeyError):
            ConsulClient(prefix="app", http_client=consul.http_client())


class TestCommit:
    def test_commit_results(self, kv):
        kv.create("/a", b"")
        kv.create("/gone", b"")
        txn = Txn().check("/a").create("/a/b", b"1").set("/c", b"2").erase("/gone")
        results = kv.commit(txn)
        assert [r.kind for r in results] == [TxnOpKind.CREATE, TxnOpKind.SET]
        version = results[0].version
        assert results == [TxnOpResult(TxnOpKind.CREATE, version), TxnOpResult(TxnOpKind.SET, version)]
        assert kv.get("/a/b")[:2] == (version, b"1")
        assert kv.exists("/gone")[0] == 0

    def test_failed_commit_names_item_and_rolls_back(self, kv):
        k1_ver = kv.create("/k1", b"orig")
        txn = Txn().check("/k1", k1_ver).set("/k1", b"new").erase("/k2")
        with pytest.raises(TxnFailedError) as exc_info:
            kv.commit(txn)
        # Items are numbered over checks then ops: check=0, set=1, erase=2.
        assert exc_info.value.index == 2
        assert kv.get("/k1")[:2] == (k1_ver, b"orig")

    def test_stale_check_fails_at_check(self, kv):
        old = kv.create("/k1", b"")
        kv.set("/k1", b"x")
        with pytest.raises(TxnFailedError) as exc_info:
            kv.commit(Txn().check("/k1", old).set("/k2", b""))
        assert exc_info.value.index == 0
        assert kv.exists("/k2")[0] == 0

    def test_create_existing_in_txn(self, kv):
        kv.create("/a", b"")
        with pytest.raises(TxnFailedError) as exc_info:
            kv.commit(Txn().set("/b", b"").create("/a", b""))
        assert exc_info.value.index == 1
        assert kv.exists("/b")[0] == 0

    def test_leased_create_in_txn(self, kv, consul):
        kv.commit(Txn().create("/a", b"", lease=True))
        assert consul.kv["a"].session in consul.sessions

    def test_empty_commit_skips_round_trip(self, kv, consul):
        consul.requests.clear()
        assert kv.commit(Txn()) == []
        assert consul.requests == []

    def test_malformed_key_never_reaches_store(self, kv, consul):
        consul.requests.clear()
        with pytest.raises(MalformedKeyError):
            kv.commit(Txn().set("/ok", b"").erase("not-a-key"))
        assert consul.requests == []


class TestTransportFailures:
    def test_connection_error(self, kv, consul):
        consul.fail_next.append(httpx.ConnectError("refused"))
        with pytest.raises(TransportError) as exc_info:
            kv.create("/a", b"")
        assert exc_info.value.operation == "txn"

    def test_server_error(self, kv, consul):
        consul.fail_next.append(httpx.Response(500, text="rpc error"))
        with pytest.raises(TransportError) as exc_info:
            kv.get("/a")
        assert "500" in exc_info.value.detail

    def test_session_creation_failure_propagates(self, kv, consul):
        consul.fail_next.append(httpx.Response(500, text="no leader"))
        with pytest.raises(TransportError):
            kv.create("/a", b"", lease=True)
        assert kv.exists("/a")[0] == 0
        # Nothing cached: the next leased write creates a session.
        kv.create("/a", b"", lease=True)
        assert len(consul.sessions) == 1


class TestLifecycle:
    def test_closed_client_rejects_calls(self, consul, config):
        client = ConsulClient(config=config, http_client=consul.http_client())
        client.close()
        with pytest.raises(ClientClosedError):
            client.get("/a")

    def test_double_close(self, consul, config):
        client = ConsulClient(config=config, http_client=consul.http_client())
        client.create("/a", b"", lease=True)
        client.close()
        client.close()
        assert len(consul.destroyed_sessions) == 1

    def test_context_manager(self, consul, config):
        with ConsulClient(config=config, http_client=consul.http_client()) as client:
            client.create("/a", b"")
        with pytest.raises(ClientClosedError):
            client.create("/b", b"")
