import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from storefront.domain import PendingOrderHandle
from storefront.storage import MemoryStore, SqliteStore, StorefrontState
from conftest import make_cart


def test_sqlite_store_upsert_and_delete(tmp_path):
    kv = SqliteStore(str(tmp_path / "nested" / "kv.db"))
    assert kv.get("x") is None
    kv.set("x", "1")
    kv.set("x", "2")
    assert kv.get("x") == "2"
    kv.delete("x")
    assert kv.get("x") is None


def test_state_survives_reopen(tmp_path):
    path = str(tmp_path / "kv.db")
    state = StorefrontState(SqliteStore(path))
    state.save_cart(make_cart())
    state.save_pending(PendingOrderHandle(order_id=501, signature="abc"))
    state.save_last_order_id(501)

    reopened = StorefrontState(SqliteStore(path))
    assert reopened.load_cart() == make_cart()
    assert reopened.load_pending() == PendingOrderHandle(501, "abc")
    assert reopened.load_last_order_id() == 501


def test_corrupt_entries_are_ignored():
    state = StorefrontState(
        MemoryStore({"cart": "{not json", "pending_order": "[]", "last_order_id": "x", "store": "efapi"})
    )
    assert state.load_cart().lines == ()
    assert state.load_cart().store == "efapi"
    assert state.load_pending() is None
    assert state.load_last_order_id() is None


def test_clear_pending_and_last_order():
    state = StorefrontState(MemoryStore())
    state.save_pending(PendingOrderHandle(7, "s"))
    state.save_last_order_id(7)
    state.clear_pending()
    state.clear_last_order_id()
    assert state.load_pending() is None
    assert state.load_last_order_id() is None


def test_namespaces_do_not_share_state(tmp_path):
    kv = SqliteStore(str(tmp_path / "kv.db"))
    alice = StorefrontState(kv, namespace="alice")
    bob = StorefrontState(kv, namespace="bob")

    alice.save_pending(PendingOrderHandle(501, "a"))
    alice.save_last_order_id(501)
    alice.save_cart(make_cart())

    assert bob.load_pending() is None
    assert bob.load_last_order_id() is None
    assert bob.load_cart().lines == ()
    assert kv.get("alice:pending_order") is not None

    bob.clear_pending()
    assert alice.load_pending() == PendingOrderHandle(501, "a")
