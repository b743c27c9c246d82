from concurrent.futures import ThreadPoolExecutor

import pytest
from prometheus_client import REGISTRY

from userapi.store import User, UserNotFound, UserStore, seed_store


def _counter(operation: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "user_store_operations_total", {"operation": operation, "outcome": outcome}
    )
    return value or 0.0


def test_seeded_scenario(store):
    assert store.get_by_id(1) == User(1, "user1", "password1")

    updated = store.update(1, User(id=1, username="alice", password="password1"))
    assert updated == User(1, "alice", "password1")
    assert store.get_by_id(1) == User(1, "alice", "password1")

    store.delete(2)
    assert store.get_by_id(2) is None
    with pytest.raises(UserNotFound) as excinfo:
        store.delete(2)
    assert excinfo.value.user_id == 2
    assert str(excinfo.value) == "user with ID 2 not found"


def test_create_round_trip():
    s = UserStore()
    user = s.create("bob", "hunter2")
    assert user.id == 1
    assert s.get_by_id(user.id) == User(user.id, "bob", "hunter2")
    assert len(s) == 1


def test_ids_not_reused_after_delete():
    s = UserStore()
    first = s.create("a", "x")
    second = s.create("b", "y")
    s.delete(first.id)
    third = s.create("c", "z")
    assert third.id > second.id
    assert len({first.id, second.id, third.id}) == 3


def test_concurrent_creates_get_unique_ids():
    s = UserStore()
    with ThreadPoolExecutor(max_workers=16) as pool:
        users = list(pool.map(lambda i: s.create(f"u{i}", "pw"), range(500)))
    ids = [u.id for u in users]
    assert len(set(ids)) == 500
    assert sorted(ids) == list(range(1, 501))
    assert len(s) == 500


def test_update_keeps_stored_id(store):
    updated = store.update(1, User(id=99, username="carol", password="pw"))
    assert updated.id == 1
    assert store.get_by_id(1) == User(1, "carol", "pw")
    assert store.get_by_id(99) is None


def test_update_missing_id_leaves_store_unchanged(store):
    before = store.list(1, 10)
    missed = _counter("update", "not_found")
    with pytest.raises(UserNotFound):
        store.update(42, User(id=42, username="ghost", password="pw"))
    assert store.list(1, 10) == before
    assert _counter("update", "not_found") == missed + 1


def test_delete_missing_id_leaves_store_unchanged(store):
    before = store.list(1, 10)
    with pytest.raises(UserNotFound):
        store.delete(42)
    assert store.list(1, 10) == before


def test_not_found_is_a_key_error(store):
    with pytest.raises(KeyError):
        store.delete(1000)


def test_list_empty_store():
    assert UserStore().list(1, 10) == []


def test_list_pages_in_id_order():
    s = UserStore()
    seed_store(s, [(f"user{i}", "pw") for i in range(1, 26)])
    s.delete(3)

    first = s.list(1, 10)
    assert [u.id for u in first] == [1, 2] + list(range(4, 12))
    assert [u.id for u in s.list(3, 10)] == [22, 23, 24, 25]
    assert s.list(4, 10) == []


def test_list_clamps_non_positive_arguments():
    s = UserStore()
    seed_store(s, [(f"user{i}", "pw") for i in range(1, 16)])
    assert [u.id for u in s.list(0, 0)] == list(range(1, 11))
    assert [u.id for u in s.list(-3, 5)] == [1, 2, 3, 4, 5]


def test_update_preserves_list_position():
    s = UserStore()
    seed_store(s, [("a", "1"), ("b", "2"), ("c", "3")])
    s.update(1, User(id=1, username="z", password="9"))
    assert [u.username for u in s.list(1, 10)] == ["z", "b", "c"]


def test_validate_credentials(store):
    assert store.validate_credentials("user1", "password1")
    assert not store.validate_credentials("user1", "password2")
    assert not store.validate_credentials("USER1", "password1")
    assert not store.validate_credentials("nobody", "password1")

    store.delete(1)
    assert not store.validate_credentials("user1", "password1")


def test_racing_update_and_delete_stay_consistent():
    for _ in range(50):
        s = UserStore()
        user = s.create("target", "old")

        def do_update():
            try:
                s.update(user.id, User(id=user.id, username="new", password="newpw"))
                return "updated"
            except UserNotFound:
                return "missing"

        def do_delete():
            s.delete(user.id)
            return "deleted"

        with ThreadPoolExecutor(max_workers=2) as pool:
            update_future = pool.submit(do_update)
            delete_future = pool.submit(do_delete)
            outcomes = {update_future.result(), delete_future.result()}

        assert "deleted" in outcomes
        assert s.get_by_id(user.id) is None
        assert not s.validate_credentials("target", "old")
        assert not s.validate_credentials("new", "newpw")


def test_concurrent_readers_and_writers():
    s = UserStore()
    seed_store(s, [(f"user{i}", f"pw{i}") for i in range(1, 51)])

    def reader(i):
        page = s.list(1, 100)
        # every record seen must be internally consistent
        return all(u.password == "pw" + u.username[len("user"):] for u in page)

    def writer(i):
        uid = i + 1
        s.update(uid, User(id=uid, username=f"user{i + 100}", password=f"pw{i + 100}"))
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        reads = [pool.submit(reader, i) for i in range(200)]
        writes = [pool.submit(writer, i) for i in range(50)]
        assert all(f.result() for f in writes)
        assert all(f.result() for f in reads)

    assert [u.username for u in s.list(1, 100)] == [f"user{i + 100}" for i in range(50)]


def test_list_far_past_the_end(store):
    assert store.list(2**63, 10) == []
    assert store.list(10**30, 10**30) == []
