"""
Tests for the JSON Pointer data store.

Change detection is by kind-aware deep equality and subscriptions are
notified for writes at, above or below their pointer.
"""

import pytest

from json_render.errors import PointerError
from json_render.runtime.data_store import DataStore
from json_render.runtime.pointer import ABSENT


class Recorder:
    """Listener that records (pointer, value) calls."""

    def __init__(self):
        self.calls: list[tuple[str, object]] = []

    def __call__(self, pointer, value):
        self.calls.append((pointer, value))


class TestReadWrite:
    """Test basic get/set."""

    def test_get(self, store: DataStore):
        assert store.get("/user/name") == "Ada"
        assert store.get("/user/missing") is ABSENT
        assert store.get("") == store.snapshot()

    def test_initial_document_is_copied(self):
        initial = {"a": {"b": 1}}
        store = DataStore(initial)
        initial["a"]["b"] = 2
        assert store.get("/a/b") == 1

    def test_set_creates_intermediates(self, store: DataStore):
        store.set("/settings/theme/mode", "dark")
        assert store.get("/settings") == {"theme": {"mode": "dark"}}

    def test_snapshot_is_a_copy(self, store: DataStore):
        snapshot = store.snapshot()
        snapshot["user"]["name"] = "Grace"
        assert store.get("/user/name") == "Ada"

    def test_delete(self, store: DataStore):
        assert store.delete("/user/age") is True
        assert store.get("/user/age") is ABSENT
        assert store.delete("/user/age") is False

    def test_replace_all(self, store: DataStore):
        store.replace_all({"fresh": True})
        assert store.snapshot() == {"fresh": True}

    def test_write_copies_only_the_written_path(self, store: DataStore):
        form = store.get("/form")
        user = store.get("/user")

        store.set("/form/email", "a@example.com")
        store.delete("/form/tags")

        assert form == {"email": "", "tags": []}
        assert store.get("/form") == {"email": "a@example.com"}
        assert store.get("/user") is user


class TestSubscriptions:
    """Test change notification."""

    def test_exact_pointer(self, store: DataStore):
        listener = Recorder()
        store.subscribe("/user/name", listener)
        store.set("/user/name", "Grace")
        assert listener.calls == [("/user/name", "Grace")]

    def test_unchanged_value_does_not_notify(self, store: DataStore):
        listener = Recorder()
        store.subscribe("/user/name", listener)
        store.set("/user/name", "Ada")
        assert listener.calls == []

    def test_deep_equal_subtree_does_not_notify(self, store: DataStore):
        listener = Recorder()
        store.subscribe("/form", listener)
        store.set("/form", {"email": "", "tags": []})
        assert listener.calls == []

    def test_bool_replacing_equal_number_notifies(self):
        """1 and True compare equal in Python but are different JSON values."""
        store = DataStore({"flag": 1, "opts": {"dense": [0]}})
        flag = Recorder()
        opts = Recorder()
        store.subscribe("/flag", flag)
        store.subscribe("/opts", opts)

        store.set("/flag", True)
        store.set("/opts/dense/0", False)

        assert flag.calls == [("/flag", True)]
        assert opts.calls == [("/opts", {"dense": [False]})]

    def test_same_bool_does_not_notify(self):
        store = DataStore({"flag": True})
        listener = Recorder()
        store.subscribe("/flag", listener)
        store.set("/flag", True)
        assert listener.calls == []

    def test_subtree_write_notifies_descendants(self, store: DataStore):
        """Replacing /form notifies subscribers below /form."""
        email = Recorder()
        tags = Recorder()
        store.subscribe("/form/email", email)
        store.subscribe("/form/tags", tags)

        store.set("/form", {"email": "a@example.com", "tags": []})

        assert email.calls == [("/form/email", "a@example.com")]
        assert tags.calls == []

    def test_leaf_write_notifies_ancestors(self, store: DataStore):
        form = Recorder()
        store.subscribe("/form", form)
        store.set("/form/email", "a@example.com")
        assert form.calls == [("/form", {"email": "a@example.com", "tags": []})]

    def test_sibling_not_notified(self, store: DataStore):
        user = Recorder()
        store.subscribe("/user", user)
        store.set("/form/email", "a@example.com")
        assert user.calls == []

    def test_delete_notifies_with_absent(self, store: DataStore):
        listener = Recorder()
        store.subscribe("/user/name", listener)
        store.delete("/user")
        assert listener.calls == [("/user/name", ABSENT)]

    def test_replace_all_notifies(self, store: DataStore):
        listener = Recorder()
        store.subscribe("/user/name", listener)
        store.replace_all({"user": {"name": "Grace"}})
        assert listener.calls == [("/user/name", "Grace")]

    def test_unsubscribe_is_idempotent(self, store: DataStore):
        listener = Recorder()
        unsubscribe = store.subscribe("/user/name", listener)
        assert store.subscriber_count == 1
        unsubscribe()
        unsubscribe()
        store.set("/user/name", "Grace")
        assert listener.calls == []
        assert store.subscriber_count == 0

    def test_raising_listener_does_not_stop_others(self, store: DataStore):
        def broken(pointer, value):
            raise RuntimeError("boom")

        listener = Recorder()
        store.subscribe("/user/name", broken)
        store.subscribe("/user/name", listener)
        store.set("/user/name", "Grace")
        assert listener.calls == [("/user/name", "Grace")]


class TestUpdate:
    """Test multi-pointer writes."""

    def test_notifies_once(self, store: DataStore):
        form = Recorder()
        store.subscribe("/form", form)
        store.update({"/form/email": "a@example.com", "/form/tags/-": "new"})
        assert form.calls == [("/form", {"email": "a@example.com", "tags": ["new"]})]

    def test_failed_write_leaves_document_untouched(self, store: DataStore):
        before = store.snapshot()
        listener = Recorder()
        store.subscribe("/user/name", listener)

        with pytest.raises(PointerError):
            store.update({"/user/name": "Grace", "/form/tags/5": "x"})

        assert store.snapshot() == before
        assert listener.calls == []

    def test_empty_update_is_noop(self, store: DataStore):
        listener = Recorder()
        store.subscribe("", listener)
        store.update({})
        assert listener.calls == []
