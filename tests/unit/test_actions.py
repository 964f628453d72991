"""
Tests for the action dispatcher.

Tests:
- Handler lookup, catalog declaration and params schema
- Confirmation accept, decline, timeout and missing prompter
- onSuccess / onError routing with result and error tokens
- No partial writes on decline, failure or cancellation
"""

import asyncio

import pytest
from pydantic import BaseModel

from json_render.config import RuntimeConfig
from json_render.errors import (
    ActionFailedError,
    ActionParamsError,
    ConfirmationUnavailableError,
    UnknownActionError,
)
from json_render.runtime.actions import ActionDispatcher, dispatch_action, substitute_tokens
from json_render.runtime.catalog import Catalog
from json_render.runtime.data_store import DataStore
from json_render.specs import ActionInvocation, ActionStatus, ConfirmSpec

CONFIRM = {"title": "Delete account?", "message": "This cannot be undone.", "variant": "danger"}
HOST_TOKEN = "host-only-token"


class Handlers:
    """Handler table that records calls."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def table(self):
        return {"save_changes": self.save, "refresh": self.refresh, "explode": self.explode}

    async def save(self, params):
        self.calls.append(("save_changes", params))
        return {"id": "doc-9", "version": 2}

    def refresh(self, params):
        self.calls.append(("refresh", params))
        return "ok"

    def explode(self, params):
        self.calls.append(("explode", params))
        raise RuntimeError("disk full")


@pytest.fixture
def handlers() -> Handlers:
    return Handlers()


# =============================================================================
# Success and failure routing
# =============================================================================


class TestRouting:
    """Test result routing into the data store."""

    @pytest.mark.asyncio
    async def test_on_success_tokens(self, handlers: Handlers, store: DataStore):
        dispatcher = ActionDispatcher(handlers.table(), store)
        outcome = await dispatcher.dispatch(
            {
                "name": "save_changes",
                "params": {"documentId": "doc-9"},
                "onSuccess": {
                    "set": {
                        "/ui/saved": "Saved!",
                        "/ui/lastId": "$result.id",
                        "/ui/result": "$result",
                    }
                },
            }
        )

        assert outcome.status == ActionStatus.SUCCEEDED
        assert outcome.result == {"id": "doc-9", "version": 2}
        assert store.get("/ui") == {
            "saved": "Saved!",
            "lastId": "doc-9",
            "result": {"id": "doc-9", "version": 2},
        }
        assert outcome.writes["/ui/lastId"] == "doc-9"

    @pytest.mark.asyncio
    async def test_params_resolved_from_store(self, handlers: Handlers):
        store = DataStore({"doc": {"id": "doc-1"}})
        dispatcher = ActionDispatcher(handlers.table(), store)
        await dispatcher.dispatch(
            ActionInvocation(name="save_changes", params={"documentId": {"path": "/doc/id"}})
        )
        assert handlers.calls == [("save_changes", {"documentId": "doc-1"})]

    @pytest.mark.asyncio
    async def test_on_error_routes_message(self, handlers: Handlers, store: DataStore):
        dispatcher = ActionDispatcher(handlers.table(), store)
        outcome = await dispatcher.dispatch(
            {"name": "explode", "onError": {"set": {"/ui/error": "$error.message"}}}
        )
        assert outcome.status == ActionStatus.FAILED
        assert outcome.error == "disk full"
        assert store.get("/ui/error") == "disk full"

    @pytest.mark.asyncio
    async def test_failure_without_on_error_raises(self, handlers: Handlers, store: DataStore):
        before = store.snapshot()
        dispatcher = ActionDispatcher(handlers.table(), store)
        with pytest.raises(ActionFailedError) as exc_info:
            await dispatcher.dispatch(
                {"name": "explode", "onSuccess": {"set": {"/ui/saved": True}}}
            )

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.__cause__ is exc_info.value.cause
        assert exc_info.value.action == "explode"
        assert store.snapshot() == before

    @pytest.mark.asyncio
    async def test_no_callbacks(self, handlers: Handlers, store: DataStore):
        before = store.snapshot()
        outcome = await ActionDispatcher(handlers.table(), store).dispatch({"name": "refresh"})
        assert outcome.status == ActionStatus.SUCCEEDED
        assert outcome.writes == {}
        assert store.snapshot() == before

    def test_substitute_tokens(self):
        value = {"ids": ["$result.items.0.id", "$result.missing"], "text": "$error", "n": 3}
        result = {"items": [{"id": 7}]}
        assert substitute_tokens(value, result=result, error="bad") == {
            "ids": [7, None],
            "text": "bad",
            "n": 3,
        }

    @pytest.mark.asyncio
    async def test_result_tokens_never_read_attributes(self, store: DataStore):
        class Receipt:
            status = "stored"

            def describe(self):
                return HOST_TOKEN

        dispatcher = ActionDispatcher({"refresh": lambda params: Receipt()}, store)
        outcome = await dispatcher.dispatch(
            {
                "name": "refresh",
                "onSuccess": {
                    "set": {
                        "/ui/leak": "$result.describe.__globals__.HOST_TOKEN",
                        "/ui/status": "$result.status",
                    }
                },
            }
        )

        assert outcome.writes == {"/ui/leak": None, "/ui/status": None}
        assert HOST_TOKEN not in repr(store.snapshot())

    def test_model_results_and_private_segments(self):
        class Saved(BaseModel):
            id: str
            tags: list[str] = []

        result = Saved(id="doc-9", tags=["draft"])
        assert substitute_tokens("$result.id", result=result) == "doc-9"
        assert substitute_tokens("$result.tags.0", result=result) == "draft"
        assert substitute_tokens("$result._hidden", result={"_hidden": 1}) is None
        assert substitute_tokens("$result.__class__", result=result) is None


# =============================================================================
# Configuration errors
# =============================================================================


class TestConfigurationErrors:
    """Test misconfigurations are raised, never swallowed."""

    @pytest.mark.asyncio
    async def test_unknown_action(self, handlers: Handlers, store: DataStore):
        with pytest.raises(UnknownActionError) as exc_info:
            await ActionDispatcher(handlers.table(), store).dispatch({"name": "launch"})
        assert "launch" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_undeclared_in_catalog(self, handlers: Handlers, store: DataStore, catalog: Catalog):
        dispatcher = ActionDispatcher(handlers.table(), store, catalog=catalog)
        with pytest.raises(UnknownActionError):
            await dispatcher.dispatch({"name": "explode"})
        assert handlers.calls == []

    @pytest.mark.asyncio
    async def test_params_schema(self, handlers: Handlers, store: DataStore, catalog: Catalog):
        dispatcher = ActionDispatcher(handlers.table(), store, catalog=catalog)
        with pytest.raises(ActionParamsError) as exc_info:
            await dispatcher.dispatch({"name": "save_changes", "params": {"documentId": 5}})
        assert exc_info.value.errors
        assert handlers.calls == []

    @pytest.mark.asyncio
    async def test_confirm_without_prompter(self, handlers: Handlers, store: DataStore):
        with pytest.raises(ConfirmationUnavailableError):
            await ActionDispatcher(handlers.table(), store).dispatch(
                {"name": "refresh", "confirm": CONFIRM}
            )
        assert handlers.calls == []


# =============================================================================
# Confirmation and cancellation
# =============================================================================


class TestConfirmation:
    """Test confirmation gating."""

    @pytest.mark.asyncio
    async def test_decline_leaves_store_untouched(self, handlers: Handlers, store: DataStore):
        prompts: list[ConfirmSpec] = []

        def decline(spec: ConfirmSpec) -> bool:
            prompts.append(spec)
            return False

        before = store.snapshot()
        dispatcher = ActionDispatcher(handlers.table(), store, confirm=decline)
        outcome = await dispatcher.dispatch(
            {"name": "refresh", "confirm": CONFIRM, "onSuccess": {"set": {"/ui/done": True}}}
        )

        assert outcome.cancelled
        assert handlers.calls == []
        assert store.snapshot() == before
        assert prompts[0].variant == "danger"

    @pytest.mark.asyncio
    async def test_async_accept(self, handlers: Handlers, store: DataStore):
        async def accept(spec: ConfirmSpec) -> bool:
            await asyncio.sleep(0)
            return True

        dispatcher = ActionDispatcher(handlers.table(), store, confirm=accept)
        outcome = await dispatcher.dispatch(
            {"name": "refresh", "confirm": CONFIRM, "onSuccess": {"set": {"/ui/done": True}}}
        )
        assert outcome.status == ActionStatus.SUCCEEDED
        assert store.get("/ui/done") is True

    @pytest.mark.asyncio
    async def test_timeout_cancels(self, handlers: Handlers, store: DataStore):
        never = asyncio.Event()

        async def unanswered(spec: ConfirmSpec) -> bool:
            await never.wait()
            return True

        before = store.snapshot()
        dispatcher = ActionDispatcher(
            handlers.table(),
            store,
            confirm=unanswered,
            config=RuntimeConfig(confirm_timeout=0.01),
        )
        outcome = await dispatcher.dispatch({"name": "refresh", "confirm": CONFIRM})

        assert outcome.status == ActionStatus.CANCELLED
        assert handlers.calls == []
        assert store.snapshot() == before

    @pytest.mark.asyncio
    async def test_task_cancellation_applies_nothing(self, store: DataStore):
        started = asyncio.Event()

        async def slow(params):
            started.set()
            await asyncio.Event().wait()

        before = store.snapshot()
        dispatcher = ActionDispatcher({"slow": slow}, store)
        task = asyncio.create_task(
            dispatcher.dispatch({"name": "slow", "onError": {"set": {"/ui/error": "$error"}}})
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.snapshot() == before


class TestDispatchAction:
    """Test the module-level convenience."""

    @pytest.mark.asyncio
    async def test_dispatch_action(self, handlers: Handlers, store: DataStore):
        outcome = await dispatch_action(
            {"name": "refresh", "onSuccess": {"set": {"/ui/status": "$result"}}},
            handlers.table(),
            store=store,
        )
        assert outcome.status == ActionStatus.SUCCEEDED
        assert store.get("/ui/status") == "ok"
