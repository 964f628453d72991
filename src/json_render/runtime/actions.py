"""
Action dispatcher.

Resolves a named action against the host's handler table, optionally gates
it on a confirmation prompt, and routes the handler's result or failure
into data store writes.

Writes are staged and applied in one DataStore.update() at the terminal
step. A declined or timed-out confirmation, or cancellation of the
dispatching task, leaves the store untouched.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel

from json_render.config import RuntimeConfig
from json_render.errors import (
    ActionFailedError,
    ActionParamsError,
    ConfirmationUnavailableError,
    UnknownActionError,
)
from json_render.runtime.catalog import Catalog
from json_render.runtime.data_store import DataStore
from json_render.runtime.resolver import resolve_params
from json_render.specs.actions import (
    ActionCallback,
    ActionInvocation,
    ActionOutcome,
    ActionStatus,
    ConfirmSpec,
)

logger = logging.getLogger(__name__)

ActionHandler = Callable[[dict[str, Any]], Any | Awaitable[Any]]
ConfirmPrompter = Callable[[ConfirmSpec], bool | Awaitable[bool]]

_MISSING = object()


# =============================================================================
# Result tokens
# =============================================================================


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def _lookup(value: Any, parts: list[str]) -> Any:
    """
    Walk result data by mapping keys and list indexes only.

    Object attributes are never read, and private-looking segments are
    refused, so a generated token cannot reach into host objects.
    """
    value = _plain(value)
    for part in parts:
        if part.startswith("_"):
            return None
        if isinstance(value, Mapping):
            value = _plain(value.get(part, _MISSING))
        elif isinstance(value, list | tuple) and part.isdigit() and int(part) < len(value):
            value = _plain(value[int(part)])
        else:
            return None
        if value is _MISSING:
            return None
    return value


def substitute_tokens(value: Any, *, result: Any = None, error: str | None = None) -> Any:
    """
    Replace result/error tokens in a callback value.

    Only strings that are exactly a token are replaced, recursively through
    mappings and lists. Unknown fields of ``$result`` resolve to None.
    Pydantic results are read through their JSON dump.
    """
    if isinstance(value, str):
        if value == "$result":
            return result
        if value.startswith("$result."):
            return _lookup(result, value[len("$result.") :].split("."))
        if value in ("$error", "$error.message"):
            return error
        return value
    if isinstance(value, Mapping):
        return {k: substitute_tokens(v, result=result, error=error) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_tokens(v, result=result, error=error) for v in value]
    return value


def _stage(callback: ActionCallback | None, **tokens: Any) -> dict[str, Any]:
    if callback is None:
        return {}
    return {pointer: substitute_tokens(v, **tokens) for pointer, v in callback.set_.items()}


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


# =============================================================================
# Dispatcher
# =============================================================================


class ActionDispatcher:
    """
    Dispatches action invocations to host handlers.

    Example:
        dispatcher = ActionDispatcher(
            handlers={"save_changes": save_changes},
            store=store,
            confirm=ask_user,
        )
        outcome = await dispatcher.dispatch(
            {"name": "save_changes", "onSuccess": {"set": {"/ui/saved": True}}}
        )
    """

    def __init__(
        self,
        handlers: Mapping[str, ActionHandler],
        store: DataStore,
        confirm: ConfirmPrompter | None = None,
        catalog: Catalog | None = None,
        config: RuntimeConfig | None = None,
    ):
        """
        Args:
            handlers: Action name -> handler taking the resolved params
            store: Data store that receives callback writes
            confirm: Prompter returning True to proceed (sync or async)
            catalog: When given, names must be declared and params valid
            config: Runtime config; ``confirm_timeout`` bounds the prompt
        """
        self.handlers = dict(handlers)
        self.store = store
        self.confirm = confirm
        self.catalog = catalog
        self.config = config or RuntimeConfig()

    async def dispatch(self, invocation: ActionInvocation | Mapping[str, Any]) -> ActionOutcome:
        """
        Run one invocation to its terminal state.

        Returns:
            ActionOutcome with SUCCEEDED, FAILED (routed via onError) or
            CANCELLED status

        Raises:
            UnknownActionError: No handler, or not declared in the catalog
            ActionParamsError: Params fail the catalog schema
            ConfirmationUnavailableError: Confirmation requested without a prompter
            ActionFailedError: Handler failed and there is no onError route
        """
        if not isinstance(invocation, ActionInvocation):
            invocation = ActionInvocation.model_validate(invocation)
        name = invocation.name

        handler = self.handlers.get(name)
        if handler is None or (self.catalog is not None and not self.catalog.has_action(name)):
            raise UnknownActionError(name)

        params = resolve_params(invocation.params, self.store)
        if self.catalog is not None:
            errors = self.catalog.validate_action_params(name, params)
            if errors:
                raise ActionParamsError(name, errors)

        if invocation.confirm is not None and not await self._confirmed(name, invocation.confirm):
            logger.info("Action %s cancelled at confirmation", name)
            return ActionOutcome(action=name, status=ActionStatus.CANCELLED)

        logger.debug("Dispatching action %s", name, extra={"context": {"params": params}})
        try:
            result = handler(params)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            message = _error_message(e)
            if invocation.on_error is None:
                logger.warning("Action %s failed: %s", name, message)
                raise ActionFailedError(name, e) from e
            writes = _stage(invocation.on_error, error=message)
            self.store.update(writes)
            logger.info("Action %s failed, routed to onError: %s", name, message)
            return ActionOutcome(
                action=name, status=ActionStatus.FAILED, error=message, writes=writes
            )

        writes = _stage(invocation.on_success, result=result)
        self.store.update(writes)
        return ActionOutcome(
            action=name, status=ActionStatus.SUCCEEDED, result=result, writes=writes
        )

    async def _confirmed(self, name: str, spec: ConfirmSpec) -> bool:
        if self.confirm is None:
            raise ConfirmationUnavailableError(name)
        answer = self.confirm(spec)
        if inspect.isawaitable(answer):
            try:
                answer = await asyncio.wait_for(answer, self.config.confirm_timeout)
            except TimeoutError:
                logger.info("Confirmation for action %s timed out", name)
                return False
        return bool(answer)


async def dispatch_action(
    invocation: ActionInvocation | Mapping[str, Any],
    handlers: Mapping[str, ActionHandler],
    confirm: ConfirmPrompter | None = None,
    store: DataStore | None = None,
) -> ActionOutcome:
    """
    Dispatch one invocation without keeping a dispatcher around.

    A throwaway DataStore is used when none is given.
    """
    dispatcher = ActionDispatcher(handlers, store if store is not None else DataStore(), confirm)
    return await dispatcher.dispatch(invocation)
