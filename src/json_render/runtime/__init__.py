"""
json-render runtime.

Patch-stream tree building, the JSON Pointer data store, visibility and
validation evaluation, action dispatch and the catalog registry.
"""

from json_render.runtime.actions import ActionDispatcher, dispatch_action, substitute_tokens
from json_render.runtime.catalog import (
    ActionDefinition,
    Catalog,
    ComponentDefinition,
    ValidationFunctionDefinition,
    create_catalog,
    validate_against_schema,
)
from json_render.runtime.data_store import DataStore
from json_render.runtime.logging import setup_logging
from json_render.runtime.pointer import ABSENT, is_absent
from json_render.runtime.resolver import RenderNode, iter_visible, resolve_dynamic_value, resolve_params
from json_render.runtime.stream import StreamSurface, UIStream
from json_render.runtime.tree_builder import (
    ApplyResult,
    ApplyStatus,
    BuilderStats,
    PatchStreamBuilder,
    apply_patch,
)
from json_render.runtime.validation import (
    BUILTIN_VALIDATORS,
    ValidationEngine,
    failed_messages,
    should_validate,
)
from json_render.runtime.visibility import AuthState, evaluate_visibility, is_visible

__all__ = [
    # Actions
    "ActionDispatcher",
    "dispatch_action",
    "substitute_tokens",
    # Catalog
    "ActionDefinition",
    "Catalog",
    "ComponentDefinition",
    "ValidationFunctionDefinition",
    "create_catalog",
    "validate_against_schema",
    # Data
    "ABSENT",
    "DataStore",
    "is_absent",
    # Logging
    "setup_logging",
    # Rendering
    "RenderNode",
    "iter_visible",
    "resolve_dynamic_value",
    "resolve_params",
    # Streaming
    "ApplyResult",
    "ApplyStatus",
    "BuilderStats",
    "PatchStreamBuilder",
    "StreamSurface",
    "UIStream",
    "apply_patch",
    # Validation
    "BUILTIN_VALIDATORS",
    "ValidationEngine",
    "failed_messages",
    "should_validate",
    # Visibility
    "AuthState",
    "evaluate_visibility",
    "is_visible",
]
