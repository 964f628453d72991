"""
json-render: build UIs from a streamed, catalog-constrained JSON patch feed.

Example:
    from json_render import DataStore, PatchStreamBuilder, create_catalog

    catalog = create_catalog(components={"Card": {"hasChildren": True}})
    builder = PatchStreamBuilder(catalog=catalog)
    builder.feed('{"op":"set","path":"/root","value":"main"}\\n')
"""

from json_render.config import RuntimeConfig, load_runtime_config
from json_render.errors import (
    ActionError,
    ActionFailedError,
    ActionParamsError,
    CatalogError,
    ConfigError,
    ConfirmationUnavailableError,
    DuplicateRegistrationError,
    JsonRenderError,
    PointerError,
    UnknownActionError,
)
from json_render.runtime import (
    ABSENT,
    ActionDispatcher,
    ApplyStatus,
    AuthState,
    Catalog,
    DataStore,
    PatchStreamBuilder,
    StreamSurface,
    UIStream,
    ValidationEngine,
    apply_patch,
    create_catalog,
    dispatch_action,
    evaluate_visibility,
    is_visible,
    iter_visible,
    setup_logging,
)
from json_render.specs import ActionInvocation, JsonPatch, UIElement, UITree

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Config
    "RuntimeConfig",
    "load_runtime_config",
    # Errors
    "ActionError",
    "ActionFailedError",
    "ActionParamsError",
    "CatalogError",
    "ConfigError",
    "ConfirmationUnavailableError",
    "DuplicateRegistrationError",
    "JsonRenderError",
    "PointerError",
    "UnknownActionError",
    # Runtime
    "ABSENT",
    "ActionDispatcher",
    "ApplyStatus",
    "AuthState",
    "Catalog",
    "DataStore",
    "PatchStreamBuilder",
    "StreamSurface",
    "UIStream",
    "ValidationEngine",
    "apply_patch",
    "create_catalog",
    "dispatch_action",
    "evaluate_visibility",
    "is_visible",
    "iter_visible",
    "setup_logging",
    # Specs
    "ActionInvocation",
    "JsonPatch",
    "UIElement",
    "UITree",
]
