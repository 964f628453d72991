"""
json-render type definitions.

This module exports all element, patch, visibility, validation and action
specification types.
"""

from json_render.specs.actions import (
    ActionCallback,
    ActionInvocation,
    ActionOutcome,
    ActionStatus,
    ConfirmSpec,
    ConfirmVariant,
)
from json_render.specs.element import UIElement, UITree
from json_render.specs.patch import JsonPatch, PatchOp
from json_render.specs.validation import (
    CheckResult,
    CheckStatus,
    ValidateOn,
    ValidationCheck,
    ValidationConfig,
)
from json_render.specs.values import PathRef, is_path_ref
from json_render.specs.visibility import (
    AndCondition,
    AuthCondition,
    CompareCondition,
    CompareOp,
    NotCondition,
    OrCondition,
    VisibilityExpr,
    parse_visibility,
    to_wire,
)

__all__ = [
    # Actions
    "ActionCallback",
    "ActionInvocation",
    "ActionOutcome",
    "ActionStatus",
    "ConfirmSpec",
    "ConfirmVariant",
    # Elements
    "UIElement",
    "UITree",
    # Patches
    "JsonPatch",
    "PatchOp",
    # Validation
    "CheckResult",
    "CheckStatus",
    "ValidateOn",
    "ValidationCheck",
    "ValidationConfig",
    # Values
    "PathRef",
    "is_path_ref",
    # Visibility
    "AndCondition",
    "AuthCondition",
    "CompareCondition",
    "CompareOp",
    "NotCondition",
    "OrCondition",
    "VisibilityExpr",
    "parse_visibility",
    "to_wire",
]
