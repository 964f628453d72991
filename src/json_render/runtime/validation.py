"""
Validation engine.

Runs an ordered list of named checks against a value and reports every
result. There is no short-circuit: a failing ``required`` does not stop
``email`` from being evaluated and reported.

Built-in functions:
    required    fails on ABSENT, None, blank strings and empty lists/mappings
    email       string of the form local@domain.tld
    minLength   len(value) >= args.length (strings and lists)
    maxLength   len(value) <= args.length (strings and lists)
    pattern     re.search(args.pattern, str(value)); ABSENT/None read as ""
    min         number >= args.min
    max         number <= args.max
    numeric     number, or a string that parses as one
    url         http(s) URL
    matches     value == args.other (use {"path": ...} for another field)

Host functions take ``(value, args)`` and return a bool, or an awaitable
bool. Trigger gating (change/blur/submit) is decided by the caller via
should_validate(); the engine always evaluates the full list it is given.
"""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from json_render.runtime.catalog import Catalog
from json_render.runtime.data_store import DataStore
from json_render.runtime.pointer import ABSENT
from json_render.runtime.resolver import resolve_params
from json_render.specs.element import UIElement
from json_render.specs.validation import (
    CheckResult,
    CheckStatus,
    ValidateOn,
    ValidationCheck,
    ValidationConfig,
)

logger = logging.getLogger(__name__)

ValidatorFn = Callable[[Any, Mapping[str, Any]], bool | Awaitable[bool]]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


# =============================================================================
# Built-in checks
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _required(value: Any, args: Mapping[str, Any]) -> bool:
    if value is ABSENT or value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, list | tuple | Mapping):
        return len(value) > 0
    return True


def _email(value: Any, args: Mapping[str, Any]) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value))


def _length(value: Any) -> int | None:
    if isinstance(value, str | list | tuple):
        return len(value)
    return None


def _min_length(value: Any, args: Mapping[str, Any]) -> bool:
    length = _length(value)
    return length is not None and _is_number(args.get("length")) and length >= args["length"]


def _max_length(value: Any, args: Mapping[str, Any]) -> bool:
    length = _length(value)
    return length is not None and _is_number(args.get("length")) and length <= args["length"]


def _pattern(value: Any, args: Mapping[str, Any]) -> bool:
    pattern = args.get("pattern")
    if not isinstance(pattern, str):
        return False
    text = "" if value is ABSENT or value is None else str(value)
    try:
        return re.search(pattern, text) is not None
    except re.error:
        logger.warning("Invalid validation pattern %r", pattern)
        return False


def _min(value: Any, args: Mapping[str, Any]) -> bool:
    bound = args.get("min")
    return _is_number(value) and _is_number(bound) and value >= bound


def _max(value: Any, args: Mapping[str, Any]) -> bool:
    bound = args.get("max")
    return _is_number(value) and _is_number(bound) and value <= bound


def _numeric(value: Any, args: Mapping[str, Any]) -> bool:
    if _is_number(value):
        return True
    if isinstance(value, str) and value.strip():
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _url(value: Any, args: Mapping[str, Any]) -> bool:
    return isinstance(value, str) and bool(_URL_RE.match(value))


def _matches(value: Any, args: Mapping[str, Any]) -> bool:
    return value == args.get("other")


BUILTIN_VALIDATORS: dict[str, Callable[[Any, Mapping[str, Any]], bool]] = {
    "required": _required,
    "email": _email,
    "minLength": _min_length,
    "maxLength": _max_length,
    "pattern": _pattern,
    "min": _min,
    "max": _max,
    "numeric": _numeric,
    "url": _url,
    "matches": _matches,
}


# =============================================================================
# Trigger gating
# =============================================================================


def should_validate(validate_on: ValidateOn, trigger: ValidateOn) -> bool:
    """Submit validates every field; change/blur only fields configured for them."""
    return trigger == ValidateOn.SUBMIT or trigger == validate_on


def validation_config_for(element: UIElement) -> ValidationConfig | None:
    """
    Validation config of an element.

    Prefers the element's ``validation`` field and falls back to
    ``props.checks`` / ``props.validateOn``.
    """
    if element.validation is not None:
        return element.validation
    checks = element.props.get("checks")
    if not checks:
        return None
    raw: dict[str, Any] = {"checks": checks}
    if "validateOn" in element.props:
        raw["validateOn"] = element.props["validateOn"]
    try:
        return ValidationConfig.model_validate(raw)
    except ValidationError as e:
        logger.warning("Ignoring malformed checks on element %s: %s", element.key, e)
        return None


# =============================================================================
# Engine
# =============================================================================


class ValidationEngine:
    """
    Runs validation checks with built-in and host-supplied functions.

    Example:
        engine = ValidationEngine(functions={"isValidPhone": is_valid_phone})
        results = await engine.check("", [ValidationCheck(fn="required", message="Required")])
        assert not results[0].passed
    """

    def __init__(
        self,
        functions: Mapping[str, ValidatorFn] | None = None,
        catalog: Catalog | None = None,
    ):
        """
        Args:
            functions: Host validation functions by name
            catalog: When given, host functions must also be declared in it
        """
        self.functions = dict(functions or {})
        self.catalog = catalog

    def resolve(self, name: str) -> ValidatorFn | None:
        """Find a built-in or host function by name."""
        if name in BUILTIN_VALIDATORS:
            return BUILTIN_VALIDATORS[name]
        if self.catalog is not None and not self.catalog.has_validation_fn(name):
            return None
        return self.functions.get(name)

    async def check(
        self,
        value: Any,
        checks: Sequence[ValidationCheck | Mapping[str, Any]],
        *,
        store: DataStore | None = None,
    ) -> list[CheckResult]:
        """
        Run every check in order against value.

        Args:
            value: Value under validation (ABSENT for a missing field)
            checks: Checks to run (models or raw wire dicts)
            store: Resolves ``{"path": ...}`` args when given

        Returns:
            One CheckResult per check, in order
        """
        parsed = [ValidationCheck.model_validate(c) if isinstance(c, Mapping) else c for c in checks]
        return [await self._run(value, check, store) for check in parsed]

    async def check_element(
        self,
        element: UIElement,
        store: DataStore,
        trigger: ValidateOn = ValidateOn.SUBMIT,
    ) -> list[CheckResult] | None:
        """
        Validate the value an element is bound to via its ``valuePath`` prop.

        Returns:
            Results, or None when the element has no checks or the trigger
            does not apply to it
        """
        config = validation_config_for(element)
        if config is None or not config.checks:
            return None
        if not should_validate(config.validate_on, trigger):
            return None
        value_path = element.props.get("valuePath")
        value = store.get(value_path) if isinstance(value_path, str) else ABSENT
        return await self.check(value, config.checks, store=store)

    async def _run(
        self, value: Any, check: ValidationCheck, store: DataStore | None
    ) -> CheckResult:
        fn = self.resolve(check.fn)
        if fn is None:
            logger.warning("Unknown validation function: %s", check.fn)
            return CheckResult(
                check=check,
                status=CheckStatus.UNKNOWN_VALIDATOR,
                message=f"Unknown validation function: {check.fn}",
            )

        args = resolve_params(check.args, store) if store is not None else dict(check.args or {})
        try:
            passed = fn(value, args)
            if inspect.isawaitable(passed):
                passed = await passed
        except Exception as e:
            logger.warning("Validation function %s raised: %s", check.fn, e)
            return CheckResult(
                check=check,
                status=CheckStatus.ERROR,
                message=f"Validation function {check.fn} failed: {e}",
            )

        if passed:
            return CheckResult(check=check, status=CheckStatus.PASSED)
        return CheckResult(check=check, status=CheckStatus.FAILED, message=check.failure_message)


def failed_messages(results: Sequence[CheckResult]) -> list[str]:
    """Messages of every non-passing result, in order."""
    return [r.message or r.check.failure_message for r in results if not r.passed]
