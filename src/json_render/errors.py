"""
Error types for the json-render runtime.

Only host misconfiguration surfaces as an exception. Noise in the
generator's patch stream is counted and dropped by the tree builder and
never reaches this module.
"""

from dataclasses import dataclass
from typing import Optional


class JsonRenderError(Exception):
    """Base exception for all json-render errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}: {self.message}"
        return self.message


class CatalogError(JsonRenderError):
    """Raised when a catalog cannot be built from its definitions."""

    pass


class DuplicateRegistrationError(CatalogError):
    """
    Raised when a name is registered twice in one catalog namespace.

    Components, actions and validation functions are separate namespaces,
    so the same name may appear once in each.
    """

    def __init__(self, namespace: str, name: str):
        self.namespace = namespace
        self.name = name
        super().__init__(f"Duplicate {namespace} registration: {name!r}")


class PointerError(JsonRenderError):
    """
    Raised when a JSON Pointer cannot be written through.

    Examples:
    - Non-integer segment addressing a list
    - List index past the end
    - Empty pointer, which would replace the document in place
    - Writing into a document that is not a container
    """

    pass


class ConfigError(JsonRenderError):
    """Raised when a runtime configuration file is unreadable or invalid."""

    pass


class ActionError(JsonRenderError):
    """Base class for action dispatch failures reported to the host."""

    def __init__(self, message: str, action: str | None = None):
        self.action = action
        context = ErrorContext(action=action) if action else None
        super().__init__(message, context)


class UnknownActionError(ActionError):
    """
    Raised when an invocation names an action with no handler.

    Actions are host-declared, so this is a configuration error and is
    never silently dropped.
    """

    def __init__(self, action: str):
        super().__init__(f"No handler registered for action {action!r}", action)


class ActionParamsError(ActionError):
    """Raised when invocation params do not satisfy the action's schema."""

    def __init__(self, action: str, errors: list[str]):
        self.errors = errors
        detail = "; ".join(errors) if errors else "invalid params"
        super().__init__(f"Invalid params: {detail}", action)


class ConfirmationUnavailableError(ActionError):
    """Raised when an invocation asks for confirmation but no prompter exists."""

    def __init__(self, action: str):
        super().__init__("Action requires confirmation but no prompter is configured", action)


class ActionFailedError(ActionError):
    """
    Raised when a handler fails and the invocation has no onError route.

    The handler's exception is available as ``cause`` (and ``__cause__``).
    """

    def __init__(self, action: str, cause: BaseException):
        self.cause = cause
        super().__init__(f"Handler failed: {cause}", action)


@dataclass
class ErrorContext:
    """
    Context information attached to an error.

    Attributes:
        action: Action name the error relates to
        pointer: Data pointer the error relates to
    """

    action: str | None = None
    pointer: str | None = None

    def format(self) -> str:
        """
        Format error context as a short prefix.

        Returns:
            String like "action 'save'" or "pointer '/form/email'"
        """
        parts = []
        if self.action:
            parts.append(f"action {self.action!r}")
        if self.pointer is not None:
            parts.append(f"pointer {self.pointer!r}")
        return ", ".join(parts)


def make_pointer_error(message: str, pointer: str) -> PointerError:
    """
    Helper to create a PointerError with the offending pointer attached.

    Args:
        message: Error description
        pointer: The pointer being resolved

    Returns:
        PointerError with context attached
    """
    return PointerError(message, ErrorContext(pointer=pointer))
