"""Bootstrap error types and error codes.

This module defines the error hierarchy for the bootstrap, providing
specific error codes for the failure scenarios callers can act on.

Discovery problems are not represented here: a plugin that fails to parse
is captured as an ``InvalidPlugin`` record and never raised.

Classes:
    - BootstrapErrorCode: Enum of error codes for categorizing errors
    - BootstrapError: Base exception for all bootstrap errors
    - NotFoundError: Unknown plugin, component, hook handler or fetch source
    - ProtectedError: Attempted removal of a core plugin
    - ConfigError: Invalid or unreadable configuration
"""

from enum import Enum


class BootstrapErrorCode(str, Enum):
    """Error codes for bootstrap operations."""

    # Configuration errors
    CONFIG_INVALID = "CONFIG_INVALID"

    # Lookup errors
    PLUGIN_NOT_FOUND = "PLUGIN_NOT_FOUND"
    COMPONENT_NOT_FOUND = "COMPONENT_NOT_FOUND"
    FACTORY_NOT_FOUND = "FACTORY_NOT_FOUND"
    HOOK_NOT_FOUND = "HOOK_NOT_FOUND"

    # Lifecycle errors
    PLUGIN_PROTECTED = "PLUGIN_PROTECTED"
    PLUGIN_INVALID = "PLUGIN_INVALID"
    FETCH_FAILED = "FETCH_FAILED"


class BootstrapError(Exception):
    """Base exception for bootstrap errors.

    Attributes:
        code: The error code categorizing this error.
        message: Human-readable error message.
        plugin_name: Name of the plugin involved (if applicable).
        cause: The underlying exception that caused this error (if any).

    Example:
        raise BootstrapError(
            code=BootstrapErrorCode.PLUGIN_INVALID,
            message="plugin.yml is not a mapping",
            plugin_name="php",
        )
    """

    def __init__(
        self,
        code: BootstrapErrorCode,
        message: str,
        plugin_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the bootstrap error.

        Args:
            code: The error code for this error.
            message: Human-readable error message.
            plugin_name: Name of the plugin (optional).
            cause: The underlying exception (optional).
        """
        self.code = code
        self.message = message
        self.plugin_name = plugin_name
        self.cause = cause

        full_message = f"[{code.value}] {message}"
        if plugin_name:
            full_message = f"[{plugin_name}] {full_message}"

        super().__init__(full_message)


class NotFoundError(BootstrapError):
    """Raised when a plugin, component or hook handler cannot be resolved."""


class ProtectedError(BootstrapError):
    """Raised when removing a plugin whose type forbids removal."""

    def __init__(self, message: str, plugin_name: str | None = None) -> None:
        super().__init__(
            code=BootstrapErrorCode.PLUGIN_PROTECTED,
            message=message,
            plugin_name=plugin_name,
        )


class ConfigError(BootstrapError):
    """Raised when configuration cannot be loaded or validated."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(
            code=BootstrapErrorCode.CONFIG_INVALID,
            message=message,
            cause=cause,
        )
