"""Custom exception types for SyntropyStack.

This module defines the exception hierarchy for provider errors, enabling
precise error handling and contextual error messages throughout the provider.

Exception Hierarchy:
    SyntropyError (base)
    ├── ConfigurationError - Provider configuration is missing or invalid
    ├── ApiError - The platform API returned an error or could not be reached
    ├── UnexpectedCountError - A lookup returned zero or many records instead of one
    ├── ResourceNotFoundError - A remote object referenced by state does not exist
    ├── SchemaValidationError - Resource configuration does not match its schema
    └── ResourceOperationError - A resource lifecycle operation failed
"""

from typing import Any, Dict, Optional


class SyntropyError(Exception):
    """Base exception for all SyntropyStack errors.

    Attributes:
        message: Human-readable error description
        context: Additional contextual information (e.g., connection IDs, agent IDs)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Initialize SyntropyError.

        Args:
            message: Human-readable error description
            context: Optional dict with additional context (IDs, counts, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ConfigurationError(SyntropyError):
    """Raised when the provider cannot be configured.

    Examples:
        - No access token in configuration or SYNTROPY_ACCESS_TOKEN
        - Malformed API URL
    """

    pass


class ApiError(SyntropyError):
    """Raised when a platform API call fails.

    Attributes:
        status_code: HTTP status code, or None when no response was received
        body: Raw response body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = dict(context or {})
        if status_code is not None:
            context.setdefault("status", status_code)
        super().__init__(message, context)
        self.status_code = status_code
        self.body = body


class UnexpectedCountError(SyntropyError):
    """Raised when a lookup expected to match exactly one record does not.

    Examples:
        - Agent read by ID returns zero or two agents
        - Connection detail lookup returns more than one connection
    """

    def __init__(
        self,
        message: str,
        expected: int,
        actual: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = dict(context or {})
        context.setdefault("expected", expected)
        context.setdefault("actual", actual)
        super().__init__(message, context)
        self.expected = expected
        self.actual = actual


class ResourceNotFoundError(SyntropyError):
    """Raised when a remote object referenced by state cannot be found.

    Examples:
        - No connection exists between the two configured agents
        - Connection group ID is unknown to the platform
    """

    pass


class SchemaValidationError(SyntropyError):
    """Raised when configuration does not satisfy a resource schema.

    Examples:
        - Required attribute missing
        - Unknown attribute name
        - Value of the wrong type
    """

    pass


class ResourceOperationError(SyntropyError):
    """Raised when a resource lifecycle operation fails.

    The message is the short operation summary shown to the user
    (e.g. "Error while creating network mesh"), the detail carries the
    underlying cause.
    """

    def __init__(
        self,
        message: str,
        detail: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.detail = detail
