"""Custom exceptions for the TRMNL plugin API.

Every host-side failure carries an ``error_code`` and the HTTP
``status_code`` the API layer should answer with.
"""

from typing import Any


class TrmnlException(Exception):
    """Base exception class for the plugin API."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Plugin Exceptions
class PluginNotFoundError(TrmnlException):
    """Raised when no plugin is registered under an identifier."""

    def __init__(self, plugin_identifier: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Plugin '{plugin_identifier}' not found",
            error_code="PLUGIN_NOT_FOUND",
            status_code=404,
            details=details or {"plugin": plugin_identifier},
        )


class PluginUnavailableError(TrmnlException):
    """Raised when a plugin exists but its required credentials are not configured."""

    def __init__(self, plugin_identifier: str, missing: list[str], details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Plugin '{plugin_identifier}' is unavailable: missing credentials {', '.join(missing)}",
            error_code="PLUGIN_UNAVAILABLE",
            status_code=503,
            details=details or {"plugin": plugin_identifier, "missing_credentials": missing},
        )


class PluginContractError(TrmnlException):
    """Raised when a plugin is found but does not honor the plugin contract."""

    def __init__(self, plugin_identifier: str, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Plugin '{plugin_identifier}' violates the plugin contract: {reason}",
            error_code="PLUGIN_CONTRACT_ERROR",
            status_code=500,
            details=details or {"plugin": plugin_identifier, "reason": reason},
        )


class PluginExecutionError(TrmnlException):
    """Raised when a plugin fails while producing its data."""

    def __init__(
        self,
        plugin_identifier: str,
        reason: str,
        status_code: int = 422,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=f"Plugin '{plugin_identifier}' failed: {reason}",
            error_code="PLUGIN_EXECUTION_ERROR",
            status_code=status_code,
            details=details or {"plugin": plugin_identifier, "reason": reason},
        )


# OAuth Exceptions
class OAuthRefreshError(TrmnlException):
    """Raised when exchanging a refresh token for an access token fails."""

    def __init__(self, provider: str, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"OAuth token refresh for '{provider}' failed: {reason}",
            error_code="OAUTH_REFRESH_FAILED",
            status_code=502,
            details=details or {"provider": provider, "reason": reason},
        )
