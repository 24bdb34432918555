"""
Connection Health - Exceptions.

============================================================
CUSTOM EXCEPTIONS
============================================================

- ConnectionHealthError: Base exception
- ConfigurationError: Invalid monitor configuration
- ClientConfigurationError: Database client cannot be constructed

Connectivity failures are NOT exceptions of this module. They
are turned into probe outcomes and counted. Only setup defects
are raised.

============================================================
"""

from typing import Any, Dict, Optional


class ConnectionHealthError(Exception):
    """
    Base exception for the connection health monitor.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ConnectionHealthError):
    """
    Raised when monitor configuration is invalid.

    Fatal at startup - the monitor refuses to run.
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        value: Any = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if field_name:
            details["field"] = field_name
        if value is not None:
            details["value"] = str(value)

        super().__init__(message=message, details=details)
        self.field_name = field_name


class ClientConfigurationError(ConfigurationError):
    """
    Raised when a database client cannot even be constructed.

    Typical causes: malformed URL, unknown dialect, missing driver.
    Halts only the probe that tried to build the client.
    """

    def __init__(self, reason: str, url: Optional[str] = None) -> None:
        super().__init__(
            message=f"client configuration error: {reason}",
            field_name="url" if url else None,
            value=url,
        )
        self.reason = reason
