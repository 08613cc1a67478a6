"""Structured exception hierarchy for warehouse maintenance.

Every failure carries enough context (layer, table, object, identity)
to identify what broke without reading the surrounding log lines.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "MaintenanceError",
    "GuardRejectedError",
    "StructuralError",
    "LoadError",
    "ConfigurationError",
    "ConnectionError",
]


class MaintenanceError(Exception):
    """Base exception for all maintenance errors."""

    def __init__(
        self,
        message: str,
        *,
        layer: Optional[str] = None,
        table: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.message = message
        self.layer = layer
        self.table = table
        self.details = details or {}
        self.suggestion = suggestion

        headline = message
        if layer or table:
            headline = f"[{layer or '?'}.{table or '*'}] {message}"

        parts = [headline]

        if self.details:
            parts.append("\nDetails:")
            parts.extend(f"  {k}: {v}" for k, v in self.details.items())

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "layer": self.layer,
            "table": self.table,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class GuardRejectedError(MaintenanceError):
    """A destructive operation was refused by the environment guard.

    Raised before any statement is executed.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        identity: str,
        environment: str,
        **kwargs: Any,
    ) -> None:
        self.operation = operation
        self.identity = identity
        self.environment = environment

        details = kwargs.pop("details", {})
        details.update({
            "operation": operation,
            "identity": identity,
            "environment": environment,
        })

        suggestion = kwargs.pop("suggestion", None) or (
            "Re-run with the force flag if this reset is intended."
        )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class StructuralError(MaintenanceError):
    """A drop or create statement failed during an index rebuild."""

    def __init__(
        self,
        message: str,
        *,
        object_name: Optional[str] = None,
        sql: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.object_name = object_name
        self.sql = sql
        self.cause = cause

        details = kwargs.pop("details", {})
        if object_name:
            details["object"] = object_name
        if sql:
            details["sql"] = sql
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class LoadError(MaintenanceError):
    """A truncate, insert or post-insert check failed during a load.

    The layer is left partially loaded; a full re-run is required.
    """

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.cause = cause

        details = kwargs.pop("details", {})
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        suggestion = kwargs.pop("suggestion", None) or (
            "The layer is in a partial state. Fix the cause and re-run the "
            "whole load."
        )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class ConfigurationError(MaintenanceError):
    """Invalid or incomplete maintenance configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class ConnectionError(MaintenanceError):
    """Error connecting to the warehouse."""

    def __init__(
        self,
        message: str,
        *,
        connection_name: Optional[str] = None,
        host: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.connection_name = connection_name
        self.host = host
        self.cause = cause

        details = kwargs.pop("details", {})
        if connection_name:
            details["connection_name"] = connection_name
        if host:
            details["host"] = host
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        suggestion = kwargs.pop("suggestion", None) or (
            "Check that the host is reachable and credentials are correct. "
            "Verify environment variables are set."
        )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)
