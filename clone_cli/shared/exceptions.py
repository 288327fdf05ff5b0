"""Project-wide custom exceptions."""

from __future__ import annotations


class CloneToolError(Exception):
    """Base exception for the table cloning tools."""


class ConfigurationError(CloneToolError):
    """Raised when configuration loading or validation fails."""


class DatabaseError(CloneToolError):
    """Raised for connection-level database issues."""


class CloneError(CloneToolError):
    """Base for errors raised while planning or applying a clone run."""


class ResolutionError(CloneError):
    """Raised when a database, schema or table cannot be resolved."""


class EmptyResultError(CloneError):
    """Raised when the catalog returns no columns for the resolved tables."""


class CreationError(CloneError):
    """Raised when a CREATE TABLE statement fails on the target."""


class ObjectDdlError(CloneError):
    """Raised when a constraint, index or trigger statement fails on the target."""

    def __init__(self, message: str, statement: str) -> None:
        super().__init__(message)
        self.statement = statement

    def describe(self) -> str:
        return f"Error: {self} Failed executing: {self.statement}"
