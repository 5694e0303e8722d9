"""
Store-level exceptions for the Lending Library MCP Server.

Kept apart from the repositories so that session helpers can raise them
without importing repository code.
"""


class RepositoryException(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class DuplicateError(RepositoryException):
    """Raised when attempting to create a duplicate entity."""


class StoreUnavailable(RepositoryException):
    """
    Raised when the underlying store fails (connection loss, corruption).

    The unit of work that hit the failure has been rolled back, so callers
    may retry the whole operation.
    """
