"""
Error Taxonomy for the Expense Ledger

Every failure the ledger can report is one of the classes below.
Each class carries the status category the boundary should report,
so callers never have to guess which bucket an error belongs to.

The mapping to transport codes belongs to the routing collaborator;
``StatusCategory.http_status`` is provided as the conventional choice.
"""

from enum import Enum
from typing import Optional


class StatusCategory(str, Enum):
    """Externally visible outcome categories."""
    CREATED = "created"
    OK = "ok"
    NO_CONTENT = "no_content"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def is_success(self) -> bool:
        return self in (StatusCategory.CREATED, StatusCategory.OK, StatusCategory.NO_CONTENT)


_HTTP_STATUS = {
    StatusCategory.CREATED: 201,
    StatusCategory.OK: 200,
    StatusCategory.NO_CONTENT: 204,
    StatusCategory.BAD_REQUEST: 400,
    StatusCategory.NOT_FOUND: 404,
    StatusCategory.SERVER_ERROR: 500,
}


class LedgerError(Exception):
    """Base exception for ledger operations."""

    status: StatusCategory = StatusCategory.SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """
    Malformed or missing input.

    Detected before any transaction opens; never touches the store.
    """

    status = StatusCategory.BAD_REQUEST

    def __init__(self, message: str, issues: Optional[list] = None):
        super().__init__(message)
        self.issues = issues or []


class InvalidFilterError(LedgerError):
    """Unrecognized aggregation filter keyword."""

    status = StatusCategory.BAD_REQUEST


class AuthContextError(LedgerError):
    """
    Caller identity missing from the request context.

    An upstream gate is expected to enforce authentication, so reaching
    the ledger without an identity is a server fault, not a client error.
    """


class NotFoundError(LedgerError):
    """No record matches the requested (id, owner) pair."""

    status = StatusCategory.NOT_FOUND


class ConsistencyFault(LedgerError):
    """Store reported an unexpected affected-row count."""


class ConversionError(LedgerError):
    """A Money value cannot be represented in the response's numeric form."""


class PersistenceError(LedgerError):
    """Transport, constraint or scan failure reported by the store."""


class DatabaseConnectionError(PersistenceError):
    """Could not connect to the database backend."""
