# This project was developed with assistance from AI tools.
"""Workflow error hierarchy.

Every failure the workflow core can report carries the HTTP status the API
layer renders it with, so routes never translate exceptions by hand.
"""


class WorkflowError(Exception):
    """Base class for all approval workflow failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(WorkflowError):
    """Document or approval record missing, or soft-deleted."""

    status_code = 404


class AuthorizationError(WorkflowError):
    """Acting user is not the assigned approver (or not an admin)."""

    status_code = 403


class StateError(WorkflowError):
    """Transition not allowed from the record's or document's current state."""

    status_code = 400


class ValidationError(WorkflowError):
    """Malformed input. ``errors`` holds one ``{field, message}`` per problem."""

    status_code = 400

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ConcurrencyError(WorkflowError):
    """A concurrent writer changed the document between read and write."""

    status_code = 409
