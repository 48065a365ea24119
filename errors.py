# errors.py
from __future__ import annotations


class DashboardError(Exception):
    """Base class for every error the dashboard surfaces to the user."""


class FormValidationError(DashboardError, ValueError):
    """
    Form payload did not pass the schema checks.
    `errors` maps a form field to its message; the form is re-rendered with
    the messages next to the fields.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        first = next(iter(self.errors.items()), ("form", "invalid input"))
        super().__init__(f"{first[0]}: {first[1]}")


class NotFoundError(DashboardError, ValueError):
    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found (id={entity_id})")


class BackendError(DashboardError):
    """A request to the persistence backend failed (network, constraint, ...)."""

    def __init__(self, message: str, *, table: str | None = None) -> None:
        self.table = table
        super().__init__(message)


class StorageError(DashboardError):
    pass


class AuthError(DashboardError):
    pass
