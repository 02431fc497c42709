from __future__ import annotations


class CharSheetError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(CharSheetError):
    status_code = 400


class AuthenticationError(CharSheetError):
    status_code = 401


class PermissionDeniedError(CharSheetError):
    status_code = 403


class NotFoundError(CharSheetError):
    status_code = 404


class ConflictError(CharSheetError):
    status_code = 409


class PersistenceError(CharSheetError):
    status_code = 500


class InventoryError(BadRequestError):
    """Raised after every item of an inventory write has been tried.

    ``failures`` holds one message per item that could not be written.
    """

    def __init__(self, failures: list[str]) -> None:
        super().__init__("Inventory could not be saved: " + "; ".join(failures))
        self.failures = failures
