from __future__ import annotations


class TechniqueError(Exception):
    """Base class for failures surfaced by the technique services."""

    status_code = 500
    default_message = 'technique operation failed'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TechniqueError):
    """Missing field, invalid enum value or malformed reference."""

    status_code = 400
    default_message = 'invalid technique payload'


class NotFoundError(TechniqueError):
    status_code = 404
    default_message = 'technique not found'


class ConflictError(TechniqueError):
    """Raised when an explicit slug is already taken."""

    status_code = 409
    default_message = 'slug already in use'


class StoreError(TechniqueError):
    """The underlying database call failed. Partial mutations are not rolled back."""

    status_code = 500
    default_message = 'technique store unavailable'
