"""Error kinds raised by the marketplace managers.

Views never build error responses by hand: they let these propagate to
``accounts.decorators.api_view`` which maps each kind to its HTTP status.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(MarketplaceError):
    status_code = 401
    default_message = "Unauthorized access"


class Forbidden(MarketplaceError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(MarketplaceError):
    status_code = 404
    default_message = "Not found"


class InvalidState(MarketplaceError):
    status_code = 400
    default_message = "Operation not allowed in the current state"


class Conflict(MarketplaceError):
    status_code = 409
    default_message = "Already exists"


class ValidationFailed(MarketplaceError):
    status_code = 400
    default_message = "Invalid input"

    def __init__(self, message: str | None = None, field: str | None = None):
        super().__init__(message)
        self.field = field

    @classmethod
    def from_form(cls, form) -> "ValidationFailed":
        """Report the first violated constraint of a bound, invalid form."""
        for field, errors in form.errors.items():
            if not errors:
                continue
            message = errors[0]
            if field == "__all__":
                return cls(message)
            return cls(f"{field}: {message}", field=field)
        return cls()
