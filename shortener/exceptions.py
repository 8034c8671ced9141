"""Exceptions raised by the short link core.

Every error carries the HTTP status the routing layer answers with, so
routes translate them without a lookup table.

Classes:
    ShortenerError:
        Base class for all service errors.

    LinkValidationError:
        Bad input shape or content (bad custom code, reserved word,
        missing field, expiry in the past). Never retried.

    LinkNotFoundError:
        No live record for a short code, or no record matching both id and
        owner on delete. Ownership mismatch and nonexistence look the same.

    LinkExpiredError:
        The record exists but its expiry has passed.

    ShortCodeConflictError:
        A short code is already held by a live record. Raised for a taken
        custom code and for a generated code that lost an insert race.

    CollisionExhaustedError:
        Random generation hit a taken code on every attempt of its budget.

    UnauthorizedError:
        No owner principal on a request that needs one.

    StoreUnavailableError:
        The durable store did not answer within its timeout.

Example:
    >>> from shortener.exceptions import LinkExpiredError
    >>> raise LinkExpiredError("promo24")
    Traceback (most recent call last):
        ...
    shortener.exceptions.LinkExpiredError: Short link 'promo24' has expired
"""

__all__ = [
    "ShortenerError",
    "LinkValidationError",
    "LinkNotFoundError",
    "LinkExpiredError",
    "ShortCodeConflictError",
    "CollisionExhaustedError",
    "UnauthorizedError",
    "StoreUnavailableError",
]


class ShortenerError(Exception):
    """Generic base class for short link errors."""

    status_code: int = 500


class LinkValidationError(ShortenerError):
    status_code = 400


class LinkNotFoundError(ShortenerError):
    status_code = 404

    def __init__(self, message: str = "Short URL not found") -> None:
        super().__init__(message)


class LinkExpiredError(ShortenerError):
    status_code = 410

    def __init__(self, short_code: str) -> None:
        self.short_code = short_code
        super().__init__(f"Short link '{short_code}' has expired")


class ShortCodeConflictError(ShortenerError):
    status_code = 409

    def __init__(self, short_code: str) -> None:
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' is already taken")


class CollisionExhaustedError(ShortenerError):
    status_code = 500

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Failed to generate a free short code after {attempts} attempts")


class UnauthorizedError(ShortenerError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class StoreUnavailableError(ShortenerError):
    status_code = 503
