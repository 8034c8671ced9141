"""Short code generation and custom code validation.

Flow Diagram — ShortCodeGenerator.generate()
============================================
::
    ┌─────────────┐
    │ attempt = 1 │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Draw 7 chars │◄──────────┐
    │ (base62)    │           │
    └──────┬──────┘           │
           ▼                  │
    ┌─────────────┐  TAKEN &  │
    │ exists_check│  attempt  │
    │ (same tx)   │──< budget─┘
    └──────┬──────┘
    FREE   │        TAKEN & budget spent
           ▼              ▼
    ┌─────────────┐  ┌──────────────────┐
    │ Return code │  │ CollisionExhausted│
    └─────────────┘  └──────────────────┘

How to Use
===========
**Step 1 — Random code inside the creating transaction**::
    generator = ShortCodeGenerator()
    code = await generator.generate(
        lambda candidate: store.short_code_exists(session, candidate),
        retry_budget=10,
    )

**Step 2 — Validate a user-supplied code**::
    validate_custom_code("promo24")   # ok
    validate_custom_code("admin")     # LinkValidationError

Key Behaviours
===============
- Each character is drawn independently and uniformly from 62 symbols
  using nanoid, which reads from a CSPRNG.
- The existence probe must run on the session that later inserts, so
  the probe and the insert share one transaction.
- The retry budget is an explicit bounded loop, never recursion.
- Reserved words are compared case-insensitively.
"""

import logging
import re
from collections.abc import Awaitable, Callable

from nanoid import generate

from shortener.exceptions import CollisionExhaustedError, LinkValidationError
from shortener.metrics import SHORT_CODE_COLLISIONS_TOTAL

__all__ = [
    "ALPHABET",
    "SHORT_CODE_LENGTH",
    "SHORT_CODE_RETRY_LIMIT",
    "MIN_CUSTOM_LENGTH",
    "MAX_CUSTOM_LENGTH",
    "RESERVED_WORDS",
    "ShortCodeGenerator",
    "generate_short_code",
    "validate_custom_code",
]

logger = logging.getLogger(__name__)

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
SHORT_CODE_LENGTH = 7
SHORT_CODE_RETRY_LIMIT = 10
MIN_CUSTOM_LENGTH = 3
MAX_CUSTOM_LENGTH = 20

_CUSTOM_CODE_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")

# Operational path segments, plus this service's own routes.
RESERVED_WORDS = frozenset(
    {
        "admin", "api", "www", "mail", "ftp", "localhost", "about", "contact",
        "help", "support", "login", "logout", "register", "signup", "signin",
        "dashboard", "settings", "profile", "account", "delete", "edit", "create",
        "update", "new", "old", "test", "demo", "example", "shorten", "url",
        "link", "stats", "analytics", "report", "export", "import", "search",
        "filter", "sort", "page", "next", "prev", "first", "last", "home",
        "health", "metrics", "docs", "redoc", "openapi",
    }
)

ExistsCheck = Callable[[str], Awaitable[bool]]


def generate_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(ALPHABET, length)


def validate_custom_code(custom_code: str) -> str:
    """Check a user-supplied short code and return it unchanged.

    Raises:
        LinkValidationError: on bad length, non-alphanumeric characters or a
            reserved word.
    """
    if len(custom_code) < MIN_CUSTOM_LENGTH:
        raise LinkValidationError(f"Custom short code must be at least {MIN_CUSTOM_LENGTH} characters")
    if len(custom_code) > MAX_CUSTOM_LENGTH:
        raise LinkValidationError(f"Custom short code must be at most {MAX_CUSTOM_LENGTH} characters")
    if not _CUSTOM_CODE_PATTERN.match(custom_code):
        raise LinkValidationError(
            "Custom short code must contain only alphanumeric characters (a-z, A-Z, 0-9)"
        )
    if custom_code.lower() in RESERVED_WORDS:
        raise LinkValidationError(f"'{custom_code}' is a reserved word and cannot be used")
    return custom_code


class ShortCodeGenerator:
    """Draws random short codes until one is free, within a fixed budget."""

    def __init__(self, length: int = SHORT_CODE_LENGTH, draw: Callable[[int], str] = generate_short_code) -> None:
        self.length = length
        self._draw = draw

    async def generate(self, exists_check: ExistsCheck, retry_budget: int = SHORT_CODE_RETRY_LIMIT) -> str:
        assert retry_budget > 0, f"retry_budget must be positive, got {retry_budget!r}"

        for attempt in range(1, retry_budget + 1):
            candidate = self._draw(self.length)
            if not await exists_check(candidate):
                return candidate
            SHORT_CODE_COLLISIONS_TOTAL.inc()
            logger.warning(f"Short code collision on attempt {attempt}/{retry_budget}: {candidate}")

        raise CollisionExhaustedError(retry_budget)
