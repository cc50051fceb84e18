"""Domain models for the nutrition scanner."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UserRecord:
    """Represents an authenticated user."""

    id: str
    email: str | None = None
