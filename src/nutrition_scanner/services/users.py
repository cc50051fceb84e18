"""User session resolution."""

import logging
from dataclasses import dataclass
from typing import Protocol

from nutrition_scanner.domain.models import UserRecord
from nutrition_scanner.errors import AuthFailure

_logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    """Interface for resolving access tokens to users."""

    def get_user(self, access_token: str) -> UserRecord | None:
        """Return the user owning the token, if the session is valid."""


@dataclass
class UserService:
    """Application service for authenticated requests."""

    auth_provider: AuthProvider

    def authenticate(self, access_token: str | None) -> UserRecord:
        """Return the session user or raise when the token is missing or invalid."""
        if not access_token:
            raise AuthFailure
        try:
            user = self.auth_provider.get_user(access_token)
        except Exception as exc:
            _logger.warning("Session lookup failed: %s", type(exc).__name__)
            raise AuthFailure from exc
        if user is None:
            raise AuthFailure
        return user
