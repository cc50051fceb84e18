"""Supabase-backed session lookup."""

from dataclasses import dataclass

from supabase import Client

from nutrition_scanner.domain.models import UserRecord
from nutrition_scanner.services.users import AuthProvider


@dataclass
class SupabaseAuthProvider(AuthProvider):
    """Supabase Auth implementation for access token checks."""

    client: Client

    def get_user(self, access_token: str) -> UserRecord | None:
        """Return the user for a Supabase access token."""
        response = self.client.auth.get_user(access_token)
        user = getattr(response, "user", None)
        if user is None:
            return None
        return UserRecord(id=str(user.id), email=getattr(user, "email", None))
