"""Session authentication for user endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Header, Request

from nutrition_scanner.domain.models import UserRecord

if TYPE_CHECKING:
    from nutrition_scanner.containers import AppContainer

_BEARER_PREFIX = "bearer "


async def require_user(
    request: Request, authorization: str | None = Header(default=None)
) -> UserRecord:
    """Resolve the Supabase session user from the bearer token."""
    container: AppContainer = request.app.state.container
    token = None
    if authorization and authorization.lower().startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX) :].strip()
    return container.user_service.authenticate(token)
