"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutrition_scanner.adapters.image_fetcher import HttpxImageFetcher
from nutrition_scanner.adapters.openai_client import OpenAILanguageModelClient
from nutrition_scanner.adapters.supabase_auth_provider import SupabaseAuthProvider
from nutrition_scanner.adapters.supabase_scan_repository import (
    SupabaseScanRepository,
)
from nutrition_scanner.config import Settings
from nutrition_scanner.services.analysis import AnalysisService
from nutrition_scanner.services.chat import ChatService
from nutrition_scanner.services.export import ShareCardService
from nutrition_scanner.services.scans import ScanService
from nutrition_scanner.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    user_service: UserService
    analysis_service: AnalysisService
    scan_service: ScanService
    share_card_service: ShareCardService
    chat_service: ChatService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    user_service = UserService(SupabaseAuthProvider(supabase_client))
    scan_service = ScanService(SupabaseScanRepository(supabase_client))
    image_fetcher = HttpxImageFetcher.create()
    openai_client = OpenAILanguageModelClient.create(resolved_settings.openai_api_key)
    analysis_service = AnalysisService(
        client=openai_client,
        image_fetcher=image_fetcher,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    chat_service = ChatService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    share_card_service = ShareCardService(image_fetcher)

    async def close_resources() -> None:
        await image_fetcher.close()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        user_service=user_service,
        analysis_service=analysis_service,
        scan_service=scan_service,
        share_card_service=share_card_service,
        chat_service=chat_service,
        close_resources=close_resources,
    )
