"""Shared test fixtures."""

import io
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from PIL import Image

from nutrition_scanner.config import Settings
from nutrition_scanner.containers import AppContainer
from nutrition_scanner.domain.models import UserRecord
from nutrition_scanner.domain.scans import (
    EvaluationStatus,
    MenuItemDetection,
    NutritionAnalysis,
    NutritionItem,
    PublicScan,
    SchoolCategory,
    Scan,
    SummaryEvaluation,
)
from nutrition_scanner.services.analysis import (
    AnalysisService,
    FetchedImage,
    ImageFetcher,
    LanguageModelClient,
)
from nutrition_scanner.services.chat import ChatService
from nutrition_scanner.services.export import ShareCardService
from nutrition_scanner.services.nutrition import summarize_items
from nutrition_scanner.services.scans import ScanRepository, ScanService
from nutrition_scanner.services.users import AuthProvider, UserService

VALID_TOKEN = "valid-token"
TEST_USER = UserRecord(id="user-1", email="guru@example.com")
AUTH_HEADERS = {"Authorization": f"Bearer {VALID_TOKEN}"}

DETECTION_RESPONSE = json.dumps(
    {
        "items": [
            {
                "nama_menu": "Nasi putih",
                "estimasi_gram": 150,
                "deskripsi": "Nasi putih pulen",
                "proses_pengolahan": "Dikukus",
            },
            {
                "nama_menu": "Ayam goreng",
                "estimasi_gram": 80,
                "deskripsi": "Paha ayam berbumbu kuning",
                "proses_pengolahan": "Digoreng",
            },
        ]
    }
)

NUTRITION_RESPONSE = json.dumps(
    {
        "nutrition_summary": {
            "calories_kcal": 440,
            "protein_g": 25,
            "fat_g": 13,
            "carbs_g": 57,
            "sodium_mg": 400,
            "fiber_g": 1,
        },
        "items": [
            {
                "name": "Nasi putih",
                "grams": 150,
                "calories_kcal": 200,
                "protein_g": 4,
                "fat_g": 1,
                "carbs_g": 45,
                "sodium_mg": 0,
                "fiber_g": 1,
            },
            {
                "name": "Ayam goreng",
                "grams": 80,
                "calories_kcal": 240,
                "protein_g": 21,
                "fat_g": 12,
                "carbs_g": 12,
                "sodium_mg": 400,
                "fiber_g": 0,
            },
        ],
        "summary_evaluation": {
            "status": "Layak",
            "reason": "Komposisi karbohidrat dan protein seimbang.",
            "recommendation": None,
        },
    }
)


def png_bytes(size: tuple[int, int] = (64, 48)) -> bytes:
    """Return a small solid PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 120, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


def make_scan(  # noqa: PLR0913
    *names: str,
    scan_id: str | None = None,
    status: EvaluationStatus | None = EvaluationStatus.BALANCED,
    category: SchoolCategory | None = SchoolCategory.SD_1_3,
    scan_date: datetime | None = None,
    calories: tuple[float, ...] | None = None,
) -> Scan:
    """Build a scan whose summary matches its items."""
    names = names or ("Nasi putih", "Ayam goreng")
    calories = calories or tuple(100.0 for _ in names)
    menu_items = []
    nutrition_items = []
    for name, kcal in zip(names, calories, strict=True):
        menu_item = MenuItemDetection(nama_menu=name, estimasi_gram=100)
        menu_items.append(menu_item)
        nutrition_items.append(
            NutritionItem(
                item_id=menu_item.item_id,
                name=name,
                grams=100,
                calories_kcal=kcal,
                protein_g=5,
                fat_g=3,
                carbs_g=15,
                sodium_mg=50,
                fiber_g=1,
            )
        )
    evaluation = (
        SummaryEvaluation(status=status, reason="Seimbang") if status else None
    )
    return Scan(
        id=scan_id,
        image_url="https://storage.example.com/menu.jpg",
        scan_date=scan_date or datetime(2025, 1, 15, 10, 0, tzinfo=UTC),
        menu_items=menu_items,
        nutrition_facts=NutritionAnalysis(
            nutrition_summary=summarize_items(nutrition_items),
            items=nutrition_items,
            summary_evaluation=evaluation,
        ),
        school_category=category,
    )


def make_public_scan(
    scan_id: str,
    scan_date: datetime,
    category: SchoolCategory | None = SchoolCategory.SD_1_3,
) -> PublicScan:
    scan = make_scan(scan_id=scan_id, scan_date=scan_date, category=category)
    return PublicScan(
        id=scan_id,
        image_url=scan.image_url,
        scan_date=scan.scan_date,
        nutrition_facts=scan.nutrition_facts,
        school_category=category,
    )


@dataclass
class FakeLanguageModelClient(LanguageModelClient):
    """Fake model client returning queued responses or raising queued errors."""

    responses: list[str | Exception] = field(default_factory=list)
    calls: list[dict[str, object]] = field(default_factory=list)

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        prompt: str,
        image_data_url: str | None = None,
        schema: dict[str, object] | None = None,
        schema_name: str | None = None,
    ) -> str:
        self.calls.append(
            {
                "model": model,
                "prompt": prompt,
                "image_data_url": image_data_url,
                "schema": schema,
                "schema_name": schema_name,
            }
        )
        if not self.responses:
            raise RuntimeError("No response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@dataclass
class FakeImageFetcher(ImageFetcher):
    """Fake image fetcher serving static bytes."""

    content: bytes = field(default_factory=png_bytes)
    content_type: str | None = "image/png"
    error: Exception | None = None
    fetched: list[str] = field(default_factory=list)

    async def fetch(self, image_url: str) -> FetchedImage:
        self.fetched.append(image_url)
        if self.error is not None:
            raise self.error
        return FetchedImage(content=self.content, content_type=self.content_type)


@dataclass
class InMemoryScanRepository(ScanRepository):
    """In-memory scan repository for tests."""

    scans: dict[str, Scan] = field(default_factory=dict)
    fail: bool = False

    def _check(self) -> None:
        if self.fail:
            raise RuntimeError("database unavailable")

    def create_scan(self, user_id: str, scan: Scan) -> Scan:
        self._check()
        stored = scan.model_copy(
            update={
                "id": str(uuid4()),
                "user_id": user_id,
                "created_at": datetime.now(tz=UTC),
            },
            deep=True,
        )
        self.scans[stored.id] = stored
        return stored

    def get_user_scan(self, user_id: str, scan_id: str) -> Scan | None:
        self._check()
        scan = self.scans.get(scan_id)
        if scan is None or scan.user_id != user_id:
            return None
        return scan

    def list_user_scans(self, user_id: str) -> list[Scan]:
        self._check()
        owned = [scan for scan in self.scans.values() if scan.user_id == user_id]
        return sorted(owned, key=lambda scan: scan.scan_date, reverse=True)

    def delete_scan(self, user_id: str, scan_id: str) -> None:
        self._check()
        scan = self.scans.get(scan_id)
        if scan is not None and scan.user_id == user_id:
            del self.scans[scan_id]

    def list_public_scans(self, limit: int) -> list[PublicScan]:
        self._check()
        latest = sorted(
            self.scans.values(), key=lambda scan: scan.scan_date, reverse=True
        )
        return [
            PublicScan(
                id=scan.id,
                image_url=scan.image_url,
                scan_date=scan.scan_date,
                nutrition_facts=scan.nutrition_facts,
                school_category=scan.school_category,
            )
            for scan in latest[:limit]
        ]

    def add(self, user_id: str, scan: Scan) -> Scan:
        """Store a scan directly, keeping its id when it has one."""
        stored = scan.model_copy(
            update={"id": scan.id or str(uuid4()), "user_id": user_id}
        )
        self.scans[stored.id] = stored
        return stored


@dataclass
class FakeAuthProvider(AuthProvider):
    """Auth provider resolving a fixed set of tokens."""

    users: dict[str, UserRecord] = field(
        default_factory=lambda: {VALID_TOKEN: TEST_USER}
    )

    def get_user(self, access_token: str) -> UserRecord | None:
        return self.users.get(access_token)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        openai_api_key="openai-key",
    )


@pytest.fixture
def language_model() -> FakeLanguageModelClient:
    return FakeLanguageModelClient()


@pytest.fixture
def image_fetcher() -> FakeImageFetcher:
    return FakeImageFetcher()


@pytest.fixture
def scan_repository() -> InMemoryScanRepository:
    return InMemoryScanRepository()


@pytest.fixture
def container(
    settings: Settings,
    language_model: FakeLanguageModelClient,
    image_fetcher: FakeImageFetcher,
    scan_repository: InMemoryScanRepository,
) -> AppContainer:
    analysis_service = AnalysisService(
        client=language_model,
        image_fetcher=image_fetcher,
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
    )
    chat_service = ChatService(
        client=language_model,
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        user_service=UserService(FakeAuthProvider()),
        analysis_service=analysis_service,
        scan_service=ScanService(scan_repository),
        share_card_service=ShareCardService(image_fetcher),
        chat_service=chat_service,
        close_resources=close_resources,
    )
