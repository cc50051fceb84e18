"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nutrition_scanner.api.models import AnalyzeRequest, ChatRequest
from nutrition_scanner.api.public import router as public_router
from nutrition_scanner.api.scans import router as scans_router
from nutrition_scanner.app_logging import configure_logging
from nutrition_scanner.containers import AppContainer
from nutrition_scanner.errors import InputError, ScannerError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(ScannerError)
    async def scanner_error_handler(
        request: Request, exc: ScannerError
    ) -> JSONResponse:
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("Rejected request to %s: %s", request.url.path, exc.errors())
        error = InputError()
        return JSONResponse({"error": error.message}, status_code=error.status_code)

    app.include_router(scans_router)
    app.include_router(public_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/analyze")
    async def analyze(
        payload: AnalyzeRequest, request: Request
    ) -> dict[str, object]:
        """Detect menu items on an uploaded photo and compute nutrition facts."""
        state_container: AppContainer = request.app.state.container
        if not payload.image_url:
            raise InputError("Image URL is required")
        logger.info("Starting menu analysis")
        scan = await state_container.analysis_service.analyze(payload.image_url)
        logger.info(
            "Analysis complete: %s items, %.0f kcal",
            len(scan.menu_items),
            scan.nutrition_facts.nutrition_summary.calories_kcal,
        )
        return scan.model_dump(
            mode="json",
            include={"image_url", "scan_date", "menu_items", "nutrition_facts"},
        )

    @app.post("/api/chat")
    async def chat(payload: ChatRequest, request: Request) -> dict[str, str]:
        """Answer a question about nutrition and the free meal programme."""
        state_container: AppContainer = request.app.state.container
        reply = await state_container.chat_service.reply(payload.message)
        return {"reply": reply}

    return app
