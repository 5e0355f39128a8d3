"""FastAPI application exposing the summarize endpoints and the single-page UI."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from .config import Settings, configure_logging, load_settings
from .identity import FirebaseIdentityProvider, IdentityBootstrap, IdentityProvider, IdentityProviderError
from .page import SummaryPage
from .summarize_service import SummarizeService

logger = logging.getLogger(__name__)

INDEX_PATH = Path(__file__).parent / "index.html"


class SummarizeRequest(BaseModel):
    transcript: str = ""
    # Shown in the form only, never sent to the endpoint.
    video_url: str | None = None


def _build_provider(settings: Settings) -> IdentityProvider | None:
    try:
        return FirebaseIdentityProvider.from_config(settings.provider_config)
    except IdentityProviderError as exc:
        logger.error("Identity provider unavailable: %s", exc)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the identity bootstrap, and close owned HTTP clients on shutdown."""
    page: SummaryPage = app.state.page
    # Runs in the background so the page is served, not ready, while signing in.
    bootstrap_task = asyncio.create_task(page.bootstrap.run())
    try:
        yield
    finally:
        if not bootstrap_task.done():
            bootstrap_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await bootstrap_task
        await page.service.aclose()
        provider = page.bootstrap.provider
        if isinstance(provider, FirebaseIdentityProvider):
            await provider.aclose()


def create_app(
    settings: Settings | None = None,
    provider: IdentityProvider | None = None,
    service: SummarizeService | None = None,
) -> FastAPI:
    """Wire settings, identity bootstrap and summarize service into an app."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    bootstrap = IdentityBootstrap(
        provider or _build_provider(settings),
        bootstrap_credential=settings.bootstrap_credential,
    )
    page = SummaryPage(bootstrap, service or SummarizeService(settings.endpoint_url))

    app = FastAPI(title="SumDLB", lifespan=lifespan)
    app.state.page = page

    @app.get("/")
    async def get_index() -> HTMLResponse:
        """Serve the index.html single-page UI."""
        with open(INDEX_PATH, encoding="utf-8") as f:
            return HTMLResponse(f.read())

    @app.get("/api/state")
    async def get_state(request: Request) -> dict:
        """Return the page state polled by the UI."""
        return request.app.state.page.snapshot()

    @app.post("/api/summarize")
    async def summarize(body: SummarizeRequest, request: Request) -> JSONResponse:
        """Summarize the posted transcript; 409 while another request is running."""
        page: SummaryPage = request.app.state.page
        if page.in_flight:
            return JSONResponse(page.snapshot(), status_code=409)
        await page.summarize(body.transcript)
        return JSONResponse(page.snapshot())

    return app


app = create_app()
