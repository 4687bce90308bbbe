"""Entry point for the FastAPI-powered feed service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import Database
from .errors import (
    DecodeFailure,
    RemoteFailure,
    StorageFailure,
    TubeFeedError,
    Unauthenticated,
    ValidationFailure,
)
from .models import ProfileCreate, ProfileUpdate, SourcesUpdate
from .services.feed import FeedService
from .services.profiles import ProfileStore
from .services.youtube import TokenProvider

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    youtube_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.youtube_api_url),
            timeout=httpx.Timeout(settings.request_timeout_seconds, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    store = ProfileStore(database.session_factory)
    feed_service = FeedService(settings, store, youtube_http_client)

    app.state.feed_service = feed_service
    app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Personal, deduplicated YouTube feeds per profile",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_feed_service(app: FastAPI) -> FeedService:
    service = getattr(app.state, "feed_service", None)
    if not isinstance(service, FeedService):
        raise RuntimeError("Feed service not initialised")
    return service


def request_token_provider(request: Request) -> TokenProvider:
    """Use the caller's bearer token, falling back to the configured one."""

    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    token = credentials.strip() if scheme.lower() == "bearer" else ""
    resolved = token or settings.youtube_access_token

    def _provider() -> str | None:
        return resolved

    return _provider


def _http_error(exc: TubeFeedError) -> HTTPException:
    if isinstance(exc, Unauthenticated):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, ValidationFailure):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, RemoteFailure):
        return HTTPException(
            status_code=502,
            detail={"error": str(exc), "status": exc.status_code, "body": exc.body},
        )
    if isinstance(exc, DecodeFailure):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, StorageFailure):
        logger.exception("Storage failure: %s", exc)
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/profiles")
    async def list_profiles() -> list[dict[str, Any]]:
        service = get_feed_service(fastapi_app)
        try:
            profiles = await service.store.fetch_profiles()
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return [_dump(profile) for profile in profiles]

    @fastapi_app.post("/profiles", status_code=201)
    async def create_profile(payload: ProfileCreate) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            profile = await service.store.create_profile(
                payload.name,
                payload.is_kid,
                payload.channel_ids,
                payload.video_ids,
                payload.playlist_ids,
            )
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return _dump(profile)

    @fastapi_app.get("/profiles/{profile_id}")
    async def get_profile(profile_id: str) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            profile = await service.store.get_profile(profile_id)
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        if profile is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        return _dump(profile)

    @fastapi_app.patch("/profiles/{profile_id}")
    async def update_profile(profile_id: str, payload: ProfileUpdate) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            profile = await service.store.update_profile(
                profile_id, payload.name, payload.is_kid
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Profile not found") from exc
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return _dump(profile)

    @fastapi_app.delete("/profiles/{profile_id}", status_code=204)
    async def delete_profile(profile_id: str) -> Response:
        service = get_feed_service(fastapi_app)
        try:
            await service.store.delete_profile(profile_id)
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return Response(status_code=204)

    @fastapi_app.get("/profiles/{profile_id}/sources")
    async def get_sources(profile_id: str) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            sources = await service.store.load_profile_sources(profile_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Profile not found") from exc
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return _dump(sources)

    @fastapi_app.put("/profiles/{profile_id}/sources")
    async def replace_sources(profile_id: str, payload: SourcesUpdate) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            await service.store.replace_profile_sources(
                profile_id,
                payload.channel_ids,
                payload.video_ids,
                payload.playlist_ids,
            )
            sources = await service.store.load_profile_sources(profile_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Profile not found") from exc
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return _dump(sources)

    @fastapi_app.get("/profiles/{profile_id}/feed")
    async def cached_feed(profile_id: str) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            snapshot = await service.load_cached_feed(profile_id)
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No cached feed for profile")
        return _dump(snapshot)

    @fastapi_app.post("/profiles/{profile_id}/feed/refresh")
    async def refresh_feed(request: Request, profile_id: str) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            snapshot = await service.refresh_profile(
                profile_id, token_provider=request_token_provider(request)
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Profile not found") from exc
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return _dump(snapshot)

    @fastapi_app.get("/library")
    async def library(request: Request) -> dict[str, Any]:
        service = get_feed_service(fastapi_app)
        try:
            payload = await service.fetch_library(
                token_provider=request_token_provider(request)
            )
        except TubeFeedError as exc:
            raise _http_error(exc) from exc
        return _dump(payload)


app = create_app()
