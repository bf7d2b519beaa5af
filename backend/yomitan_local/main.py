"""
Host process composition.

Builds the FastAPI application that hosts the externally supplied router:
the adapters are constructed once, every request goes through the bridge
to router.fetch(request, env, ctx), and the lifespan closes the store on
shutdown.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from yomitan_local import __version__
from yomitan_local.adapters import (
    BackgroundTaskRunner,
    FilesystemBlobBinding,
    InlineExecutionContext,
    LocalAudioStorage,
    SQLiteRelationalAdapter,
    SQLiteRelationalBinding,
)
from yomitan_local.bridge.fetch import FetchResponse
from yomitan_local.bridge.request_bridge import RequestBridge
from yomitan_local.core.config import HostSettings, require_database
from yomitan_local.core.errors import BridgeError, HostError
from yomitan_local.ports.blob import BlobBinding
from yomitan_local.ports.relational import RelationalBinding
from yomitan_local.ports.router import Env, Router

logger = logging.getLogger(__name__)

BRIDGED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_env(settings: HostSettings, database: RelationalBinding, bucket: BlobBinding) -> Env:
    """Assemble the router's environment from settings and bindings."""
    return Env(
        yomitan_audio_d1_db=database,
        yomitan_audio_r2_bucket=bucket,
        authentication_enabled=settings.authentication_enabled,
        aws_polly_enabled=settings.aws_polly_enabled,
        api_keys=settings.api_keys,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
    )


def log_banner(settings: HostSettings) -> None:
    base_url = f"http://localhost:{settings.port}"
    lookup_url = f"{base_url}/audio/list?term={{term}}&reading={{reading}}"
    if settings.authentication_enabled:
        lookup_url += "&apiKey=YOUR_API_KEY"

    logger.info("Yomitan Audio Server Running Locally")
    logger.info(f"  Server: {base_url}")
    logger.info(f"  Data directory: {settings.data_path}")
    logger.info(f"  Database: {settings.database_file}")
    logger.info(f"  Authentication: {'Enabled' if settings.authentication_enabled else 'Disabled'}")
    logger.info(f"  AWS Polly TTS: {'Enabled' if settings.aws_polly_enabled else 'Disabled'}")
    logger.info(f"  Configure Yomitan with: {lookup_url}")


def create_app(
    settings: HostSettings,
    router: Router,
    relational: Optional[SQLiteRelationalAdapter] = None,
    storage: Optional[LocalAudioStorage] = None,
    runner: Optional[BackgroundTaskRunner] = None,
) -> FastAPI:
    """
    Compose the host application.

    Args:
        settings: Resolved host settings
        router: Router every request is delegated to
        relational: Database adapter; opened from settings when omitted
        storage: Audio storage; built over settings.data_dir when omitted
        runner: Deferred task runner

    Returns:
        FastAPI application

    Raises:
        ConfigurationError: If the database file does not exist
    """
    relational = relational or SQLiteRelationalAdapter(require_database(settings))
    storage = storage or LocalAudioStorage(settings.data_path)
    runner = runner or BackgroundTaskRunner()

    env = build_env(settings, SQLiteRelationalBinding(relational), FilesystemBlobBinding(storage))
    bridge = RequestBridge(catch_all_param="path")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_banner(settings)
        yield
        logger.info("Shutting down gracefully...")
        await runner.shutdown(settings.shutdown_grace_seconds)
        relational.close()

    app = FastAPI(
        title="Yomitan Audio Server (local)",
        version=__version__,
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.env = env
    app.state.runner = runner
    app.state.relational = relational

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HostError)
    async def host_error_handler(request: Request, exc: HostError):
        if exc.status_code >= 500:
            logger.error(f"Error: {exc.message}", exc_info=exc)
        else:
            logger.warning(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message or "Internal Server Error"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"message": "Internal Server Error"})

    @app.api_route("/{path:path}", methods=BRIDGED_METHODS, include_in_schema=False)
    async def bridge_to_router(request: Request):
        fetch_request = await bridge.to_fetch_request(request)
        ctx = InlineExecutionContext(runner)

        try:
            fetch_response = await router.fetch(fetch_request, env, ctx)
        except HostError:
            raise
        except Exception as e:
            raise BridgeError(str(e) or "Internal Server Error") from e

        if not isinstance(fetch_response, FetchResponse):
            raise BridgeError(f"Router returned {type(fetch_response).__name__} instead of a response")
        return bridge.to_http_response(fetch_response)

    return app
