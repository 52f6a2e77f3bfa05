from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from buckets.config import Settings, get_settings
from buckets.logging import setup_logging
from buckets.models import Health, Stats
from buckets.services.gateway import StoreGateway, StoreUnavailable
from buckets.services.messages import NotFound, TooLarge

STATIC_DIR = Path(__file__).resolve().parent / "static"

# Served by the app itself, so they are never bucket paths (written or generated).
RESERVED_PATHS = frozenset({"health", "api/stats"})

setup_logging(get_settings())
logger = logging.getLogger(__name__)


def _gateway(request: Request) -> StoreGateway:
    return request.app.state.gateway


def _check_writable(path: str) -> None:
    if path in RESERVED_PATHS:
        raise HTTPException(status_code=400, detail=f"'{path}' is reserved")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    # Fails fast on a keyspace too small for max_buckets.
    store_config = settings.store_config(reserved_keys=RESERVED_PATHS)
    index_html = (STATIC_DIR / "index.html").read_text(encoding="utf-8")
    index_html = index_html.replace("{{baseurl}}", settings.public_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s %s at %s", settings.app_name, settings.version, settings.public_url)
        app.state.gateway = StoreGateway.start(store_config)
        try:
            yield
        finally:
            await run_in_threadpool(app.state.gateway.close)
            logger.info("Shutting down %s", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Ephemeral blob storage: upload bytes, get a short link back.",
        lifespan=lifespan,
        # Every other GET path is a bucket key.
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable):
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def index():
        return index_html

    @app.get("/health", response_model=Health, tags=["Healthcheck"])
    async def health(request: Request):
        if not _gateway(request).available:
            raise HTTPException(status_code=503, detail="store worker is not running")
        return Health(ok=True, service=settings.app_name, version=settings.version)

    @app.get("/api/stats", response_model=Stats, tags=["Api Stats"])
    async def api_stats(request: Request):
        stats = await run_in_threadpool(_gateway(request).stats)
        return Stats(**asdict(stats))

    @app.get("/{path:path}", tags=["Buckets"])
    async def download(path: str, request: Request):
        result = await run_in_threadpool(_gateway(request).get, path)
        if isinstance(result, NotFound):
            raise HTTPException(status_code=404, detail="Not found")
        return Response(content=result.payload, media_type="application/octet-stream")

    @app.post("/{path:path}", response_class=PlainTextResponse, tags=["Buckets"])
    async def upload(path: str, request: Request):
        """Store the raw request body; an empty path gets a random slug."""
        _check_writable(path)
        body = await request.body()
        result = await run_in_threadpool(_gateway(request).set, body, path or None)
        if isinstance(result, TooLarge):
            raise HTTPException(
                status_code=413,
                detail=f"Payload of {result.size} bytes exceeds the {result.limit} byte limit",
            )
        return f"{settings.public_url}/{result.key}\n"

    @app.delete("/{path:path}", tags=["Buckets"])
    async def delete(path: str, request: Request):
        _check_writable(path)
        result = await run_in_threadpool(_gateway(request).delete, path)
        if isinstance(result, NotFound):
            raise HTTPException(status_code=404, detail="Not found")
        return Response(status_code=200)

    @app.api_route("/{path:path}", methods=["PUT", "PATCH"], include_in_schema=False)
    async def unsupported(path: str):
        raise HTTPException(status_code=400, detail="Unsupported method")

    return app


app = create_app()
