from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator

from evently.api.errors import register_exception_handlers
from evently.api.v1.router import router as v1_router
from evently.container import Container, build_container
from evently.core.config import Settings, settings as default_settings
from evently.core.logging import configure_logging
from evently.middleware.rate_limit import RateLimitMiddleware
from evently.middleware.request_id import RequestIdMiddleware
from evently.middleware.security_headers import SecurityHeadersMiddleware


def create_app(config: Settings | None = None, container: Container | None = None) -> FastAPI:
    config = config or default_settings
    owns_container = container is None
    if container is None:
        container = build_container(config, create_schema=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_container:
            container.close()

    app = FastAPI(title="Evently API", lifespan=lifespan)
    app.state.container = container

    # Starlette runs the LAST added middleware FIRST (outermost).
    # RequestId + SecurityHeaders wrap everything, CORS answers preflight,
    # RateLimit sits closest to the app.
    app.add_middleware(RateLimitMiddleware, config=config)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, config=config)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    if config.metrics_enabled:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    @app.get("/")
    def root():
        return {"name": "Evently API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(v1_router, prefix=config.api_prefix)

    if config.storage_backend == "local":
        assets_root = Path(config.storage_root)
        assets_root.mkdir(parents=True, exist_ok=True)
        app.mount(
            config.storage_public_base_url,
            StaticFiles(directory=assets_root),
            name="assets",
        )

    return app


def build_app() -> FastAPI:
    configure_logging()
    return create_app()
