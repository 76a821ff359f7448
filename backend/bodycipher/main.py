"""
bodycipher: FastAPI Application Factory
=========================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn bodycipher.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌───────────────────────────────┐ │
    │  │  Request ID  │→│  Transport Encryption         │ │
    │  └──────────────┘ └───────────────────────────────┘ │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌──────────────┐ ┌─────────────┐  │
    │  │ POST echo  🔒│ │ POST msgs  🔒│ │ GET /health │  │
    │  └──────────────┘ └──────────────┘ └─────────────┘  │
    └─────────────────────────────────────────────────────┘

Startup order inside create_app():
    1. Require ENCRYPTION_SECRET (ConfigurationError if missing)
    2. Derive the single CipherContext for the process
    3. Mount routers
    4. Resolve the encrypted-endpoint registry from the same routers
       (ConfigurationError if a path or router cannot be resolved)
    5. Register middleware and exception handlers
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bodycipher import __version__
from bodycipher.activation import EncryptedEndpointRegistry
from bodycipher.config import Settings, settings
from bodycipher.crypto.cipher_context import CipherContext
from bodycipher.interceptor import RequestInterceptor
from bodycipher.middleware.encryption import TransportEncryptionMiddleware
from bodycipher.middleware.request_id import RequestIDMiddleware, request_id_var
from bodycipher.routes import echo, health

logger = logging.getLogger(__name__)

ROUTERS = (echo.router, health.router)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Request IDs are added to individual messages by the code that logs them.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging on startup; everything else is built in create_app()."""
    setup_logging(app.state.settings.log_level)
    logger.info("=" * 60)
    logger.info("bodycipher %s starting up", __version__)
    logger.info(
        "Encrypted endpoints: %d",
        len(app.state.encrypted_endpoints),
    )
    logger.info(
        "Server ready at http://%s:%d",
        app.state.settings.backend_host,
        app.state.settings.backend_port,
    )
    logger.info("=" * 60)

    yield

    logger.info("bodycipher shutting down")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the catch-all handler for unexpected errors.

    DecodingError and PaddingError are turned into 400 responses by
    TransportEncryptionMiddleware, which sits outside the router and is the
    only place that knows whether response bytes have already been sent.
    """

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace is logged server-side only, never returned."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the module-level singleton
                      (tests pass their own).

    Raises:
        ConfigurationError: ENCRYPTION_SECRET is missing or empty, or the
            encrypted endpoints cannot be resolved.
    """
    app_settings = app_settings or settings

    context = CipherContext.derive(app_settings.require_encryption_secret())
    interceptor = RequestInterceptor(context)

    app = FastAPI(
        title="bodycipher API",
        description="Demo service whose request and response bodies travel as AES-CBC ciphertext.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Routes ───────────────────────────────────────────────────
    # No extra prefix: the registry matches the routers' own paths
    for router in ROUTERS:
        app.include_router(router)

    registry = EncryptedEndpointRegistry.from_routers(
        ROUTERS, app_settings.encrypted_paths_list
    )
    app.state.settings = app_settings
    app.state.encrypted_endpoints = registry
    app.state.cipher_context = context

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute: RequestID → TransportEncryption → router
    app.add_middleware(
        TransportEncryptionMiddleware,
        interceptor=interceptor,
        registry=registry,
    )
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    return app


# uvicorn expects `bodycipher.main:app` to be importable
app = create_app()
