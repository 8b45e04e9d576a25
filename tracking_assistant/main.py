"""FastAPI application wiring for the tracking assistant gateway.

- Configures logging, optional CORS, Prometheus metrics and the inbound rate
  limiter.
- Owns the :class:`~tracking_assistant.context.GatewayContext` for the
  process lifetime: it is built at startup (or lazily on first use when
  startup could not build it) and released on shutdown.
- Exposes the chat, analytics, tracking and log-search routers plus health and
  version endpoints.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .config import GatewaySettings
from .context import build_context
from .errors import GatewayError
from .rate_limit import limiter
from .routers import chat, chat_logs, get_context, tracking

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "context", None) is None:
        try:
            app.state.context = await asyncio.to_thread(build_context)
        except GatewayError as exc:
            logger.error("Gateway context unavailable at startup: %s", exc)
    yield
    context = getattr(app.state, "context", None)
    if context is not None:
        await context.aclose()
        app.state.context = None


app = FastAPI(title="Tracking Assistant Gateway", version=__version__, lifespan=lifespan)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

cors_origins = GatewaySettings.from_env().cors_origins
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(chat.router)
app.include_router(tracking.router)
app.include_router(chat_logs.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.get("/api/health")
async def health(request: Request):
    """Readiness check that round-trips to the conversation log store."""
    try:
        context = await get_context(request)
        now = await asyncio.to_thread(context.log_store.ping)
    except GatewayError as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(
            status_code=503, content={"status": "error", "error": exc.message}
        )
    return {"status": "ok", "database_time": now.isoformat()}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }
