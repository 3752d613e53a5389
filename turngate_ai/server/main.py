"""
Main Application Entry Point.

Initializes the FastAPI application, configures CORS and exception handlers,
and includes the API routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from turngate_ai import __version__
from turngate_ai.core.logging_config import get_logger, setup_logging

from .api.v1 import conversations, health
from .core import constant
from .core.config import settings
from .core.database import init_db
from .exception_handlers import setup_exception_handlers

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Configures logging and creates the database tables on startup.
    """
    setup_logging(log_level=settings.log_level)
    logger.info("Starting up TurnGate-AI Server...")
    await init_db()
    logger.info("Database initialized successfully")

    yield

    logger.info("Shutting down TurnGate-AI Server...")


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    TurnGate-AI Server API

    Drive tool-calling conversations with human approval gates. Turns are
    streamed as Server-Sent Events; suspended turns are resumed with an
    approve/reject decision.
    """,
    version=__version__,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(
    conversations.router, prefix=f"{constant.API_V1_STR}/conversations", tags=["conversations"]
)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.server_host, port=settings.server_port)
