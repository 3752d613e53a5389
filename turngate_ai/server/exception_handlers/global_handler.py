"""
Global Exception Handlers for the FastAPI Application.

Engine errors that reach the HTTP layer outside a stream are mapped to their
status codes; anything else is logged with an error id and answered with a
JSON 500.
"""

import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from turngate_ai.agent_core.errors import AgentEngineError, ConversationBusyError, ConversationNotFoundError
from turngate_ai.core.logging_config import get_logger

logger = get_logger(__name__)

_STATUS_BY_ERROR = {
    ConversationNotFoundError: 404,
    ConversationBusyError: 409,
}


async def engine_error_handler(request: Request, exc: AgentEngineError) -> JSONResponse:
    status = next((code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)), 400)
    logger.info(f"{request.method} {request.url.path} -> {status} [{exc.code}] {exc.message}")
    return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Log an unhandled exception with its request context.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    error_id = id(exc)
    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AgentEngineError, engine_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
