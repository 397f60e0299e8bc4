"""Error handling helpers for the mock and provider apps."""
from typing import Any, Dict
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception while serving request: %s", exc, exc_info=True)
        return {
            "error": "An internal error occurred while processing the request.",
            "metadata": {"error": str(exc), "context": context or {}},
        }


def install_error_handler(app: FastAPI, handler: ErrorHandler = None) -> None:
    """Register a catch-all exception handler that answers with a JSON 500."""
    handler = handler or ErrorHandler()

    async def _on_exception(request: Request, exc: Exception) -> JSONResponse:
        payload = handler.handle_exception(exc, context={"method": request.method, "path": request.url.path})
        return JSONResponse(status_code=500, content=payload)

    app.add_exception_handler(Exception, _on_exception)
