"""
Provider service - FastAPI application factory.

Serves ``GET /provider`` from an injected ProviderDataStore and, unless
disabled, the provider-state endpoints used during verification.

Run locally:
    uvicorn handshake.provider.app:app --host 127.0.0.1 --port 8080
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import TypeAdapter, ValidationError

from handshake.error_handler import install_error_handler
from handshake.provider.states import ProviderStateRegistry, create_state_router, default_registry
from handshake.provider.store import ProviderDataStore

logger = logging.getLogger(__name__)


class ProviderJSONResponse(JSONResponse):
    media_type = "application/json; charset=utf-8"


_DATETIME = TypeAdapter(datetime)


def _is_iso_datetime(value: str) -> bool:
    # accepts a trailing "Z" on every supported Python version
    try:
        _DATETIME.validate_python(value)
    except ValidationError:
        return False
    return True


def create_provider_router(store: ProviderDataStore) -> APIRouter:
    router = APIRouter(tags=["Provider"])

    @router.get("/provider")
    async def get_provider_data(valid_date: Optional[str] = Query(default=None, alias="validDate")):
        if not valid_date:
            return ProviderJSONResponse(status_code=400, content={"error": "validDate is required"})
        if not _is_iso_datetime(valid_date):
            return ProviderJSONResponse(status_code=400, content={"error": "validDate is invalid"})

        count = store.count
        # A zero count means "no data" for the requested date.
        if count == 0:
            return Response(status_code=404)

        return ProviderJSONResponse(
            content={
                "test": "NO",
                "validDate": datetime.now(timezone.utc).isoformat(timespec="seconds"),
                "count": count,
            }
        )

    return router


def create_provider_app(
    store: Optional[ProviderDataStore] = None,
    registry: Optional[ProviderStateRegistry] = None,
    enable_states: bool = True,
) -> FastAPI:
    store = store or ProviderDataStore()
    registry = registry or default_registry()

    app = FastAPI(
        title="Our Provider",
        description="Serves a dated count for the consumer",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handler(app)

    app.include_router(create_provider_router(store))
    if enable_states:
        app.include_router(create_state_router(registry, store))

    app.state.store = store
    app.state.registry = registry
    return app


app = create_provider_app()
