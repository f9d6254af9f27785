from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from phenom.core.database import CredentialStore, build_store
from phenom.core.errors import InvalidRequest, ProviderError, translate
from phenom.core.plaid_client import PlaidClient

from .config import Settings, settings as default_settings
from .routers import aggregation, health, link
from .services.aggregation import AggregationEngine
from .services.linking import LinkLifecycleManager

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("phenom.backend")


def _operation_name(request: Request) -> str:
    return request.url.path.strip("/").replace("/", "_") or "root"


async def _invalid_request_handler(request: Request, exc: InvalidRequest) -> JSONResponse:
    logger.info("Rejected %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=400, content={"error": exc.message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = exc.errors()
    if problems and problems[0].get("type") == "json_invalid":
        message = "Malformed JSON body"
    elif problems:
        first = problems[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or "body"
        message = f"Invalid {location}: {first.get('msg', 'malformed value')}"
    else:
        message = "Malformed request body"
    logger.info("Rejected %s: %s", request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


async def _upstream_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code, body = translate(exc, where=_operation_name(request))
    return JSONResponse(status_code=status_code, content=body)


def create_app(
    store: Optional[CredentialStore] = None,
    plaid: Optional[PlaidClient] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(title=settings.title, version=settings.version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = store or build_store(settings.credential_store, settings.database_path)
    plaid = plaid or PlaidClient(
        api_base_url=settings.plaid_base_url,
        client_id=settings.plaid_client_id,
        secret=settings.plaid_secret,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.plaid = plaid
    app.state.linking = LinkLifecycleManager(store, plaid, settings)
    app.state.aggregation = AggregationEngine(store, plaid, settings)

    app.add_exception_handler(InvalidRequest, _invalid_request_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(ProviderError, _upstream_error_handler)
    app.add_exception_handler(httpx.HTTPError, _upstream_error_handler)

    app.include_router(health.router)
    app.include_router(link.router)
    app.include_router(aggregation.router)

    @app.on_event("startup")
    def _on_startup() -> None:
        logger.info("Bootstrapping Phenomenal Financial Tracker backend (%s)", settings.environment_label)
        store.initialize()

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        await plaid.close()

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("phenom.backend.app:app", host=default_settings.host, port=default_settings.port)
