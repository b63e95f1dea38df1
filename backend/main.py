"""Campaign Ally Prep API: campaigns, session prep, scenes and the AI assist routes."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api import ai_prep as ai_prep_api, campaigns as campaigns_api, prep as prep_api
from backend.app.config import DEFAULT_DB_PATH, SECURITY_SETTINGS, _log_resolved_model_config
from backend.app.core.error_handling import (
    PrepHTTPException,
    create_error_response,
    log_error_with_context,
    node_for_path,
)
from backend.app.db.migrate import apply_schema
from shared.runtime_settings import validate_security_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "2.0.0"

DEV_MODE = SECURITY_SETTINGS.dev_mode
API_TOKEN = SECURITY_SETTINGS.api_token
CORS_ALLOW_ORIGINS = SECURITY_SETTINGS.cors_allow_origins

OPEN_PATHS = frozenset({"/", "/health"})
DOCS_PREFIXES = ("/docs", "/redoc", "/openapi")


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_security_settings(SECURITY_SETTINGS)
    applied = apply_schema(DEFAULT_DB_PATH)
    _log_resolved_model_config()
    logger.info(
        "Prep API ready (dev_mode=%s, auth=%s, db=%s, migrations_applied=%d)",
        DEV_MODE,
        "enabled" if API_TOKEN else "disabled",
        DEFAULT_DB_PATH,
        len(applied),
    )
    yield


app = FastAPI(title="Campaign Ally Prep API", version=API_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_json(status_code: int, error_code: str, message: str, node: str, details: dict) -> JSONResponse:
    body = create_error_response(error_code=error_code, message=message, node=node, details=details)
    return JSONResponse(status_code=status_code, content=body)


def _presented_token(request: Request) -> str:
    """Bearer token from Authorization, else the X-API-Key header."""
    scheme, _, value = request.headers.get("Authorization", "").strip().partition(" ")
    if scheme.lower() == "bearer":
        return value.strip()
    return request.headers.get("X-API-Key", "").strip()


def _requires_auth(request: Request) -> bool:
    if not API_TOKEN or request.method.upper() == "OPTIONS":
        return False
    path = request.url.path or ""
    if path in OPEN_PATHS:
        return False
    return not (DEV_MODE and path.startswith(DOCS_PREFIXES))


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    if _requires_auth(request) and _presented_token(request) != API_TOKEN:
        return _error_json(
            status.HTTP_401_UNAUTHORIZED, "AUTH_HTTP_401", "Unauthorized", "api", {"path": request.url.path}
        )
    return await call_next(request)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    node = node_for_path(request.url.path)
    details = {"status_code": exc.status_code, "path": request.url.path}
    if isinstance(exc, PrepHTTPException):
        details = {**jsonable_encoder(exc.domain_details), "domain_error_code": exc.domain_error_code, **details}
    return _error_json(
        exc.status_code,
        f"{node.upper()}_HTTP_{exc.status_code}",
        exc.detail,
        node,
        details,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything a router did not map becomes a logged 500 with the same error body shape."""
    node = node_for_path(request.url.path)
    path_params = getattr(request, "path_params", {}) or {}
    log_error_with_context(
        error=exc,
        node_name=node,
        campaign_id=path_params.get("campaign_id"),
        session_id=path_params.get("session_id"),
        agent_name=request.url.path,
        extra_context={"method": request.method, "query_params": dict(request.query_params)},
    )
    return _error_json(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        f"{node.upper()}_ERROR",
        str(exc) or f"An error occurred: {type(exc).__name__}",
        node,
        {"exception_type": type(exc).__name__, "path": request.url.path},
    )


for _router in (campaigns_api.router, prep_api.router, ai_prep_api.router):
    app.include_router(_router)


@app.get("/")
async def root():
    return {"message": "Campaign Ally Prep API", "version": API_VERSION}


@app.get("/health")
async def health():
    return {"status": "healthy"}
