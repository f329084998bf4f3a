import logging

from fastapi import Depends, FastAPI, Request
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from app.core.settings import settings
from app.core.security import require_auth
from app.ledger.errors import (
    DuplicateReversalError,
    ImmutableRecordError,
    LedgerError,
    RecordNotFoundError,
    SaleAlreadyRefundedError,
    StorageError,
    ValidationError,
)

from app.api.auth import router as auth_router
from app.api.transaction import router as transaction_router
from app.api.sales import router as sales_router
from app.api.reports import router as reports_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.4.0"

DOCS_PROTECTED = settings.ENV == "prod" or bool(settings.AUTH_PROTECT_DOCS)
DOC_DEPS = [Depends(require_auth)] if DOCS_PROTECTED else []

app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

app.include_router(auth_router)
app.include_router(transaction_router)
app.include_router(sales_router)
app.include_router(reports_router)


# erro do ledger -> status HTTP (detail no mesmo formato {"error_code", "message", ...})
_STATUS_BY_ERROR = (
    (ValidationError, 422),
    (RecordNotFoundError, 404),
    (DuplicateReversalError, 409),
    (SaleAlreadyRefundedError, 409),
    (ImmutableRecordError, 409),
    (StorageError, 503),
)


@app.exception_handler(LedgerError)
def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = 500
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            status_code = code
            break
    if status_code >= 500:
        logger.error("ledger failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.as_detail()})


@app.get("/health")
def health():
    return {
        "ok": True,
        "service": "gestor-ledger",
        "env": settings.ENV,
        "version": VERSION,
        "build_sha": settings.BUILD_SHA or None,
        "docs_protected": bool(DOCS_PROTECTED),
    }


# 📚 Docs/OpenAPI: sempre existem; quando DOCS_PROTECTED=true exigem JWT
@app.get("/openapi.json", include_in_schema=False, dependencies=DOC_DEPS)
def openapi_json():
    schema = get_openapi(title=app.title, version=app.version, routes=app.routes)
    return JSONResponse(schema)


@app.get("/docs", include_in_schema=False, dependencies=DOC_DEPS)
def swagger_docs():
    return get_swagger_ui_html(openapi_url="/openapi.json", title=f"{app.title} - Docs")


@app.get("/redoc", include_in_schema=False, dependencies=DOC_DEPS)
def redoc_docs():
    return get_redoc_html(openapi_url="/openapi.json", title=f"{app.title} - ReDoc")
