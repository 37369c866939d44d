import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from sharevault.api.api_v1.api import api_router
from sharevault.api.download import router as download_router
from sharevault.core.config import settings
from sharevault.core.errors import (
    FileNotFound,
    InvalidPolicy,
    LedgerError,
    LinkDead,
    PersistenceError,
    ShareLinkIdNotFound,
    StorageFailure,
)
from sharevault.core.logging import setup_logging
from sharevault.core.status import LinkStatus
from sharevault.db.init_db import init_db
from sharevault.db.session import engine

setup_logging()
logger = logging.getLogger(__name__)

INVALID_LINK = {"message": "Invalid link"}
UNAVAILABLE = {"message": "Service temporarily unavailable"}

# What an anonymous downloader is told for each refusal reason.
# Unknown and revoked links share one answer so tokens cannot be probed.
PUBLIC_REFUSALS = {
    LinkStatus.NOT_FOUND: (404, INVALID_LINK),
    LinkStatus.REVOKED: (404, INVALID_LINK),
    LinkStatus.EXPIRED: (410, {"message": "Link expired"}),
    LinkStatus.LIMIT_REACHED: (410, {"message": "Download limit reached"}),
    LinkStatus.LEDGER_CONFLICT: (409, {"message": "Link is no longer available"}),
}


def _route_path(request: Request) -> str:
    # Route template, so tokens in the URL stay out of the logs
    route = request.scope.get("route")
    return getattr(route, "path", "<unmatched>")


def _refusal(status: LinkStatus) -> JSONResponse:
    status_code, content = PUBLIC_REFUSALS[status]
    return JSONResponse(status_code=status_code, content=content)


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Remaining-Downloads"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(download_router, tags=["download"])


@app.get("/")
def read_root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.exception_handler(LinkDead)
async def link_dead_handler(request: Request, exc: LinkDead):
    return _refusal(exc.status)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return _refusal(exc.reason)


@app.exception_handler(FileNotFound)
async def file_not_found_handler(request: Request, exc: FileNotFound):
    return JSONResponse(status_code=404, content={"message": "File not found"})


@app.exception_handler(ShareLinkIdNotFound)
async def share_link_id_not_found_handler(request: Request, exc: ShareLinkIdNotFound):
    return JSONResponse(status_code=404, content={"message": "Share link not found"})


@app.exception_handler(InvalidPolicy)
async def invalid_policy_handler(request: Request, exc: InvalidPolicy):
    return JSONResponse(status_code=422, content={"message": "Invalid link policy", "detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Persistence failure on %s %s: %s", request.method, _route_path(request), exc)
    return JSONResponse(status_code=503, content=UNAVAILABLE)


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error("Storage failure after a spent download: %s", exc)
    return JSONResponse(status_code=503, content=UNAVAILABLE)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Validation Error: %s", exc)
    return JSONResponse(
        status_code=422,
        content={"message": "Validation Error", "detail": jsonable_encoder(exc.errors())},
    )


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, _route_path(request))
    return JSONResponse(
        status_code=500,
        content={"message": "Internal Server Error"},
    )


@app.on_event("startup")
async def startup_event():
    init_db(engine)
    logger.info("Registered Routes:")
    for route in app.routes:
        if hasattr(route, "path"):
            logger.info("  %s", route.path)


def run() -> None:
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
