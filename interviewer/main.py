import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from interviewer.core.config import get_settings
from interviewer.api.v1.router import api_router
from interviewer.services.credits import LedgerStorageError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerStorageError)
async def _ledger_storage_error(request: Request, exc: LedgerStorageError):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Temporary problem, please try again."})


app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.on_event("startup")
def _on_startup_create_schema():
    if settings.auto_create_schema:
        from interviewer.infrastructure.db import create_all

        create_all()


@app.get("/")
def root():
    return {"status": "ok"}
