"""
HTTP API for secure records.

Routes:
    POST /tx/encrypt         {"partyId": str, "payload": object} -> record
    GET  /tx                 -> [record, ...] newest first
    GET  /tx/{id}            -> record
    POST /tx/{id}/decrypt    -> {"payload": ...}
    GET  /health             -> {"status": "ok"}

Error bodies are {"error": "<message>"}.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .errors import (
    ConfigurationError,
    DecryptionFailedError,
    RecordNotFoundError,
    SecureRecordError,
    StorageError,
)
from .postgres import PostgresRecordStorage
from .service import SecureRecordService
from .storage import InMemoryRecordStorage, RecordStorage

logger = logging.getLogger("secure_records.api")

INTERNAL_ERROR = "Internal server error"

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def get_service(request: Request) -> SecureRecordService:
    return request.app.state.service


@router.get("/health")
async def health() -> Dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.post("/tx/encrypt")
async def encrypt_record(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        body = None
    record = await get_service(request).encrypt(body)
    return record.to_dict()


@router.get("/tx")
async def list_records(request: Request) -> List[Dict[str, Any]]:
    records = await get_service(request).list_records()
    return [record.to_dict() for record in records]


@router.get("/tx/{record_id}")
async def get_record(record_id: str, request: Request) -> Dict[str, Any]:
    record = await get_service(request).get_record(record_id)
    return record.to_dict()


@router.post("/tx/{record_id}/decrypt")
async def decrypt_record(record_id: str, request: Request) -> Any:
    try:
        payload = await get_service(request).decrypt(record_id)
    except ConfigurationError as e:
        # Client error on this route, unlike encrypt
        logger.error("ConfigurationError on decrypt of %s: %s", record_id, e)
        return _error(400, str(e))
    return {"payload": payload}


async def secure_record_error_handler(
    request: Request, exc: SecureRecordError
) -> JSONResponse:
    """Map package errors to status codes without leaking decryption detail."""
    if isinstance(exc, RecordNotFoundError):
        return _error(404, "Record not found")
    if isinstance(exc, DecryptionFailedError):
        return _error(400, "Decryption failed")
    if isinstance(exc, (ConfigurationError, StorageError)):
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
        )
        return _error(500, INTERNAL_ERROR)
    return _error(400, str(exc))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, INTERNAL_ERROR)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[RecordStorage] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to Settings.from_env())
        storage: Storage backend; when omitted, PostgreSQL is opened on startup
            if DATABASE_URL is set, otherwise records are kept in memory

    The storage is closed when the application shuts down.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        backend = storage
        if backend is None and settings.database_url:
            backend = await PostgresRecordStorage.connect(settings.database_url)
            logger.info("Using PostgreSQL record storage")
        elif backend is None:
            backend = InMemoryRecordStorage()
            logger.info("Using in-memory record storage")

        app.state.service = SecureRecordService(backend, settings.key_provider())
        try:
            yield
        finally:
            await backend.close()

    app = FastAPI(title="Secure Records", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(SecureRecordError, secure_record_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app
