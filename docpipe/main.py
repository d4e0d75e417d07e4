from contextlib import asynccontextmanager
from typing import AsyncIterator
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from qdrant_client import AsyncQdrantClient

from docpipe.core.config import get_settings
from docpipe.core.errors import DocPipeError
from docpipe.core.logging import configure_logging
from docpipe.schemas.ingest import ErrorResponse
from docpipe.utils.embeddings import EmbeddingClient
from docpipe.api.ingest import router as ingest_router
from docpipe.api.system import router as system_router

_SETTINGS = get_settings()
configure_logging(_SETTINGS.LOG_LEVEL, json_output=_SETTINGS.LOG_JSON or _SETTINGS.APP_ENV == "production")
logger = structlog.get_logger(logger_name=__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.embedder = EmbeddingClient.from_config(_SETTINGS.pipeline_config())
    app.state.qdrant = None
    if _SETTINGS.vector_store_configured:
        app.state.qdrant = AsyncQdrantClient(url=_SETTINGS.QDRANT_URL, api_key=_SETTINGS.QDRANT_API_KEY)
    logger.info(
        "server_started",
        ollama_host=_SETTINGS.OLLAMA_HOST,
        model=_SETTINGS.EMBEDDING_MODEL,
        vector_index=_SETTINGS.QDRANT_COLLECTION if app.state.qdrant else None,
    )
    yield
    if app.state.qdrant is not None:
        await app.state.qdrant.close()


app = FastAPI(title="Document Processing Server", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_SETTINGS.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.include_router(system_router)
app.include_router(ingest_router)


@app.exception_handler(DocPipeError)
async def docpipe_error_handler(request: Request, exc: DocPipeError) -> JSONResponse:
    body = ErrorResponse(error=exc.title, details=exc.message, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    body = ErrorResponse(error="Internal server error", details=str(exc), code="INTERNAL_ERROR")
    return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
