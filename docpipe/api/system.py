import shutil
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request

from docpipe.api.ingest import provide_embedder
from docpipe.core.config import get_settings
from docpipe.core.errors import EmbeddingServiceError
from docpipe.schemas.ingest import (
    EmbeddingHealth,
    HealthResponse,
    SupportedTypesResponse,
    VectorIndexHealth,
)
from docpipe.utils.embeddings import EmbeddingClient

router = APIRouter(tags=["system"])
_SETTINGS = get_settings()

ROUTES = [
    "GET /",
    "GET /api/health",
    "GET /api/supported-types",
    "GET /api/test",
    "POST /api/process-file",
    "POST /api/process-files",
]


def pdf_tool_available() -> bool:
    return shutil.which(_SETTINGS.PDFTOTEXT_PATH) is not None


@router.get("/")
async def root():
    return {
        "message": "Document Processing Server",
        "status": "running",
        "endpoints": ROUTES,
    }


@router.get("/api/health", response_model=HealthResponse)
async def health(request: Request, embedder: EmbeddingClient = Depends(provide_embedder)) -> HealthResponse:
    embedding = EmbeddingHealth(host=embedder.host, model=embedder.model, healthy=False)
    try:
        embedding.available_models = await embedder.list_models()
        embedding.healthy = embedder.has_model(embedding.available_models)
        if not embedding.healthy:
            embedding.detail = f"Model {embedder.model} not found. Run: ollama pull {embedder.model}"
    except EmbeddingServiceError as e:
        embedding.detail = e.message

    configured = getattr(request.app.state, "qdrant", None) is not None
    return HealthResponse(
        status="OK" if embedding.healthy else "DEGRADED",
        timestamp=datetime.now(timezone.utc),
        embedding=embedding,
        pdf_tools={"pdftotext": pdf_tool_available()},
        vector_index=VectorIndexHealth(
            configured=configured,
            collection=_SETTINGS.QDRANT_COLLECTION if configured else None,
        ),
    )


@router.get("/api/supported-types", response_model=SupportedTypesResponse)
async def supported_types() -> SupportedTypesResponse:
    config = _SETTINGS.pipeline_config()
    return SupportedTypesResponse(
        supported_types=list(config.allowed_types),
        supported_extensions=list(config.allowed_extensions),
        embedding_model=config.embedding_model,
        dimensions=_SETTINGS.EMBEDDING_DIM,
        max_file_size_bytes=config.max_upload_bytes,
        max_files=config.max_files_per_request,
        max_chunk_size=config.max_chunk_size,
        recommendations={
            "pdf": "For best PDF results, install poppler-utils (pdftotext)",
            "image_based_pdf": "Image-based PDFs require OCR preprocessing",
        },
    )


@router.get("/api/test")
async def ping():
    return {
        "message": "Server is running!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "env": _SETTINGS.APP_ENV,
    }
