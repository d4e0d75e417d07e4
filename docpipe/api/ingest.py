from typing import List, Optional
import structlog
from fastapi import APIRouter, Depends, File, Request, UploadFile

from docpipe.core.config import get_settings
from docpipe.core.errors import DocPipeError, InputRejected
from docpipe.repositories.vector_store import VectorStore
from docpipe.schemas.documents import UploadArtifact
from docpipe.schemas.ingest import (
    ErrorResponse,
    FileOutcome,
    ProcessFileResponse,
    ProcessFilesResponse,
)
from docpipe.services.ingestion_service import IngestionService
from docpipe.utils.embeddings import EmbeddingClient
from docpipe.utils.pdf_extraction import PdfTextExtractor
from docpipe.utils.text_extraction import TextExtractor

router = APIRouter(prefix="/api", tags=["ingestion"])
_SETTINGS = get_settings()
logger = structlog.get_logger(logger_name=__name__)


def provide_embedder(request: Request) -> EmbeddingClient:
    # Lazy-create and cache in app.state
    eb = getattr(request.app.state, "embedder", None)
    if eb is None:
        eb = EmbeddingClient.from_config(_SETTINGS.pipeline_config())
        request.app.state.embedder = eb
    return eb


def provide_vector_store(request: Request) -> Optional[VectorStore]:
    client = getattr(request.app.state, "qdrant", None)
    if client is None:
        return None
    batch_size = _SETTINGS.pipeline_config().vector_batch_size
    return VectorStore(client=client, collection=_SETTINGS.QDRANT_COLLECTION, batch_size=batch_size)


def provide_extractor() -> TextExtractor:
    return TextExtractor(PdfTextExtractor(tool=_SETTINGS.PDFTOTEXT_PATH, timeout=_SETTINGS.PDFTOTEXT_TIMEOUT))


def get_ingestion_service(
    embedder: EmbeddingClient = Depends(provide_embedder),
    vector_store: Optional[VectorStore] = Depends(provide_vector_store),
    extractor: TextExtractor = Depends(provide_extractor),
) -> IngestionService:
    return IngestionService(
        config=_SETTINGS.pipeline_config(),
        embedder=embedder,
        vector_store=vector_store,
        extractor=extractor,
    )


async def read_upload(file: UploadFile, max_bytes: int) -> UploadArtifact:
    """Reads the upload into memory and closes the spooled temp file whatever happens."""
    try:
        if file.size is not None and file.size > max_bytes:
            raise InputRejected(f"Maximum file size is {max_bytes // (1024 * 1024)}MB", code="FILE_TOO_LARGE")
        data = await file.read()
    finally:
        await file.close()
    return UploadArtifact(data=data, declared_type=file.content_type, filename=file.filename or "upload")


@router.post("/process-file", response_model=ProcessFileResponse)
async def process_file(
    file: UploadFile = File(...),
    service: IngestionService = Depends(get_ingestion_service),
) -> ProcessFileResponse:
    artifact = await read_upload(file, service.config.max_upload_bytes)
    result = await service.ingest(artifact)
    return ProcessFileResponse(metadata=result)


@router.post("/process-files", response_model=ProcessFilesResponse)
async def process_files(
    files: List[UploadFile] = File(...),
    service: IngestionService = Depends(get_ingestion_service),
) -> ProcessFilesResponse:
    limit = service.config.max_files_per_request
    if len(files) > limit:
        for f in files:
            await f.close()
        raise InputRejected(f"Maximum {limit} files allowed", code="TOO_MANY_FILES")

    outcomes: List[FileOutcome] = []
    for f in files:
        name = f.filename or "upload"
        try:
            artifact = await read_upload(f, service.config.max_upload_bytes)
            result = await service.ingest(artifact)
            outcomes.append(FileOutcome(filename=name, success=True, metadata=result))
        except DocPipeError as e:
            error = ErrorResponse(error=e.title, details=e.message, code=e.code)
            outcomes.append(FileOutcome(filename=name, success=False, error=error))
        except Exception as e:
            logger.exception("file_processing_crashed", filename=name)
            error = ErrorResponse(error="Internal server error", details=str(e), code="INTERNAL_ERROR")
            outcomes.append(FileOutcome(filename=name, success=False, error=error))

    failed = sum(1 for o in outcomes if not o.success)
    return ProcessFilesResponse(
        success=failed == 0,
        processed=len(outcomes) - failed,
        failed=failed,
        results=outcomes,
    )
