#orchestration ingestion pipeline
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

import structlog

from docpipe.core.config import PipelineConfig
from docpipe.core.errors import DocPipeError, InputRejected, PersistenceError
from docpipe.repositories.vector_store import VectorStore
from docpipe.schemas.documents import EmbeddingRecord, UploadArtifact
from docpipe.schemas.ingest import IngestionResult
from docpipe.utils import mime_types
from docpipe.utils.chunking import chunk_text
from docpipe.utils.embeddings import EmbeddingClient
from docpipe.utils.text_extraction import TextExtractor

logger = structlog.get_logger(logger_name=__name__)


class IngestionStage(str, Enum):
    RECEIVED = "received"
    TYPE_RESOLVED = "type_resolved"
    EXTRACTED = "extracted"
    CHUNKED = "chunked"
    EMBEDDING = "embedding"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


def text_preview(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class IngestionService:
    """
    Runs one upload through resolve -> extract -> chunk -> embed -> (persist).
    Every stage failure aborts the rest; vector upload is best-effort.
    """

    def __init__(
        self,
        config: PipelineConfig,
        embedder: Optional[EmbeddingClient] = None,
        vector_store: Optional[VectorStore] = None,
        extractor: Optional[TextExtractor] = None,
    ):
        self.config = config
        self.embedder = embedder or EmbeddingClient.from_config(config)
        self.vector_store = vector_store
        self.extractor = extractor or TextExtractor()

    def validate(self, artifact: UploadArtifact) -> None:
        if artifact.size == 0 or not artifact.data:
            raise InputRejected("Please select a non-empty file to upload", code="EMPTY_FILE")
        if artifact.size > self.config.max_upload_bytes:
            raise InputRejected(
                f"Maximum file size is {self.config.max_upload_bytes // (1024 * 1024)}MB",
                code="FILE_TOO_LARGE",
            )
        if not mime_types.is_allowed(
            artifact.declared_type,
            artifact.filename,
            self.config.allowed_types,
            self.config.allowed_extensions,
        ):
            raise InputRejected(
                f"File type not supported: {artifact.filename}. "
                f"Supported types: {', '.join(self.config.allowed_extensions)}",
                code="UNSUPPORTED_TYPE",
            )

    async def ingest(self, artifact: UploadArtifact) -> IngestionResult:
        log = logger.bind(filename=artifact.filename)
        stage = IngestionStage.RECEIVED
        log.info("ingestion_received", size=artifact.size, declared_type=artifact.declared_type)
        try:
            self.validate(artifact)

            resolved = mime_types.resolve(artifact.data, artifact.declared_type, artifact.filename)
            if resolved.rejected:
                raise InputRejected(
                    f"Could not determine a supported type for {artifact.filename}", code="UNSUPPORTED_TYPE"
                )
            stage = IngestionStage.TYPE_RESOLVED
            log.info("type_resolved", resolved_type=resolved.mime, source=resolved.source)

            document = await asyncio.to_thread(
                self.extractor.extract, artifact.data, resolved.mime, artifact.filename
            )
            stage = IngestionStage.EXTRACTED
            log.info("text_extracted", characters=document.character_count)

            chunks = chunk_text(document.text, self.config.max_chunk_size)
            stage = IngestionStage.CHUNKED
            log.info("text_chunked", chunks=len(chunks), max_chunk_size=self.config.max_chunk_size)

            # fail fast: no embedding work unless the service and model are there
            await self.embedder.ensure_model_available()
            stage = IngestionStage.EMBEDDING
            records = await self.embedder.embed_chunks(chunks)

            persisted, persistence_error = 0, None
            if self.vector_store is not None:
                stage = IngestionStage.PERSISTING
                persisted, persistence_error = await self._persist(records, artifact, resolved.mime)

            stage = IngestionStage.DONE
            log.info("ingestion_done", chunks=len(chunks), vectors=len(records), persisted=persisted)
            return IngestionResult(
                filename=artifact.filename,
                byte_size=artifact.size,
                resolved_type=resolved.mime,
                type_source=resolved.source,
                extracted_character_count=document.character_count,
                chunk_count=len(chunks),
                embeddings_created_count=len(records),
                persisted_vector_count=persisted,
                persistence_configured=self.vector_store is not None,
                persistence_error=persistence_error,
                text_preview=text_preview(document.text, self.config.preview_chars),
                embedding_model=self.embedder.model,
                vector_dimensionality=records[0].dimensions if records else 0,
            )
        except DocPipeError as e:
            log.warning("ingestion_failed", stage=stage.value, code=e.code, error=e.message)
            stage = IngestionStage.FAILED
            raise
        finally:
            artifact.discard()
            log.debug("ingestion_cleanup", stage=stage.value)

    async def _persist(self, records: List[EmbeddingRecord], artifact: UploadArtifact, file_type: str):
        try:
            stored = await self.vector_store.upsert_records(
                records,
                filename=artifact.filename,
                file_type=file_type,
                file_size=artifact.size,
                embedding_model=self.embedder.model,
                uploaded_at=datetime.now(timezone.utc),
            )
        except PersistenceError as e:
            logger.warning("vector_upload_failed", filename=artifact.filename, persisted=e.persisted, error=e.message)
            return e.persisted, e.message
        return stored, None


