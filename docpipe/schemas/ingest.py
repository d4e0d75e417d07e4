from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class IngestionResult(BaseModel):
    filename: str
    byte_size: int
    resolved_type: str
    type_source: Literal["sniffed", "declared", "extension", "fallback"]
    extracted_character_count: int
    chunk_count: int
    embeddings_created_count: int
    persisted_vector_count: int = 0
    persistence_configured: bool = False
    persistence_error: Optional[str] = None
    text_preview: str
    embedding_model: str
    vector_dimensionality: int


class ProcessFileResponse(BaseModel):
    success: bool = True
    message: str = "File processed successfully"
    metadata: IngestionResult


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: str
    code: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FileOutcome(BaseModel):
    filename: str
    success: bool
    metadata: Optional[IngestionResult] = None
    error: Optional[ErrorResponse] = None


class ProcessFilesResponse(BaseModel):
    success: bool
    processed: int
    failed: int
    results: List[FileOutcome]


class EmbeddingHealth(BaseModel):
    host: str
    model: str
    healthy: bool
    available_models: List[str] = Field(default_factory=list)
    detail: Optional[str] = None


class VectorIndexHealth(BaseModel):
    configured: bool
    collection: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["OK", "DEGRADED"]
    timestamp: datetime
    embedding: EmbeddingHealth
    pdf_tools: Dict[str, bool]
    vector_index: VectorIndexHealth


class SupportedTypesResponse(BaseModel):
    supported_types: List[str]
    supported_extensions: List[str]
    embedding_model: str
    dimensions: Optional[int]
    max_file_size_bytes: int
    max_files: int
    max_chunk_size: int
    recommendations: Dict[str, str]
