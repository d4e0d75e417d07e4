from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_TYPES: List[str] = [
    "application/pdf",
    "text/plain",
    "text/markdown",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "application/json",
    "text/csv",
    "text/html",
    "application/rtf",
]

SUPPORTED_EXTENSIONS: List[str] = [
    ".txt", ".md", ".pdf", ".docx", ".doc", ".xlsx", ".xls", ".json", ".csv", ".html", ".htm", ".rtf",
]


@dataclass(frozen=True)
class PipelineConfig:
    """Everything the ingestion pipeline needs, fixed at construction time."""
    embedding_service_address: str
    embedding_model: str
    embedding_dim: Optional[int] = 1024
    embedding_max_prompt_chars: int = 8000
    embedding_pause_seconds: float = 0.2
    max_chunk_size: int = 4000
    max_upload_bytes: int = 50 * 1024 * 1024
    max_files_per_request: int = 10
    allowed_types: Tuple[str, ...] = tuple(SUPPORTED_TYPES)
    allowed_extensions: Tuple[str, ...] = tuple(SUPPORTED_EXTENSIONS)
    preview_chars: int = 300
    vector_batch_size: int = 100


class Settings(BaseSettings):
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Embeddings (Ollama)
    OLLAMA_HOST: str = "http://localhost:11434"
    EMBEDDING_MODEL: str = "mxbai-embed-large"
    EMBEDDING_DIM: Optional[int] = 1024
    EMBEDDING_MAX_PROMPT_CHARS: int = 8000
    EMBEDDING_PAUSE_SECONDS: float = 0.2

    # Ingestion limits
    MAX_CHUNK_SIZE: int = 4000
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    MAX_FILES_PER_REQUEST: int = 10
    ALLOWED_TYPES: List[str] = Field(default_factory=lambda: list(SUPPORTED_TYPES))
    ALLOWED_EXTENSIONS: List[str] = Field(default_factory=lambda: list(SUPPORTED_EXTENSIONS))
    TEXT_PREVIEW_CHARS: int = 300

    # PDF
    PDFTOTEXT_PATH: str = "pdftotext"
    PDFTOTEXT_TIMEOUT: Optional[float] = None

    # Qdrant (optional; unset URL disables vector upload)
    QDRANT_URL: Optional[str] = None
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_COLLECTION: str = "documents"
    VECTOR_BATCH_SIZE: int = 100

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def vector_store_configured(self) -> bool:
        return bool(self.QDRANT_URL)

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            embedding_service_address=self.OLLAMA_HOST,
            embedding_model=self.EMBEDDING_MODEL,
            embedding_dim=self.EMBEDDING_DIM,
            embedding_max_prompt_chars=self.EMBEDDING_MAX_PROMPT_CHARS,
            embedding_pause_seconds=self.EMBEDDING_PAUSE_SECONDS,
            max_chunk_size=self.MAX_CHUNK_SIZE,
            max_upload_bytes=self.MAX_UPLOAD_BYTES,
            max_files_per_request=self.MAX_FILES_PER_REQUEST,
            allowed_types=tuple(t.lower() for t in self.ALLOWED_TYPES),
            allowed_extensions=tuple(e.lower() for e in self.ALLOWED_EXTENSIONS),
            preview_chars=self.TEXT_PREVIEW_CHARS,
            vector_batch_size=min(self.VECTOR_BATCH_SIZE, 100),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
