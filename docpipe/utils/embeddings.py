# Ollama embedding client: one prompt per call, chunks embedded strictly in order
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from numbers import Real
from typing import List, Optional, Sequence

import httpx
import ollama
import structlog

from docpipe.core.config import PipelineConfig, get_settings
from docpipe.core.errors import EmbeddingServiceError
from docpipe.schemas.documents import Chunk, EmbeddingRecord

logger = structlog.get_logger(logger_name=__name__)

MAX_PROMPT_CHARS = 8000


@dataclass(frozen=True)
class RateLimitPolicy:
    """Pause between successive embedding calls for the same document."""
    pause_seconds: float = 0.2

    async def wait(self) -> None:
        if self.pause_seconds > 0:
            await asyncio.sleep(self.pause_seconds)


class EmbeddingClient:
    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        dim: Optional[int] = None,
        max_prompt_chars: Optional[int] = None,
        rate_limit: Optional[RateLimitPolicy] = None,
        client: Optional[ollama.AsyncClient] = None,
    ):
        settings = get_settings()
        self.host = host or settings.OLLAMA_HOST
        self.model = model or settings.EMBEDDING_MODEL
        self.dim = dim if dim is not None else settings.EMBEDDING_DIM
        self.max_prompt_chars = max_prompt_chars or settings.EMBEDDING_MAX_PROMPT_CHARS or MAX_PROMPT_CHARS
        self.rate_limit = rate_limit or RateLimitPolicy(settings.EMBEDDING_PAUSE_SECONDS)
        self._client = client or ollama.AsyncClient(host=self.host)

    @classmethod
    def from_config(cls, config: PipelineConfig, client: Optional[ollama.AsyncClient] = None) -> "EmbeddingClient":
        embedder = cls(
            host=config.embedding_service_address,
            model=config.embedding_model,
            dim=config.embedding_dim,
            max_prompt_chars=config.embedding_max_prompt_chars,
            rate_limit=RateLimitPolicy(config.embedding_pause_seconds),
            client=client,
        )
        # None in the config turns the dimension check off
        embedder.dim = config.embedding_dim
        return embedder

    async def list_models(self) -> List[str]:
        try:
            response = await self._client.list()
        except ollama.ResponseError as e:
            raise EmbeddingServiceError(f"Ollama not responding: {e.status_code} {e.error}") from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise EmbeddingServiceError(f"Ollama is not reachable at {self.host}: {e}") from e

        names = []
        for m in response.get("models") or []:
            name = m.get("model") or m.get("name")
            if name:
                names.append(name)
        return names

    def has_model(self, available: Sequence[str]) -> bool:
        base = self.model.split(":")[0]
        return any(self.model in name or base in name for name in available)

    async def ensure_model_available(self) -> List[str]:
        available = await self.list_models()
        if not self.has_model(available):
            logger.warning("embedding_model_missing", model=self.model, available=available)
            raise EmbeddingServiceError(
                f"Embedding model {self.model} is not installed on {self.host}. Run: ollama pull {self.model}"
            )
        return available

    async def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingServiceError("Text is empty or invalid")
        prompt = text.strip()[: self.max_prompt_chars]

        try:
            response = await self._client.embeddings(model=self.model, prompt=prompt)
        except ollama.ResponseError as e:
            raise EmbeddingServiceError(f"Ollama API error: {e.status_code} - {e.error}") from e
        except ollama.RequestError as e:
            raise EmbeddingServiceError(f"Invalid embedding request: {e.error}") from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise EmbeddingServiceError(f"Ollama is not reachable at {self.host}: {e}") from e

        vector = response.get("embedding") if response is not None else None
        if not vector or not all(isinstance(v, Real) and not isinstance(v, bool) for v in vector):
            raise EmbeddingServiceError("Invalid embedding response from Ollama")
        return [float(v) for v in vector]

    async def embed_chunks(self, chunks: Sequence[Chunk]) -> List[EmbeddingRecord]:
        records: List[EmbeddingRecord] = []
        for position, chunk in enumerate(chunks):
            if position:
                await self.rate_limit.wait()
            logger.debug("embedding_chunk", chunk_index=chunk.index, total=len(chunks))
            try:
                vector = await self.embed(chunk.text)
            except EmbeddingServiceError as e:
                raise EmbeddingServiceError(
                    f"Failed to generate embedding for chunk {chunk.index + 1}: {e.message}"
                ) from e

            if self.dim and len(vector) != self.dim:
                raise EmbeddingServiceError(
                    f"Embedding dimension mismatch. Expected {self.dim}, got {len(vector)}"
                )
            if records and len(vector) != records[0].dimensions:
                raise EmbeddingServiceError(
                    f"Embedding dimension changed within one document: {records[0].dimensions} -> {len(vector)}"
                )
            records.append(EmbeddingRecord(chunk_index=chunk.index, text=chunk.text, vector=vector))
        logger.info("embeddings_created", count=len(records), model=self.model)
        return records
