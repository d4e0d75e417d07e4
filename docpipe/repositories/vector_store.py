import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Sequence

import structlog
from qdrant_client import AsyncQdrantClient, QdrantClient
from qdrant_client.models import Batch, Distance, VectorParams

from docpipe.core.errors import PersistenceError
from docpipe.schemas.documents import EmbeddingRecord

logger = structlog.get_logger(logger_name=__name__)

MAX_BATCH_SIZE = 100
TEXT_PREVIEW_CHARS = 500

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9]")


def vector_id(uploaded_at: datetime, filename: str, chunk_index: int) -> str:
    millis = int(uploaded_at.timestamp() * 1000)
    return f"{millis}_{_UNSAFE_ID_CHARS.sub('_', filename)}_chunk_{chunk_index}"


def point_id(readable_id: str) -> str:
    # Qdrant only accepts UUIDs or unsigned ints as point ids
    return str(uuid.uuid5(uuid.NAMESPACE_URL, readable_id))


def ensure_collection(client: QdrantClient, collection: str, dim: int) -> bool:
    """Create ``collection`` for cosine vectors of size ``dim``.

    Returns False when it already existed. An existing collection is never
    altered; a vector size other than ``dim`` is only reported.
    """
    if not client.collection_exists(collection):
        client.create_collection(
            collection_name=collection,
            vectors_config=VectorParams(size=dim, distance=Distance.COSINE),
        )
        logger.info("collection_created", collection=collection, dim=dim, distance="cosine")
        return True

    vectors = client.get_collection(collection).config.params.vectors
    size = getattr(vectors, "size", None)  # None for named-vector collections
    if size is not None and size != dim:
        logger.warning("collection_dimension_mismatch", collection=collection, existing=size, expected=dim)
    else:
        logger.info("collection_exists", collection=collection, dim=size)
    return False


class VectorStore:
    def __init__(self, client: AsyncQdrantClient, collection: str, batch_size: int = MAX_BATCH_SIZE):
        self.client = client
        self.collection = collection
        self.batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))

    async def upsert(
        self,
        ids: Sequence[str],
        vectors: Sequence[Sequence[float]],
        payloads: Sequence[Dict[str, Any]],
    ) -> None:
        batch = Batch(ids=list(ids), vectors=[list(v) for v in vectors], payloads=list(payloads))
        await self.client.upsert(collection_name=self.collection, points=batch)

    async def upsert_records(
        self,
        records: Sequence[EmbeddingRecord],
        *,
        filename: str,
        file_type: str,
        file_size: int,
        embedding_model: str,
        uploaded_at: datetime,
    ) -> int:
        """Upserts in fixed-size batches, in record order. Returns the number of vectors stored."""
        ids: List[str] = []
        payloads: List[Dict[str, Any]] = []
        for record in records:
            readable = vector_id(uploaded_at, filename, record.chunk_index)
            ids.append(point_id(readable))
            payloads.append({
                "vector_id": readable,
                "filename": filename,
                "file_type": file_type,
                "file_size": file_size,
                "uploaded_at": uploaded_at.isoformat(),
                "chunk_index": record.chunk_index,
                "total_chunks": len(records),
                "text_content": record.text,
                "text_preview": record.text[:TEXT_PREVIEW_CHARS],
                "embedding_model": embedding_model,
                "dimensions": record.dimensions,
            })

        stored = 0
        total_batches = (len(records) + self.batch_size - 1) // self.batch_size
        for start in range(0, len(records), self.batch_size):
            end = start + self.batch_size
            try:
                await self.upsert(
                    ids=ids[start:end],
                    vectors=[r.vector for r in records[start:end]],
                    payloads=payloads[start:end],
                )
            except Exception as e:
                raise PersistenceError(f"Vector store error: {e}", persisted=stored) from e
            stored += len(ids[start:end])
            logger.info(
                "vector_batch_uploaded",
                batch=start // self.batch_size + 1,
                total_batches=total_batches,
                collection=self.collection,
            )
        return stored
