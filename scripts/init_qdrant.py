"""Create the Qdrant collection the ingestion service upserts into.

Reads QDRANT_URL, QDRANT_API_KEY, QDRANT_COLLECTION and EMBEDDING_DIM from
the environment or .env, like the service itself.
"""
import structlog
from qdrant_client import QdrantClient

from docpipe.core.config import get_settings
from docpipe.core.logging import configure_logging
from docpipe.repositories.vector_store import ensure_collection


def main() -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    logger = structlog.get_logger(logger_name="init_qdrant")

    if not settings.vector_store_configured:
        logger.error("qdrant_url_missing", hint="set QDRANT_URL to enable the vector index")
        return 1
    if not settings.EMBEDDING_DIM:
        logger.error("embedding_dim_missing", hint="set EMBEDDING_DIM to the model's vector size")
        return 1

    client = QdrantClient(url=settings.QDRANT_URL, api_key=settings.QDRANT_API_KEY)
    try:
        ensure_collection(client, settings.QDRANT_COLLECTION, settings.EMBEDDING_DIM)
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
