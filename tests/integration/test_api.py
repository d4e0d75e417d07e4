"""HTTP tests for the FastAPI surface with the pipeline's services mocked."""

from __future__ import annotations

from dataclasses import replace
from types import SimpleNamespace
from typing import Iterator
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from docpipe.api.ingest import get_ingestion_service, provide_embedder
from docpipe.core.config import PipelineConfig, get_settings
from docpipe.main import app
from docpipe.schemas.documents import UploadArtifact
from docpipe.services.ingestion_service import IngestionService
from docpipe.utils.embeddings import EmbeddingClient


@pytest.fixture
def client(pipeline_config: PipelineConfig, embedder: EmbeddingClient) -> Iterator[TestClient]:
    app.dependency_overrides[get_ingestion_service] = lambda: IngestionService(config=pipeline_config, embedder=embedder)
    app.dependency_overrides[provide_embedder] = lambda: embedder
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root_lists_routes(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert "POST /api/process-file" in response.json()["endpoints"]


def test_process_file_success(client: TestClient) -> None:
    files = {"file": ("notes.txt", b"Meeting notes about the product launch.", "text/plain")}

    response = client.post("/api/process-file", files=files)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["metadata"]["chunk_count"] == 1
    assert body["metadata"]["embeddings_created_count"] == 1
    assert body["metadata"]["resolved_type"] == "text/plain"


def test_unsupported_file_returns_structured_error(client: TestClient, ollama_client: MagicMock) -> None:
    files = {"file": ("setup.exe", b"MZ\x90\x00 binary", "application/x-msdownload")}

    response = client.post("/api/process-file", files=files)

    assert response.status_code == 415
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "UNSUPPORTED_TYPE"
    assert "setup.exe" in body["details"]
    assert "timestamp" in body
    ollama_client.embeddings.assert_not_awaited()


def test_embedding_outage_returns_bad_gateway(client: TestClient, ollama_client: MagicMock) -> None:
    ollama_client.list.side_effect = httpx.ConnectError("connection refused")
    files = {"file": ("notes.txt", b"Meeting notes about the product launch.", "text/plain")}

    response = client.post("/api/process-file", files=files)

    assert response.status_code == 502
    assert response.json()["code"] == "EMBEDDING_SERVICE_ERROR"


def test_process_files_reports_each_file(client: TestClient) -> None:
    files = [
        ("files", ("notes.txt", b"Meeting notes about the product launch.", "text/plain")),
        ("files", ("setup.exe", b"MZ\x90\x00 binary", "application/x-msdownload")),
    ]

    response = client.post("/api/process-files", files=files)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["processed"] == 1
    assert body["failed"] == 1
    assert body["results"][1]["error"]["code"] == "UNSUPPORTED_TYPE"


def test_process_files_limit(pipeline_config: PipelineConfig, embedder: EmbeddingClient) -> None:
    config = replace(pipeline_config, max_files_per_request=1)
    app.dependency_overrides[get_ingestion_service] = lambda: IngestionService(config=config, embedder=embedder)
    try:
        files = [("files", (f"n{i}.txt", b"Some text for the file.", "text/plain")) for i in range(2)]
        response = TestClient(app).post("/api/process-files", files=files)
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 400
    assert response.json()["code"] == "TOO_MANY_FILES"


def test_process_files_keeps_going_after_unexpected_error(
    pipeline_config: PipelineConfig, embedder: EmbeddingClient
) -> None:
    class CrashingOnBoom(IngestionService):
        async def ingest(self, artifact: UploadArtifact):
            if artifact.filename == "boom.txt":
                raise RuntimeError("disk vanished")
            return await super().ingest(artifact)

    app.dependency_overrides[get_ingestion_service] = lambda: CrashingOnBoom(config=pipeline_config, embedder=embedder)
    try:
        files = [
            ("files", ("notes.txt", b"Meeting notes about the product launch.", "text/plain")),
            ("files", ("boom.txt", b"Some other perfectly fine text.", "text/plain")),
            ("files", ("more.txt", b"Follow-up notes from the second meeting.", "text/plain")),
        ]
        response = TestClient(app).post("/api/process-files", files=files)
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 2
    assert body["failed"] == 1
    assert [r["success"] for r in body["results"]] == [True, False, True]
    assert body["results"][1]["error"]["code"] == "INTERNAL_ERROR"
    assert "disk vanished" in body["results"][1]["error"]["details"]


def test_embedder_is_built_from_pipeline_config() -> None:
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

    embedder = provide_embedder(request)

    config = get_settings().pipeline_config()
    assert embedder.host == config.embedding_service_address
    assert embedder.model == config.embedding_model
    assert request.app.state.embedder is embedder


def test_health_ok(client: TestClient) -> None:
    body = client.get("/api/health").json()

    assert body["status"] == "OK"
    assert body["embedding"]["healthy"] is True
    assert "pdftotext" in body["pdf_tools"]
    assert body["vector_index"]["configured"] is False


def test_health_degraded_when_ollama_down(client: TestClient, ollama_client: MagicMock) -> None:
    ollama_client.list.side_effect = httpx.ConnectError("connection refused")

    body = client.get("/api/health").json()

    assert body["status"] == "DEGRADED"
    assert body["embedding"]["healthy"] is False
    assert "not reachable" in body["embedding"]["detail"]


def test_supported_types(client: TestClient) -> None:
    body = client.get("/api/supported-types").json()

    assert "application/pdf" in body["supported_types"]
    assert ".docx" in body["supported_extensions"]
    assert body["max_chunk_size"] == 4000


def test_ping(client: TestClient) -> None:
    assert client.get("/api/test").json()["message"] == "Server is running!"
