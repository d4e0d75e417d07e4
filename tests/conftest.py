"""Shared pytest fixtures for the docpipe test suite."""

from __future__ import annotations

import io
from unittest.mock import AsyncMock, MagicMock

import pytest
import xlwt
from docx import Document
from openpyxl import Workbook

from docpipe.core.config import PipelineConfig
from docpipe.utils.embeddings import EmbeddingClient, RateLimitPolicy


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        embedding_service_address="http://ollama.test:11434",
        embedding_model="mxbai-embed-large",
    )


@pytest.fixture
def ollama_client() -> MagicMock:
    """Stand-in for ``ollama.AsyncClient`` with one installed model."""
    client = MagicMock()
    client.list = AsyncMock(return_value={"models": [{"model": "mxbai-embed-large:latest"}]})
    client.embeddings = AsyncMock(return_value={"embedding": [0.1, 0.2, 0.3, 0.4]})
    return client


@pytest.fixture
def embedder(ollama_client: MagicMock) -> EmbeddingClient:
    return EmbeddingClient(
        host="http://ollama.test:11434",
        model="mxbai-embed-large",
        dim=4,
        rate_limit=RateLimitPolicy(pause_seconds=0),
        client=ollama_client,
    )


@pytest.fixture
def docx_bytes() -> bytes:
    document = Document()
    document.add_paragraph("Quarterly report for the northern region")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Name"
    table.cell(0, 1).text = "Value"
    table.cell(1, 0).text = "Alpha"
    table.cell(1, 1).text = "1"
    document.add_paragraph("Closing remarks")
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


@pytest.fixture
def xlsx_bytes() -> bytes:
    workbook = Workbook()
    people = workbook.active
    people.title = "People"
    people.append(["name", "age"])
    people.append([None, None])
    people.append(["Ada", 36])
    totals = workbook.create_sheet("Totals")
    totals.append(["sum", 36])
    buf = io.BytesIO()
    workbook.save(buf)
    return buf.getvalue()


@pytest.fixture
def xls_bytes() -> bytes:
    """Legacy BIFF8 workbook with the same layout as ``xlsx_bytes``."""
    workbook = xlwt.Workbook()
    people = workbook.add_sheet("People")
    people.write(0, 0, "name")
    people.write(0, 1, "age")
    people.write(2, 0, "Ada")
    people.write(2, 1, 36)
    totals = workbook.add_sheet("Totals")
    totals.write(0, 0, "sum")
    totals.write(0, 1, 36)
    buf = io.BytesIO()
    workbook.save(buf)
    return buf.getvalue()
