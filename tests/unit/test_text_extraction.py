"""Unit tests for the per-format text extraction strategies."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from docpipe.core.errors import ExtractionError
from docpipe.utils.mime_types import OLE_SIGNATURE
from docpipe.utils.text_extraction import (
    HtmlStrategy,
    PdfStrategy,
    ReadableTextStrategy,
    RtfStrategy,
    TextExtractor,
)

DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS = "application/vnd.ms-excel"


@pytest.fixture
def extractor() -> TextExtractor:
    return TextExtractor()


class TestPlainText:
    def test_utf8_round_trip(self, extractor: TextExtractor) -> None:
        body = "Fifty bytes of plain text for the round trip test."
        assert len(body.encode("utf-8")) == 50

        document = extractor.extract(f"\n  {body}  \n".encode("utf-8"), "text/plain", "a.txt")

        assert document.text == body
        assert document.character_count == 50
        assert document.resolved_type == "text/plain"
        assert document.filename == "a.txt"

    @pytest.mark.parametrize("mime", ["text/markdown", "text/csv"])
    def test_markdown_and_csv_are_decoded_as_is(self, extractor: TextExtractor, mime: str) -> None:
        data = "name,age\nAda,36\nGrace,45\n".encode("utf-8")

        assert extractor.extract(data, mime, "file").text == "name,age\nAda,36\nGrace,45"

    def test_too_little_text_fails(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="No meaningful text"):
            extractor.extract(b"   tiny  ", "text/plain", "tiny.txt")


class TestJson:
    def test_reserialized_with_indentation(self, extractor: TextExtractor) -> None:
        document = extractor.extract(b'{"a":1}', "application/json", "a.json")

        assert json.loads(document.text) == {"a": 1}
        assert document.text == '{\n  "a": 1\n}'

    def test_malformed_json_fails(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="Failed to extract text"):
            extractor.extract(b'{"a": 1,,}', "application/json", "bad.json")


class TestHtml:
    def test_script_removed_and_tags_stripped(self) -> None:
        assert HtmlStrategy().extract(b"<script>bad()</script><p>Hello</p>", "x.html") == "Hello"

    def test_style_and_entities(self, extractor: TextExtractor) -> None:
        html = (
            b"<html><head><style>p { color: red; }</style></head>"
            b"<body><h1>Release   notes</h1>\n<p>Fish &amp; chips</p></body></html>"
        )

        assert extractor.extract(html, "text/html", "x.html").text == "Release notes Fish & chips"


class TestRtf:
    def test_control_words_and_braces_removed(self) -> None:
        rtf = rb"{\rtf1\ansi{\fonttbl\f0\fswiss Helvetica;}\f0\pard This is some {\b bold} text.\par}"

        text = RtfStrategy().extract(rtf, "x.rtf")

        assert "This is some bold text." in text
        assert "\\" not in text
        assert "{" not in text and "}" not in text


class TestOfficeFormats:
    def test_docx_paragraphs_and_tables_in_order(self, extractor: TextExtractor, docx_bytes: bytes) -> None:
        text = extractor.extract(docx_bytes, DOCX, "report.docx").text

        assert text.startswith("Quarterly report for the northern region")
        assert "Name | Value\nAlpha | 1" in text
        assert text.endswith("Closing remarks")
        assert text.index("Name | Value") < text.index("Closing remarks")

    def test_corrupt_word_document_fails_with_converter_message(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="Failed to extract text"):
            extractor.extract(b"definitely not a word document", "application/msword", "old.doc")

    def test_spreadsheet_rows_prefixed_with_sheet_and_row_number(
        self, extractor: TextExtractor, xlsx_bytes: bytes
    ) -> None:
        text = extractor.extract(xlsx_bytes, XLSX, "people.xlsx").text

        assert text.startswith("Sheet: People\nRow 1: name | age")
        assert "Row 3: Ada | 36" in text
        assert "Row 2:" not in text
        assert "\n\nSheet: Totals\nRow 1: sum | 36" in text

    def test_legacy_xls_rows_match_ooxml_layout(self, extractor: TextExtractor, xls_bytes: bytes) -> None:
        assert xls_bytes.startswith(OLE_SIGNATURE)

        text = extractor.extract(xls_bytes, XLS, "people.xls").text

        assert text.startswith("Sheet: People\nRow 1: name | age")
        assert "Row 3: Ada | 36" in text
        assert "Row 2:" not in text
        assert "\n\nSheet: Totals\nRow 1: sum | 36" in text

    def test_corrupt_legacy_workbook_fails_with_converter_message(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="Failed to extract text"):
            extractor.extract(OLE_SIGNATURE + b"\x00" * 8, XLS, "broken.xls")


class TestDispatch:
    def test_pdf_goes_to_pdf_extractor(self) -> None:
        pdf_extractor = MagicMock()
        pdf_extractor.extract.return_value = "Text from the layout tool"
        extractor = TextExtractor(pdf_extractor=pdf_extractor)

        document = extractor.extract(b"%PDF-1.4", "application/pdf", "scan.pdf")

        assert document.text == "Text from the layout tool"
        pdf_extractor.extract.assert_called_once_with(b"%PDF-1.4", filename="scan.pdf")
        assert isinstance(extractor.strategy_for("application/pdf"), PdfStrategy)

    def test_unknown_readable_type_is_accepted(self, extractor: TextExtractor) -> None:
        data = b"key = value\nother = thing\n"

        assert extractor.extract(data, "text/x-ini", "settings.ini").text == "key = value\nother = thing"
        assert isinstance(extractor.strategy_for("text/x-ini"), ReadableTextStrategy)

    def test_unknown_binary_type_fails(self, extractor: TextExtractor) -> None:
        with pytest.raises(ExtractionError, match="Unsupported file type: image/png"):
            extractor.extract(b"\x89PNG\r\n\x1a\n" + bytes(range(0, 30)) * 5, "image/png", "x.png")
