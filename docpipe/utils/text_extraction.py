import io
import json
import re
from html import unescape
from typing import Dict, List, Optional, Tuple

import structlog
import xlrd
from docx import Document
from docx.table import Table
from docx.text.paragraph import Paragraph
from openpyxl import load_workbook
from xlrd.sheet import Cell

from docpipe.core.errors import ExtractionError
from docpipe.schemas.documents import ExtractedDocument
from docpipe.utils.mime_types import OLE_SIGNATURE, is_printable_text
from docpipe.utils.pdf_extraction import PdfTextExtractor

logger = structlog.get_logger(logger_name=__name__)

MIN_TEXT_CHARS = 10

_WHITESPACE = re.compile(r"\s+")
_SCRIPT = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_RTF_CONTROL = re.compile(r"\\[a-zA-Z]+-?\d* ?")
_RTF_BRACES = re.compile(r"[{}]")


def decode_utf8(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


class ExtractionStrategy:
    """Turns the bytes of one document format into plain text."""

    name = "base"

    def extract(self, data: bytes, filename: str) -> str:
        raise NotImplementedError


class PlainTextStrategy(ExtractionStrategy):
    name = "plain_text"

    def extract(self, data: bytes, filename: str) -> str:
        return decode_utf8(data).strip()


class WordStrategy(ExtractionStrategy):
    name = "word"

    def extract(self, data: bytes, filename: str) -> str:
        document = Document(io.BytesIO(data))
        blocks: List[str] = []
        for child in document.element.body.iterchildren():
            tag = child.tag.rsplit("}", 1)[-1]
            if tag == "p":
                text = Paragraph(child, document).text.strip()
                if text:
                    blocks.append(text)
            elif tag == "tbl":
                rows = []
                for row in Table(child, document).rows:
                    cells = [cell.text.strip() for cell in row.cells]
                    if any(cells):
                        rows.append(" | ".join(cells))
                if rows:
                    blocks.append("\n".join(rows))
        return "\n\n".join(blocks).strip()


class SpreadsheetStrategy(ExtractionStrategy):
    """Sheet-by-sheet rows for OOXML workbooks (openpyxl) and legacy BIFF ones (xlrd)."""

    name = "spreadsheet"

    def extract(self, data: bytes, filename: str) -> str:
        if data.startswith(OLE_SIGNATURE):
            sheets = self._legacy_sheets(data)
        else:
            sheets = self._ooxml_sheets(data)
        return "\n\n".join(format_sheet(title, rows) for title, rows in sheets).strip()

    def _ooxml_sheets(self, data: bytes) -> List[Tuple[str, List[List[str]]]]:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        try:
            return [
                (sheet.title, [["" if value is None else str(value) for value in row]
                               for row in sheet.iter_rows(values_only=True)])
                for sheet in workbook.worksheets
            ]
        finally:
            workbook.close()

    def _legacy_sheets(self, data: bytes) -> List[Tuple[str, List[List[str]]]]:
        book = xlrd.open_workbook(file_contents=data, on_demand=True)
        try:
            sheets = []
            for sheet in book.sheets():
                rows = [
                    [legacy_cell_text(cell, book.datemode) for cell in sheet.row(r)]
                    for r in range(sheet.nrows)
                ]
                sheets.append((sheet.name, rows))
            return sheets
        finally:
            book.release_resources()


def legacy_cell_text(cell: Cell, datemode: int) -> str:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return ""
    if cell.ctype == xlrd.XL_CELL_DATE:
        return str(xlrd.xldate_as_datetime(cell.value, datemode))
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return str(bool(cell.value))
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return xlrd.error_text_from_code.get(cell.value, "")
    # BIFF stores every number as a double
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        return str(int(cell.value))
    return str(cell.value)


def format_sheet(title: str, rows: List[List[str]]) -> str:
    lines = [f"Sheet: {title}"]
    for row_number, cells in enumerate(rows, start=1):
        if any(cell != "" for cell in cells):
            lines.append(f"Row {row_number}: {' | '.join(cells)}")
    return "\n".join(lines)


class PdfStrategy(ExtractionStrategy):
    name = "pdf"

    def __init__(self, pdf_extractor: Optional[PdfTextExtractor] = None):
        self.pdf_extractor = pdf_extractor or PdfTextExtractor()

    def extract(self, data: bytes, filename: str) -> str:
        return self.pdf_extractor.extract(data, filename=filename)


class JsonStrategy(ExtractionStrategy):
    name = "json"

    def extract(self, data: bytes, filename: str) -> str:
        parsed = json.loads(decode_utf8(data))
        return json.dumps(parsed, indent=2, ensure_ascii=False)


class HtmlStrategy(ExtractionStrategy):
    name = "html"

    def extract(self, data: bytes, filename: str) -> str:
        html = decode_utf8(data)
        html = _SCRIPT.sub("", html)
        html = _STYLE.sub("", html)
        return collapse_whitespace(unescape(_TAG.sub(" ", html)))


class RtfStrategy(ExtractionStrategy):
    name = "rtf"

    def extract(self, data: bytes, filename: str) -> str:
        text = _RTF_CONTROL.sub("", decode_utf8(data))
        return collapse_whitespace(_RTF_BRACES.sub("", text))


class ReadableTextStrategy(ExtractionStrategy):
    """For types without a dedicated strategy: accept only mostly-printable text."""

    name = "readable_text"

    def __init__(self, mime: str = ""):
        self.mime = mime

    def extract(self, data: bytes, filename: str) -> str:
        text = decode_utf8(data)
        if not is_printable_text(text):
            raise ExtractionError(f"Unsupported file type: {self.mime or 'unknown'}")
        return text.strip()


class TextExtractor:
    def __init__(self, pdf_extractor: Optional[PdfTextExtractor] = None, min_chars: int = MIN_TEXT_CHARS):
        self.min_chars = min_chars
        plain = PlainTextStrategy()
        word = WordStrategy()
        spreadsheet = SpreadsheetStrategy()
        self.strategies: Dict[str, ExtractionStrategy] = {
            "text/plain": plain,
            "text/markdown": plain,
            "text/csv": plain,
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document": word,
            "application/msword": word,
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": spreadsheet,
            "application/vnd.ms-excel": spreadsheet,
            "application/pdf": PdfStrategy(pdf_extractor),
            "application/json": JsonStrategy(),
            "text/html": HtmlStrategy(),
            "application/rtf": RtfStrategy(),
        }

    def strategy_for(self, resolved_type: str) -> ExtractionStrategy:
        return self.strategies.get(resolved_type) or ReadableTextStrategy(resolved_type)

    def extract(self, data: bytes, resolved_type: str, filename: str) -> ExtractedDocument:
        strategy = self.strategy_for(resolved_type)
        logger.info("extraction_started", filename=filename, resolved_type=resolved_type, strategy=strategy.name)
        try:
            text = strategy.extract(data, filename)
        except ExtractionError:
            raise
        except Exception as e:
            logger.warning("extraction_failed", filename=filename, strategy=strategy.name, error=str(e))
            raise ExtractionError(f"Failed to extract text: {e}") from e

        text = (text or "").strip()
        if len(text) < self.min_chars:
            raise ExtractionError("No meaningful text could be extracted from the file")

        logger.info("extraction_finished", filename=filename, characters=len(text))
        return ExtractedDocument(text=text, filename=filename, resolved_type=resolved_type)
