import os
import re
import subprocess
import tempfile
from typing import List, Optional

import structlog

from docpipe.core.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

OCR_HINT = "Could not extract text from PDF. This might be an image-based PDF requiring OCR."

_HSPACE = re.compile(r"[^\S\n]+")
_NEWLINES = re.compile(r"\s*\n\s*")
_WHITESPACE = re.compile(r"\s+")
_TEXT_OBJECT = re.compile(r"BT\s*.*?ET", re.DOTALL)
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n\r\t]")
_PRINTABLE_RUN = re.compile(r"[a-zA-Z0-9\s.,!?;:'\"()\-]{5,}")


def normalize_layout_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HSPACE.sub(" ", text)
    text = _NEWLINES.sub("\n", text)
    return text.strip()


class PdfTextExtractor:
    """
    Two-tier PDF text extraction.
    - Primary: the poppler ``pdftotext -layout`` tool against temporary files
    - Fallback: scan the raw bytes for text objects, then for any printable runs

    The thresholds below are heuristics; tune them per deployment.
    """

    min_chars = 10
    min_fragment_chars = 3
    text_object_min_chars = 20

    def __init__(self, tool: str = "pdftotext", timeout: Optional[float] = None):
        self.tool = tool
        self.timeout = timeout

    def extract(self, data: bytes, filename: str = "") -> str:
        text = self.run_layout_tool(data)
        if len(text) >= self.min_chars:
            logger.info("pdf_extracted", filename=filename, method="pdftotext", characters=len(text))
            return text

        logger.info("pdf_fallback_scan", filename=filename)
        text = self.scan_raw_bytes(data)
        if len(text) >= self.min_chars:
            logger.info("pdf_extracted", filename=filename, method="byte_scan", characters=len(text))
            return text

        raise ExtractionError(OCR_HINT)

    def run_layout_tool(self, data: bytes) -> str:
        """Returns the normalized tool output, or "" when the tool is unavailable or fails."""
        with tempfile.TemporaryDirectory(prefix="docpipe_pdf_") as workdir:
            src = os.path.join(workdir, "input.pdf")
            out = os.path.join(workdir, "output.txt")
            with open(src, "wb") as fh:
                fh.write(data)
            try:
                subprocess.run(
                    [self.tool, "-layout", src, out],
                    check=True,
                    capture_output=True,
                    timeout=self.timeout,
                )
            except FileNotFoundError:
                logger.warning("pdftotext_unavailable", tool=self.tool)
                return ""
            except subprocess.CalledProcessError as e:
                stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
                logger.warning("pdftotext_failed", returncode=e.returncode, stderr=stderr[:200])
                return ""
            except subprocess.TimeoutExpired:
                logger.warning("pdftotext_timeout", timeout=self.timeout)
                return ""
            if not os.path.exists(out):
                return ""
            with open(out, "r", encoding="utf-8", errors="replace") as fh:
                return normalize_layout_text(fh.read())

    def scan_raw_bytes(self, data: bytes) -> str:
        raw = data.decode("latin-1")

        fragments: List[str] = []
        for match in _TEXT_OBJECT.findall(raw):
            readable = _WHITESPACE.sub(" ", _NON_PRINTABLE.sub(" ", match)).strip()
            if len(readable) > self.min_fragment_chars:
                fragments.append(readable)
        text = " ".join(fragments)

        if len(text) < self.text_object_min_chars:
            runs = [r for r in _PRINTABLE_RUN.findall(raw) if len(r.strip()) > self.min_fragment_chars]
            broad = _WHITESPACE.sub(" ", " ".join(runs)).strip()
            if broad:
                text = broad

        return text
