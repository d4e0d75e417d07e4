#resolve the media type the pipeline acts on: sniffed > declared > extension > fallback
import os
import re
from typing import Iterable, Optional

import filetype
import structlog

from docpipe.schemas.documents import ResolvedType

logger = structlog.get_logger(logger_name=__name__)

EXTENSION_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".csv": "text/csv",
    ".json": "application/json",
    ".html": "text/html",
    ".htm": "text/html",
    ".rtf": "application/rtf",
}

TYPE_ALIASES = {
    "text/x-markdown": "text/markdown",
    "text/rtf": "application/rtf",
    "application/x-rtf": "application/rtf",
    "application/x-pdf": "application/pdf",
    "text/json": "application/json",
    "application/csv": "text/csv",
    "application/xhtml+xml": "text/html",
}

KNOWN_TYPES = frozenset(EXTENSION_TYPES.values())

# Magic numbers that only identify a container, not the document inside it.
_CONTAINER_TYPES = frozenset({
    "application/zip",
    "application/octet-stream",
    # OLE2 compound files share one header across .doc, .xls and .ppt
    "application/x-ole-storage",
    "application/msword",
    "application/vnd.ms-excel",
    "application/vnd.ms-powerpoint",
})

OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

GENERIC_TYPES = frozenset({"application/octet-stream", "binary/octet-stream", "application/x-octet-stream"})

FALLBACK_TYPE = "text/plain"
REJECTED_TYPE = "application/octet-stream"

_PRINTABLE = re.compile(r"[\x20-\x7E\n\r\t]")
PRINTABLE_RATIO = 0.7
_SAMPLE_BYTES = 8192


def normalize_type(value: Optional[str]) -> str:
    if not value:
        return ""
    mime = value.split(";", 1)[0].strip().lower()
    return TYPE_ALIASES.get(mime, mime)


def extension_of(filename: Optional[str]) -> str:
    return os.path.splitext(filename or "")[1].lower()


def is_printable_text(text: str) -> bool:
    """True when more than 70% of characters are printable ASCII or whitespace."""
    if not text:
        return False
    printable = len(_PRINTABLE.findall(text))
    return printable / len(text) > PRINTABLE_RATIO


def is_allowed(
    declared_type: Optional[str],
    filename: Optional[str],
    allowed_types: Iterable[str],
    allowed_extensions: Iterable[str],
) -> bool:
    return normalize_type(declared_type) in set(allowed_types) or extension_of(filename) in set(allowed_extensions)


def sniff(data: bytes) -> Optional[str]:
    """Return the magic-number type of ``data`` or None when not confident."""
    if not data:
        return None
    try:
        kind = filetype.guess(data)
    except (TypeError, ValueError) as e:
        logger.debug("content_sniff_failed", error=str(e))
        return None
    if kind is None or not kind.mime:
        return None
    mime = normalize_type(kind.mime)
    if mime in _CONTAINER_TYPES:
        return None
    return mime


def guess_from_extension(filename: Optional[str]) -> Optional[str]:
    return EXTENSION_TYPES.get(extension_of(filename))


def resolve(data: bytes, declared_type: Optional[str], filename: Optional[str]) -> ResolvedType:
    sniffed = sniff(data)
    if sniffed:
        return ResolvedType(mime=sniffed, source="sniffed")

    declared = normalize_type(declared_type)
    if declared and declared not in GENERIC_TYPES and declared in KNOWN_TYPES:
        return ResolvedType(mime=declared, source="declared")

    guessed = guess_from_extension(filename)
    if guessed:
        return ResolvedType(mime=guessed, source="extension")

    sample = data[:_SAMPLE_BYTES].decode("utf-8", errors="replace")
    if is_printable_text(sample):
        return ResolvedType(mime=FALLBACK_TYPE, source="fallback")

    logger.info("type_resolution_rejected", filename=filename, declared_type=declared_type)
    return ResolvedType(mime=REJECTED_TYPE, source="fallback", rejected=True)
