from typing import List
import re

from docpipe.schemas.documents import Chunk

DEFAULT_MAX_CHUNK_SIZE = 4000

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENT_SPLIT = re.compile(r"(?<=[.!?])\s+")

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "


def split_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]


def split_sentences(paragraph: str) -> List[str]:
    return [s.strip() for s in _SENT_SPLIT.split(paragraph) if s.strip()]


def _pack(pieces: List[str], separator: str, max_size: int, done: List[str], buffer: str) -> str:
    """Greedy packing: append to ``buffer`` until the next piece would overflow, then flush.
    A piece that alone exceeds max_size still becomes its own chunk."""
    for piece in pieces:
        if not buffer:
            buffer = piece
        elif len(buffer) + len(separator) + len(piece) > max_size:
            done.append(buffer)
            buffer = piece
        else:
            buffer = f"{buffer}{separator}{piece}"
    return buffer


#paragraphs first, sentences for paragraphs that don't fit on their own
def chunk_text(text: str, max_size: int = DEFAULT_MAX_CHUNK_SIZE) -> List[Chunk]:
    if max_size <= 0:
        raise ValueError("max_size must be positive")

    text = (text or "").strip()
    if not text:
        return []
    if len(text) <= max_size:
        return [Chunk(index=0, text=text)]

    done: List[str] = []
    buffer = ""
    for paragraph in split_paragraphs(text):
        if len(paragraph) > max_size:
            if buffer:
                done.append(buffer)
            buffer = _pack(split_sentences(paragraph), SENTENCE_SEPARATOR, max_size, done, "")
        else:
            buffer = _pack([paragraph], PARAGRAPH_SEPARATOR, max_size, done, buffer)
    if buffer:
        done.append(buffer)

    texts = [c.strip() for c in done if c.strip()]
    return [Chunk(index=i, text=t) for i, t in enumerate(texts)]
