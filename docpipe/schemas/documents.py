#pipeline-internal value objects
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

TypeSource = Literal["sniffed", "declared", "extension", "fallback"]


@dataclass
class UploadArtifact:
    data: bytes
    declared_type: Optional[str]
    filename: str
    size: int = field(default=-1)

    def __post_init__(self) -> None:
        if self.size < 0:
            self.size = len(self.data)

    def discard(self) -> None:
        self.data = b""


@dataclass(frozen=True)
class ResolvedType:
    mime: str
    source: TypeSource
    rejected: bool = False


@dataclass(frozen=True)
class ExtractedDocument:
    text: str
    filename: str
    resolved_type: str

    @property
    def character_count(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class Chunk:
    index: int
    text: str


@dataclass(frozen=True)
class EmbeddingRecord:
    chunk_index: int
    text: str
    vector: List[float]

    @property
    def dimensions(self) -> int:
        return len(self.vector)
