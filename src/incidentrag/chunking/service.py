"""Section-aware chunking of work-report text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple

UNLABELED = "unlabeled"

SECTION_HEADER_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?:INCIDENCIA|ACTA|REPORTE|ON-?CALL|MANTENIMIENTO|PREVENTIVO|CORRECTIVO)[\s:.-]*", re.I),
    re.compile(r"^(?:DESCRIPCIÓN|DESCRIPCION|SUMMARY|RESUMEN)[\s:.-]*", re.I),
    re.compile(r"^(?:AFECTADOS?|IMPACTO|IMPACT)[\s:.-]*", re.I),
    re.compile(r"^(?:RESOLUCIÓN|RESOLUCION|RESOLUTION|SEGUIMIENTO)[\s:.-]*", re.I),
    re.compile(r"^(?:CAUSA|ROOT\s*CAUSE|ORIGEN)[\s:.-]*", re.I),
    re.compile(r"^(?:ACCIONES?|ACTIONS)[\s:.-]*", re.I),
    re.compile(r"^(?:FECHA|HORA|DATE|TIME)[\s:.-]*", re.I),
    re.compile(r"^(?:SISTEMA|SERVER|ENVIRONMENT|ENTORNO)[\s:.-]*", re.I),
)


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for section-aware chunking (lengths in characters)."""

    chunk_size: int = 512
    chunk_overlap: int = 50
    min_emit_length: int = 100
    min_final_length: int = 50
    max_header_length: int = 50


@dataclass(frozen=True)
class Section:
    title: str | None
    content: str
    heading: str = ""


@dataclass(frozen=True)
class TextChunk:
    """Chunk text prefixed with its section label, ready for embedding."""

    index: int
    section: str
    text: str


class Chunker(Protocol):
    """Protocol for chunking implementations."""

    def chunk(self, text: str) -> Sequence[TextChunk]:
        """Split document text into ordered chunks."""


def label_prefix(section: str) -> str:
    return f"[Sección: {section}]\n"


def section_text_for(section: Section) -> str:
    if section.title and section.content:
        return f"{section.title}: {section.content}"
    return section.heading or section.title or section.content


def is_section_header(line: str, max_length: int = 50) -> bool:
    return len(line) < max_length and any(pattern.search(line) for pattern in SECTION_HEADER_PATTERNS)


def split_sections(text: str, max_header_length: int = 50) -> List[Section]:
    """Group lines under the most recent header; text without headers is one section.

    A header followed directly by another header (or ending the text) is kept
    as a title-only section, so table rows that look like headers still index.
    """

    sections: List[Section] = []
    title: str | None = None
    heading = ""
    content: List[str] = []
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if is_section_header(line, max_header_length):
            body = "\n".join(content).strip()
            if body or title:
                sections.append(Section(title=title, content=body, heading=heading))
            title = re.sub(r"[:.-]+$", "", line).strip()
            heading = line
            content = []
        else:
            content.append(line)
    body = "\n".join(content).strip()
    if body or title:
        sections.append(Section(title=title, content=body, heading=heading))
    if not sections:
        sections.append(Section(title=None, content=text.strip()))
    return sections


class SectionChunker:
    """Greedy packer of labelled sections into bounded chunks with trailing overlap."""

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()
        self._overlap = max(0, min(self._config.chunk_overlap, self._config.chunk_size))

    def chunk(self, text: str) -> Sequence[TextChunk]:
        if not text or not text.strip():
            return []
        config = self._config
        chunks: List[TextChunk] = []
        current = ""
        label = UNLABELED

        for section in split_sections(text, config.max_header_length):
            section_text = section_text_for(section)
            # A single section longer than chunk_size is kept whole in one chunk.
            if len(current) + len(section_text) > config.chunk_size and len(current) > config.min_emit_length:
                if current.strip():
                    chunks.append(self._emit(len(chunks), label, current))
                tail = current[-self._overlap :] if self._overlap else ""
                current = f"{tail}\n\n{section_text}" if tail else section_text
            else:
                current = f"{current}\n\n{section_text}" if current else section_text
            if section.title:
                label = section.title

        if current.strip() and len(current.strip()) > config.min_final_length:
            chunks.append(self._emit(len(chunks), label, current))
        return chunks

    @staticmethod
    def _emit(index: int, label: str, body: str) -> TextChunk:
        return TextChunk(index=index, section=label, text=f"{label_prefix(label)}{body.strip()}")


def chunk_text(text: str, *, config: ChunkingConfig | None = None) -> Sequence[TextChunk]:
    """Convenience helper for tests and ad-hoc chunking."""

    return SectionChunker(config=config).chunk(text)


__all__ = [
    "Chunker",
    "ChunkingConfig",
    "SECTION_HEADER_PATTERNS",
    "Section",
    "SectionChunker",
    "TextChunk",
    "UNLABELED",
    "chunk_text",
    "is_section_header",
    "label_prefix",
    "section_text_for",
    "split_sections",
]
