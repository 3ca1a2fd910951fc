"""Work-report loading: PDF and plain-text files to normalized text."""

from __future__ import annotations

import re
import time
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Protocol, Sequence

from langchain_community.document_loaders import PyPDFLoader, TextLoader
from langchain_community.document_loaders.base import BaseLoader
from langchain_core.documents import Document as LCDocument

from incidentrag.metrics.observability import get_logger


class IngestionError(RuntimeError):
    """Raised when ingestion fails for a particular document."""


class UnsupportedFileTypeError(IngestionError):
    """Raised when a document extension is not supported by the loader."""


@dataclass(frozen=True)
class LoaderConfig:
    """Configuration for document loading."""

    encoding: str = "utf-8"
    allowed_extensions: Sequence[str] = (".pdf", ".txt")


@dataclass(frozen=True)
class LoadedText:
    """Normalized text of one report plus the filename used as extraction hint."""

    text: str
    filename: str
    page_count: int = 1


class TextLoaderProtocol(Protocol):
    """Protocol for loader implementations."""

    def supports(self, path: Path) -> bool:
        """Return whether ``path`` has a loadable type."""

    def load(self, path: Path) -> LoadedText:
        """Load the document at ``path`` as text."""


def normalize_text(raw: str) -> str:
    """Normalize unicode and horizontal whitespace; line structure is kept."""

    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ").replace("\r\n", "\n").replace("\r", "\n")
    lines = [re.sub(r"[ \t\f\v]+", " ", line).strip() for line in normalized.split("\n")]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


class PdfTextLoader:
    """Load reports via LangChain loaders; PDF pages are joined with blank lines."""

    _LOADERS: Mapping[str, type[BaseLoader]] = {
        ".pdf": PyPDFLoader,
        ".txt": TextLoader,
    }

    _logger = get_logger("ingestion")

    def __init__(self, config: LoaderConfig | None = None) -> None:
        self._config = config or LoaderConfig()

    def supports(self, path: Path) -> bool:
        suffix = path.suffix.lower()
        return suffix in self._LOADERS and suffix in self._config.allowed_extensions

    def load(self, path: Path) -> LoadedText:
        path = Path(path)
        suffix = path.suffix.lower()
        if not self.supports(path):
            raise UnsupportedFileTypeError(f"Unsupported document type: {suffix or '<none>'}")

        start = time.perf_counter()
        try:
            documents = self._build_loader(self._LOADERS[suffix], path).load()
        except Exception as exc:  # pragma: no cover - loader specific errors
            raise IngestionError(f"Failed to load {path}: {exc}") from exc

        text = self._join_pages(documents)
        if not text:
            raise IngestionError(f"No extractable text in {path}")
        self._logger.info(
            "ingestion.loaded",
            path=str(path),
            pages=len(documents),
            characters=len(text),
            duration_seconds=time.perf_counter() - start,
        )
        return LoadedText(text=text, filename=path.name, page_count=len(documents))

    def _build_loader(self, loader_cls: type[BaseLoader], path: Path) -> BaseLoader:
        if loader_cls is TextLoader:
            return loader_cls(str(path), encoding=self._config.encoding)
        return loader_cls(str(path))

    @staticmethod
    def _join_pages(documents: Sequence[LCDocument]) -> str:
        pages: List[str] = [normalize_text(document.page_content) for document in documents]
        return "\n\n".join(page for page in pages if page)


def load_text(path: Path, *, config: LoaderConfig | None = None) -> LoadedText:
    """Convenience helper for tests and ad-hoc loading."""

    return PdfTextLoader(config=config).load(path)


__all__ = [
    "IngestionError",
    "LoadedText",
    "LoaderConfig",
    "PdfTextLoader",
    "TextLoaderProtocol",
    "UnsupportedFileTypeError",
    "load_text",
    "normalize_text",
]
