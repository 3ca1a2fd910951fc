"""Report loading."""

from .service import (
    IngestionError,
    LoadedText,
    LoaderConfig,
    PdfTextLoader,
    TextLoaderProtocol,
    UnsupportedFileTypeError,
    load_text,
    normalize_text,
)

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
