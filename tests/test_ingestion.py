"""Tests for report loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from incidentrag.ingestion.service import (
    IngestionError,
    PdfTextLoader,
    UnsupportedFileTypeError,
    load_text,
    normalize_text,
)


def test_text_loader_reads_and_normalizes(tmp_path: Path) -> None:
    document = tmp_path / "AC2405.txt"
    document.write_text("ACTA  DE INTERVENCIÓN\r\n\r\n\r\n\r\nCliente:   PPG\n", encoding="utf-8")

    loaded = load_text(document)

    assert loaded.filename == "AC2405.txt"
    assert loaded.page_count == 1
    assert loaded.text == "ACTA DE INTERVENCIÓN\n\nCliente: PPG"


def test_unsupported_extension_is_rejected(tmp_path: Path) -> None:
    document = tmp_path / "notas.docx"
    document.write_bytes(b"binary")

    with pytest.raises(UnsupportedFileTypeError):
        PdfTextLoader().load(document)


def test_empty_file_raises(tmp_path: Path) -> None:
    document = tmp_path / "vacio.txt"
    document.write_text("   \n", encoding="utf-8")

    with pytest.raises(IngestionError):
        load_text(document)


def test_supports_respects_allowed_extensions() -> None:
    loader = PdfTextLoader()
    assert loader.supports(Path("acta.PDF"))
    assert loader.supports(Path("acta.txt"))
    assert not loader.supports(Path("acta.md"))


def test_normalize_text_keeps_line_structure() -> None:
    assert normalize_text("a\t\tb \n\n\n\nc ") == "a b\n\nc"
