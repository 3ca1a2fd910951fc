from __future__ import annotations

from incidentrag.chunking import ChunkingConfig, SectionChunker, chunk_text, split_sections

BODY = "Se detecta una caída del servicio de comunicaciones en la planta. " * 5


def _sectioned_report() -> str:
    return "\n".join(
        [
            "DESCRIPCIÓN:",
            BODY.strip(),
            "CAUSA:",
            BODY.strip().replace("caída", "pérdida"),
            "RESOLUCIÓN:",
            BODY.strip().replace("caída", "recuperación"),
        ]
    )


def test_empty_and_whitespace_text_produce_no_chunks() -> None:
    assert chunk_text("") == []
    assert chunk_text("   \n\t\n ") == []


def test_short_text_below_final_threshold_is_dropped() -> None:
    assert chunk_text("Texto breve.") == []


def test_text_without_headers_is_one_unlabeled_section() -> None:
    text = "El operador informa de lecturas erróneas en el caudalímetro de la línea dos."

    sections = split_sections(text)
    chunks = chunk_text(text)

    assert len(sections) == 1
    assert sections[0].title is None
    assert len(chunks) == 1
    assert chunks[0].index == 0
    assert chunks[0].section == "unlabeled"
    assert chunks[0].text == f"[Sección: unlabeled]\n{text}"


def test_sections_are_packed_with_contiguous_ordinals() -> None:
    chunks = chunk_text(_sectioned_report())

    assert [chunk.index for chunk in chunks] == list(range(len(chunks)))
    assert [chunk.section for chunk in chunks] == ["DESCRIPCIÓN", "CAUSA", "RESOLUCIÓN"]
    for chunk in chunks:
        assert chunk.text.startswith(f"[Sección: {chunk.section}]\n")


def test_overlap_seeds_next_chunk_with_previous_tail() -> None:
    chunks = chunk_text(_sectioned_report())

    tail = chunks[0].text[-50:].strip()
    assert tail in chunks[1].text
    assert chunks[1].text.index(tail) < chunks[1].text.index("CAUSA: ")


def test_zero_overlap_starts_chunk_at_section() -> None:
    chunker = SectionChunker(ChunkingConfig(chunk_overlap=0))

    chunks = chunker.chunk(_sectioned_report())

    assert chunks[1].text.startswith("[Sección: CAUSA]\nCAUSA: Se detecta una pérdida")


def test_every_line_lands_in_a_chunk(report_text: str) -> None:
    for text in (_sectioned_report(), report_text):
        chunks = chunk_text(text)

        for line in text.split("\n"):
            line = line.strip()
            if line:
                assert any(line in chunk.text for chunk in chunks), line


def test_consecutive_headers_become_title_only_sections() -> None:
    sections = split_sections("RESUMEN DE HORAS\nHorario Normal 1 0 2 8 8 19\nHorario Noct-Festivo 0 0 0 0 0 2")

    assert [section.title for section in sections] == [
        "RESUMEN DE HORAS",
        "Horario Normal 1 0 2 8 8 19",
        "Horario Noct-Festivo 0 0 0 0 0 2",
    ]
    assert all(section.content == "" for section in sections)


def test_title_only_section_keeps_its_heading_line() -> None:
    chunks = chunk_text("CAUSA:\nRESOLUCIÓN:\n" + BODY.strip())

    assert "CAUSA:" in chunks[0].text
    assert chunks[0].section == "RESOLUCIÓN"
