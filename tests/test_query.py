from __future__ import annotations

from datetime import date
from typing import Sequence

import pytest

from incidentrag.models import AggregatedResult, HoursSummary, IncidentDocument, SearchHit
from incidentrag.services.generation import NO_RESULTS_ANSWER, ChatModelGenerator, TemplateGenerator, strip_reasoning
from incidentrag.services.incidents import IncidentService
from incidentrag.services.query import AnswerService, PromptBuilder, suggest_follow_ups


def _result(number: str, total: float, client: str | None = "PPG Ibérica") -> AggregatedResult:
    document = IncidentDocument(
        id=number.lower(),
        incident_number=number,
        title=f"Intervención {number}",
        client=client,
        detected_at=date(2024, 3, 15),
        hours_summary=HoursSummary(normal=total - 2, night=2, total=total),
    )
    hit = SearchHit(
        chunk_id=f"{number.lower()}-0",
        document_id=number.lower(),
        text="[Sección: CAUSA]\nCAUSA: fallo de comunicación",
        score=0.8,
        section="CAUSA",
    )
    return AggregatedResult(document=document, hits=(hit,), score=0.8)


class ExplodingGenerator:
    def generate(self, **kwargs) -> str:
        raise AssertionError("generator must not be called without sources")


class RecordingGenerator:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def generate(self, *, question: str, context: str, sources: Sequence[AggregatedResult], detailed: bool = False) -> str:
        self.calls.append({"question": question, "context": context, "detailed": detailed})
        return "respuesta"


@pytest.mark.asyncio
async def test_no_results_skips_generation(incident_service: IncidentService) -> None:
    await incident_service.initialize()
    try:
        service = AnswerService(incident_service, generator=ExplodingGenerator())

        answer = await service.answer("¿Cuántas horas se invirtieron?")

        assert answer.text == NO_RESULTS_ANSWER
        assert list(answer.sources) == []
        assert answer.generation_ms is None
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_answer_passes_context_to_generator(incident_service: IncidentService, report_text: str) -> None:
    await incident_service.initialize()
    try:
        await incident_service.ingest(report_text, "AC2405.pdf")
        generator = RecordingGenerator()
        service = AnswerService(incident_service, generator=generator)

        answer = await service.answer("¿Qué se hizo en PPG?", detailed=True)
        repeated = await service.answer("¿Qué se hizo en PPG?")

        assert answer.text == "respuesta"
        assert answer.query_id == repeated.query_id
        assert [result.document.incident_number for result in answer.sources] == ["AC2405"]
        assert generator.calls[0]["detailed"] is True
        assert "## Acta AC2405 - PPG Ibérica (15 mar 2024)" in generator.calls[0]["context"]
        assert "¿Qué otros trabajos se realizaron en PPG Ibérica?" in answer.suggested_follow_up
    finally:
        await incident_service.close()


def test_context_includes_hours_table_for_several_results() -> None:
    context = PromptBuilder().build_context([_result("AC1", 10), _result("AC2", 5.5, client=None)])

    assert "**HORAS DE TRABAJO:**" in context
    assert "- Nocturno: 2 horas" in context
    assert "## RESUMEN DE HORAS" in context
    assert "| AC2 | - | 3.5 | 2 | - | **5.5** |" in context
    assert "**TOTAL GENERAL: 15.5 horas** (11.5 normales + 4 nocturnas + 0 desplazamiento)" in context
    assert "[Sección:" not in context


def test_single_result_has_no_summary_table() -> None:
    context = PromptBuilder().build_context([_result("AC1", 10)])

    assert "## RESUMEN DE HORAS" not in context
    assert PromptBuilder().build_context([]) == ""


def test_template_generator_totals_hours() -> None:
    text = TemplateGenerator().generate(question="q", context="", sources=[_result("AC1", 10), _result("AC2", 5.5)])

    assert text.startswith("Según las actas analizadas:")
    assert "• AC1 (PPG Ibérica): Intervención AC1: 10h totales" in text
    assert text.endswith("**Total: 15.5 horas**")


def test_template_generator_without_sources() -> None:
    assert TemplateGenerator().generate(question="q", context="", sources=[]) == NO_RESULTS_ANSWER


def test_chat_model_generator_falls_back_to_template() -> None:
    generator = ChatModelGenerator()
    sources = [_result("AC1", 10)]

    assert generator.generate(question="q", context="", sources=sources) == TemplateGenerator().generate(
        question="q", context="", sources=sources
    )


def test_strip_reasoning() -> None:
    raw = "<think>calculo interno</think>\nDebo sumar las horas.\nEl acta AC1 suma 10 horas."

    assert strip_reasoning(raw) == "El acta AC1 suma 10 horas."


def test_follow_ups_are_capped() -> None:
    questions = suggest_follow_ups([_result("AC1", 10)])

    assert questions == [
        "¿Qué otros trabajos se realizaron en PPG Ibérica?",
        "¿Cuál es el desglose de horas por tipo?",
    ]
