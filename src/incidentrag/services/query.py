"""Question answering over aggregated incident search results."""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass
from typing import List, Sequence
from uuid import NAMESPACE_URL, uuid5

from incidentrag.metrics.observability import PipelineMetrics, get_logger
from incidentrag.models import AggregatedResult, Answer, HoursSummary, SearchFilters
from incidentrag.services.generation import NO_RESULTS_ANSWER, GenerationBackend, TemplateGenerator, format_hours
from incidentrag.services.incidents import IncidentService

_SHORT_MONTHS = ("ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sept", "oct", "nov", "dic")
_SECTION_LABEL = re.compile(r"\[Sección: [^\]]+\]\n?")


def _hours_cell(value: float) -> str:
    return format_hours(value) if value else "-"


@dataclass(frozen=True)
class PromptBuilderConfig:
    """Configuration for context construction."""

    max_work_entries: int = 3
    work_description_chars: int = 100
    excerpt_chars: int = 500


class PromptBuilder:
    """Builds the per-incident context block handed to the generation backend."""

    def __init__(self, config: PromptBuilderConfig | None = None) -> None:
        self._config = config or PromptBuilderConfig()

    def build_context(self, results: Sequence[AggregatedResult]) -> str:
        if not results:
            return ""
        blocks = [self._incident_block(result) for result in results]
        context = "\n---\n\n".join(blocks) + "\n---\n\n"
        if len(results) > 1:
            context += self._hours_table(results)
        return context

    def _incident_block(self, result: AggregatedResult) -> str:
        document = result.document
        header = f"## Acta {document.incident_number}"
        if document.client:
            header += f" - {document.client}"
        if document.detected_at:
            detected = document.detected_at
            header += f" ({detected.day} {_SHORT_MONTHS[detected.month - 1]} {detected.year})"
        lines: List[str] = [header, ""]

        hours = document.hours_summary
        if hours is not None:
            lines.append("**HORAS DE TRABAJO:**")
            lines.append(f"- Normal: {format_hours(hours.normal)} horas")
            if hours.night:
                lines.append(f"- Nocturno: {format_hours(hours.night)} horas")
            if hours.extended:
                lines.append(f"- Extendido: {format_hours(hours.extended)} horas")
            if hours.travel:
                lines.append(f"- Desplazamiento: {format_hours(hours.travel)} horas")
            if hours.documentation:
                lines.append(f"- Documentación: {format_hours(hours.documentation)} horas")
            if hours.total:
                lines.append(f"- **TOTAL: {format_hours(hours.total)} horas**")
            if hours.billing_info:
                lines.append(f"- Facturación: {hours.billing_info}")
            lines.append("")

        if document.participants:
            names = ", ".join(participant.name for participant in document.participants)
            lines.extend([f"**Participantes:** {names}", ""])

        if document.work_entries:
            lines.append("**Trabajos realizados:**")
            for entry in document.work_entries[: self._config.max_work_entries]:
                title = entry.title or entry.date or "Trabajo"
                lines.append(f"- {title}: {entry.description[: self._config.work_description_chars]}...")
            lines.append("")

        if result.hits:
            excerpt = _SECTION_LABEL.sub("", result.hits[0].text)[: self._config.excerpt_chars]
            lines.append(f"**Extracto relevante:**\n{excerpt}...")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _hours_table(results: Sequence[AggregatedResult]) -> str:
        rows = [
            "## RESUMEN DE HORAS",
            "",
            "| Acta | Cliente | Horas Normales | Horas Nocturnas | Horas Desplazamiento | **TOTAL** |",
            "|------|---------|----------------|-----------------|---------------------|------------|",
        ]
        grand_total = normal_total = night_total = travel_total = 0.0
        for result in results:
            document = result.document
            hours = document.hours_summary or HoursSummary()
            rows.append(
                f"| {document.incident_number} | {document.client or '-'} "
                f"| {_hours_cell(hours.normal)} | {_hours_cell(hours.night)} "
                f"| {_hours_cell(hours.travel)} | **{_hours_cell(hours.total)}** |"
            )
            grand_total += hours.total
            normal_total += hours.normal
            night_total += hours.night
            travel_total += hours.travel
        rows.append("")
        rows.append(
            f"**TOTAL GENERAL: {format_hours(grand_total)} horas** ({format_hours(normal_total)} normales + "
            f"{format_hours(night_total)} nocturnas + {format_hours(travel_total)} desplazamiento)"
        )
        return "\n".join(rows) + "\n"


def suggest_follow_ups(results: Sequence[AggregatedResult]) -> List[str]:
    questions: List[str] = []
    clients = [result.document.client for result in results if result.document.client]
    if clients:
        questions.append(f"¿Qué otros trabajos se realizaron en {clients[0]}?")
    if any(result.document.hours_summary and result.document.hours_summary.total for result in results):
        questions.append("¿Cuál es el desglose de horas por tipo?")
    if any(result.document.work_entries for result in results):
        questions.append("¿Qué equipos fueron intervenidos?")
    return questions[:3]


class AnswerService:
    """Orchestrates incident search and answer generation for incoming questions."""

    def __init__(
        self,
        incidents: IncidentService,
        generator: GenerationBackend | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        self._incidents = incidents
        self._generator = generator or TemplateGenerator()
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._logger = get_logger("query")

    async def answer(
        self,
        question: str,
        *,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        detailed: bool = False,
    ) -> Answer:
        start = time.perf_counter()
        query_id = uuid5(NAMESPACE_URL, question).hex
        results = await self._incidents.search(question, filters, limit)
        retrieval_ms = (time.perf_counter() - start) * 1000
        if not results:
            self._logger.info("answer.no_results", question=question)
            return Answer(
                text=NO_RESULTS_ANSWER,
                sources=(),
                query_id=query_id,
                latency_ms=(time.perf_counter() - start) * 1000,
                retrieval_ms=retrieval_ms,
            )

        context = self._prompt_builder.build_context(results)
        generation_start = time.perf_counter()
        text = await asyncio.to_thread(
            self._generator.generate,
            question=question,
            context=context,
            sources=results,
            detailed=detailed,
        )
        generation_duration = time.perf_counter() - generation_start
        PipelineMetrics.observe_generation(generation_duration)
        self._logger.info(
            "generation.complete",
            question=question,
            duration_seconds=generation_duration,
            source_count=len(results),
            detailed=detailed,
        )
        return Answer(
            text=text,
            sources=tuple(results),
            query_id=query_id,
            latency_ms=(time.perf_counter() - start) * 1000,
            retrieval_ms=retrieval_ms,
            generation_ms=generation_duration * 1000,
            suggested_follow_up=tuple(suggest_follow_ups(results)),
        )


__all__ = ["AnswerService", "PromptBuilder", "PromptBuilderConfig", "suggest_follow_ups"]
