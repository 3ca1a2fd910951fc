"""Generation backends for incident answers."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Protocol, Sequence

from incidentrag.models import AggregatedResult

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT_SHORT = """Eres un asistente experto en análisis de actas de trabajo de HEXA Ingenieros.

Eres muy detallado cuando se trata de extraer información sobre:
- Horas de trabajo (horario normal, nocturno, extendido, desplazamientos)
- Detalles de proyectos y servicios realizados
- Equipos técnicos intervenidos
- Participantes en los trabajos
- Información de facturación

Instrucciones:
1. Responde SIEMPRE en español
2. Cuando se pregunte por horas, MUESTRA LOS NÚMEROS EXACTOS extraídos de los documentos
3. Si hay varias fuentes, resume los totales por cliente o proyecto
4. Si no hay información suficiente, dilo claramente
5. Cita SIEMPRE el número de acta cuando menciones información específica

Formatos permitidos:
- **negrita** para énfasis
- Listas con •
- Tablas simples si hay múltiples datos"""

SYSTEM_PROMPT_DETAILED = """Eres un asistente experto en análisis de actas de trabajo de HEXA Ingenieros.

Tu trabajo es extraer y resumir información técnica de las actas de trabajo. Cuando el usuario pregunta:

1. Sobre HORAS: Muestra siempre los números exactos de horas extraídas
   - Normal, Nocturno, Extendido, Desplazamiento y TOTAL
2. Sobre TRABAJOS/EQUIPOS: Lista los equipos específicos mencionados
   - Válvulas (GJK07AA003, YS22824), bombas (PWS3), tanques (T1264)
3. Sobre CLIENTES: Indica el nombre exacto del cliente
4. Sobre PARTICIPANTES: Nombra a las personas involucradas

Instrucciones obligatorias:
- Responde en español
- CITA el número de acta (ej: AC100554-I10) para cada dato que menciones
- Si hay varias actas, haz un RESUMEN CONJUNTO al final
- Si no hay datos, dilo honestamente

Formatos:
- Encabezados ## para secciones
- **negrita** para énfasis
- Tablas markdown para datos numéricos
- Listas con • para descripciones"""

USER_MESSAGE_TEMPLATE = """Pregunta del usuario: {question}

A continuación tienes el contexto extraído de las actas de HEXA Ingenieros con TODOS los datos de horas:

{context}

===================================================
INSTRUCCIONES IMPORTANTES:
1. El contexto ya incluye una TABLA DE RESUMEN con los totales, úsala
2. Si preguntas por HORAS, muestra una tabla markdown con los totales por acta
3. Calcula el TOTAL GENERAL sumando todas las horas
4. Cita siempre el número de acta (ej: AC100554-I10) para cada dato
5. NUNCA digas "Debo calcular", "Voy a ver", etc.; simplemente responde
6. Usa tablas markdown para mostrar datos

Responde ahora:"""

NO_RESULTS_ANSWER = (
    "No he encontrado información relevante en las actas para responder a tu pregunta. "
    "¿Podrías reformular la pregunta o añadir más documentos al sistema?"
)

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.I)
_REASONING_LINE = re.compile(
    r"^(?:Debo|Voy a|Vamos a|Calculando|Primero que|Revisando|Entiendo|Para responder|Basándome|El usuario"
    r"|Let me|Based on|I need to)\b",
    re.I,
)


def format_hours(value: float) -> str:
    return f"{value:g}"


def strip_reasoning(raw: str) -> str:
    """Drop chain-of-thought blocks and lines that narrate the model's own reasoning."""

    text = _THINK_BLOCK.sub("", raw or "")
    kept = [line for line in text.split("\n") if not _REASONING_LINE.match(line.strip())]
    return "\n".join(kept).strip()


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "Qwen/Qwen2.5-1.5B-Instruct"
    max_new_tokens: int = 500
    detailed_max_new_tokens: int = 2000
    temperature: float = 0.3
    use_model: bool = False
    device: str | None = None


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    def generate(
        self,
        *,
        question: str,
        context: str,
        sources: Sequence[AggregatedResult],
        detailed: bool = False,
    ) -> str:
        """Return a grounded answer for the supplied question and context."""


class TemplateGenerator:
    """Deterministic generator used for tests and offline environments."""

    def generate(
        self,
        *,
        question: str,
        context: str,
        sources: Sequence[AggregatedResult],
        detailed: bool = False,
    ) -> str:
        if not sources:
            return NO_RESULTS_ANSWER
        lines: List[str] = ["Según las actas analizadas:"]
        for result in sources:
            document = result.document
            label = document.incident_number
            if document.client:
                label += f" ({document.client})"
            detail = document.title
            hours = document.hours_summary
            if hours is not None and hours.total:
                detail += f": {format_hours(hours.total)}h totales"
            lines.append(f"• {label}: {detail}")
            if detailed and result.hits:
                excerpt = re.sub(r"\[Sección: [^\]]+\]\n?", "", result.hits[0].text)[:300].strip()
                lines.append(f"  {excerpt}")
        totals = [
            result.document.hours_summary.total
            for result in sources
            if result.document.hours_summary is not None and result.document.hours_summary.total
        ]
        if len(totals) > 1:
            lines.append(f"\n**Total: {format_hours(sum(totals))} horas**")
        return "\n".join(lines)


class ChatModelGenerator:
    """Generator that optionally calls an instruction-tuned chat model via Transformers."""

    def __init__(self, config: GenerationConfig | None = None, fallback: GenerationBackend | None = None) -> None:
        self._config = config or GenerationConfig()
        self._fallback = fallback or TemplateGenerator()
        self._tokenizer = None
        self._model = None
        if not self._config.use_model:
            LOGGER.info("ChatModelGenerator running in template-only mode.")
            return
        try:
            from transformers import AutoModelForCausalLM, AutoTokenizer

            self._tokenizer = AutoTokenizer.from_pretrained(self._config.model, trust_remote_code=True)
            self._model = AutoModelForCausalLM.from_pretrained(self._config.model, trust_remote_code=True)
            if self._tokenizer.pad_token is None and self._tokenizer.eos_token is not None:
                self._tokenizer.pad_token = self._tokenizer.eos_token
            if getattr(self._model.config, "pad_token_id", None) is None and self._tokenizer.pad_token_id is not None:
                self._model.config.pad_token_id = self._tokenizer.pad_token_id
            if self._config.device:
                self._model.to(self._config.device)
            LOGGER.info("Loaded generation model %s", self._config.model)
        except Exception as exc:  # pragma: no cover - defensive import
            LOGGER.warning("Falling back to template generator: %s", exc)
            self._tokenizer = None
            self._model = None

    def generate(
        self,
        *,
        question: str,
        context: str,
        sources: Sequence[AggregatedResult],
        detailed: bool = False,
    ) -> str:
        if not sources:
            return NO_RESULTS_ANSWER
        if self._tokenizer is None or self._model is None:
            return self._fallback.generate(question=question, context=context, sources=sources, detailed=detailed)
        import torch

        messages = self.build_messages(question=question, context=context, detailed=detailed)
        prompt = self._tokenizer.apply_chat_template(messages, tokenize=False, add_generation_prompt=True)
        tokenized = self._tokenizer(prompt, return_tensors="pt", padding=True)
        input_ids = tokenized.input_ids
        attention_mask = tokenized.attention_mask
        prompt_length = input_ids.shape[1]
        if self._config.device:
            input_ids = input_ids.to(self._config.device)
            attention_mask = attention_mask.to(self._config.device)
        max_new_tokens = self._config.detailed_max_new_tokens if detailed else self._config.max_new_tokens
        with torch.no_grad():
            output = self._model.generate(
                input_ids,
                attention_mask=attention_mask,
                max_new_tokens=max_new_tokens,
                temperature=self._config.temperature,
                do_sample=self._config.temperature > 0,
            )
        generated = self._tokenizer.decode(output[0][prompt_length:], skip_special_tokens=True)
        return strip_reasoning(generated)

    @staticmethod
    def build_messages(*, question: str, context: str, detailed: bool) -> list[dict[str, str]]:
        system_prompt = SYSTEM_PROMPT_DETAILED if detailed else SYSTEM_PROMPT_SHORT
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": USER_MESSAGE_TEMPLATE.format(question=question, context=context)},
        ]


def build_generator(config: GenerationConfig) -> GenerationBackend:
    if config.use_model:
        return ChatModelGenerator(config, fallback=TemplateGenerator())
    return TemplateGenerator()


__all__ = [
    "ChatModelGenerator",
    "GenerationBackend",
    "GenerationConfig",
    "NO_RESULTS_ANSWER",
    "SYSTEM_PROMPT_DETAILED",
    "SYSTEM_PROMPT_SHORT",
    "TemplateGenerator",
    "build_generator",
    "format_hours",
    "strip_reasoning",
]
