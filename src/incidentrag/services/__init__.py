"""Service layer orchestrations for incident RAG."""

from .generation import ChatModelGenerator, GenerationBackend, GenerationConfig, TemplateGenerator, build_generator
from .incidents import FileIngestionResult, IncidentNotFoundError, IncidentService, IncidentStats, render_incident_text
from .query import AnswerService, PromptBuilder, PromptBuilderConfig

__all__ = [
    "AnswerService",
    "ChatModelGenerator",
    "FileIngestionResult",
    "GenerationBackend",
    "GenerationConfig",
    "IncidentNotFoundError",
    "IncidentService",
    "IncidentStats",
    "PromptBuilder",
    "PromptBuilderConfig",
    "TemplateGenerator",
    "build_generator",
    "render_incident_text",
]
