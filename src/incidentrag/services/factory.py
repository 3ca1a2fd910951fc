"""Construction of the service graph from :class:`~incidentrag.config.Settings`."""

from __future__ import annotations

from incidentrag.chunking import ChunkingConfig, SectionChunker
from incidentrag.config import Settings
from incidentrag.embeddings import ChromaChunkIndex, EmbeddingConfig, build_chroma_client, build_embedding_backend
from incidentrag.ingestion import LoaderConfig, PdfTextLoader
from incidentrag.retrieval import RetrievalConfig
from incidentrag.services.generation import GenerationConfig, build_generator
from incidentrag.services.incidents import IncidentService
from incidentrag.services.query import AnswerService
from incidentrag.storage import IncidentStore


def build_incident_service(settings: Settings) -> IncidentService:
    embedder = build_embedding_backend(
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            use_model=settings.use_model_embeddings,
            normalize=True,
        ),
    )
    chroma_client = build_chroma_client(
        host=settings.chroma_host,
        port=settings.chroma_port,
        ssl=settings.chroma_ssl,
        persist_directory=settings.chroma_persist_dir,
    )
    return IncidentService(
        store=IncidentStore.from_url(settings.database_url, echo=settings.database_echo),
        index=ChromaChunkIndex(collection_name=settings.chroma_collection, client=chroma_client),
        embedder=embedder,
        chunker=SectionChunker(ChunkingConfig(chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap)),
        loader=PdfTextLoader(LoaderConfig(allowed_extensions=settings.allowed_extensions_tuple)),
        retrieval_config=RetrievalConfig(limit=settings.search_limit, max_limit=settings.max_search_limit),
    )


def build_answer_service(settings: Settings, incidents: IncidentService) -> AnswerService:
    generator = build_generator(
        GenerationConfig(
            model=settings.generator_model,
            max_new_tokens=settings.generator_max_new_tokens,
            detailed_max_new_tokens=settings.generator_detailed_max_new_tokens,
            temperature=settings.generator_temperature,
            use_model=settings.use_model_generator,
        ),
    )
    return AnswerService(incidents, generator=generator)


__all__ = ["build_answer_service", "build_incident_service"]
