"""FastAPI application exposing the incident RAG services."""

from __future__ import annotations

import re
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, List, Sequence
from uuid import uuid4

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from incidentrag.api.schemas import (
    AgentQueryRequest,
    AgentQueryResponse,
    IncidentListResponse,
    IncidentModel,
    SearchRequest,
    SearchResponse,
    SearchResultModel,
    SourceModel,
    StatsResponse,
    TextIngestionRequest,
    UploadResponse,
)
from incidentrag.config import Settings, get_settings
from incidentrag.ingestion import IngestionError, UnsupportedFileTypeError
from incidentrag.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from incidentrag.services.factory import build_answer_service, build_incident_service
from incidentrag.services.incidents import IncidentNotFoundError, IncidentService
from incidentrag.services.query import AnswerService

_SECTION_LABEL = re.compile(r"\[Sección: [^\]]+\]\n?")


@dataclass(frozen=True)
class AppDependencies:
    incidents: IncidentService
    answers: AnswerService


def _build_dependencies(settings: Settings) -> AppDependencies:
    incidents = build_incident_service(settings)
    return AppDependencies(incidents=incidents, answers=build_answer_service(settings, incidents))


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await deps.incidents.initialize()
        try:
            yield
        finally:
            await deps.incidents.close()

    app = FastAPI(title="Incident RAG API", version="0.1.0", lifespan=lifespan)
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        provided = request.headers.get("X-API-Key")
        if provided != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    def _error_response(request: Request, status_code: int, event: str, detail: str) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error(event, correlation_id=correlation_id, detail=detail)
        return JSONResponse(status_code=status_code, content={"detail": detail, "correlation_id": correlation_id})

    @app.exception_handler(UnsupportedFileTypeError)
    async def handle_unsupported_file(request: Request, exc: UnsupportedFileTypeError) -> JSONResponse:
        return _error_response(request, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "ingestion.unsupported", str(exc))

    @app.exception_handler(IngestionError)
    async def handle_ingestion_error(request: Request, exc: IngestionError) -> JSONResponse:
        return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "ingestion.error", str(exc))

    @app.exception_handler(IncidentNotFoundError)
    async def handle_not_found(request: Request, exc: IncidentNotFoundError) -> JSONResponse:
        return _error_response(request, status.HTTP_404_NOT_FOUND, "incidents.not_found", str(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_incident_service(dep: AppDependencies = Depends(get_dependencies)) -> IncidentService:
        return dep.incidents

    def get_answer_service(dep: AppDependencies = Depends(get_dependencies)) -> AnswerService:
        return dep.answers

    @app.get("/incidents", response_model=IncidentListResponse)
    async def list_incidents(service: IncidentService = Depends(get_incident_service)) -> IncidentListResponse:
        documents = await service.get_all()
        return IncidentListResponse(
            incidents=[IncidentModel.from_domain(document) for document in documents],
            count=len(documents),
        )

    @app.get("/incidents/{incident_id}", response_model=IncidentModel)
    async def get_incident(incident_id: str, service: IncidentService = Depends(get_incident_service)) -> IncidentModel:
        document = await service.get_by_id(incident_id)
        if document is None:
            raise IncidentNotFoundError(f"Incident not found: {incident_id}")
        return IncidentModel.from_domain(document)

    @app.delete("/incidents/{incident_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_incident(
        incident_id: str,
        service: IncidentService = Depends(get_incident_service),
        _auth: None = Depends(require_api_key),
    ) -> Response:
        await service.delete(incident_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/incidents/text", response_model=IncidentModel, status_code=status.HTTP_201_CREATED)
    async def ingest_text(
        payload: TextIngestionRequest,
        service: IncidentService = Depends(get_incident_service),
        _auth: None = Depends(require_api_key),
    ) -> IncidentModel:
        if not payload.text.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No non-empty text provided")
        document = await service.ingest(payload.text, payload.filename)
        return IncidentModel.from_domain(document)

    @app.post("/incidents/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
    async def upload_reports(
        files: Sequence[UploadFile] = File(...),
        service: IncidentService = Depends(get_incident_service),
        _auth: None = Depends(require_api_key),
    ) -> UploadResponse:
        if not files:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")
        size_limit = settings.max_upload_size_mb * 1024 * 1024
        allowed = set(settings.allowed_extensions_tuple)
        ingested: List[IncidentModel] = []
        with tempfile.TemporaryDirectory() as tmpdir:
            for upload in files:
                filename = Path(upload.filename or f"upload-{uuid4().hex}").name
                suffix = Path(filename).suffix.lower()
                if suffix not in allowed:
                    await upload.close()
                    raise UnsupportedFileTypeError(f"Unsupported file type: {suffix or 'unknown'}")
                destination = Path(tmpdir) / filename
                bytes_written = 0
                with destination.open("wb") as out_f:
                    while True:
                        block = await upload.read(1024 * 1024)
                        if not block:
                            break
                        bytes_written += len(block)
                        if bytes_written > size_limit:
                            await upload.close()
                            raise HTTPException(
                                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                                detail=f"File too large (>{settings.max_upload_size_mb}MB): {filename}",
                            )
                        out_f.write(block)
                await upload.close()
                if bytes_written == 0:
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File is empty: {filename}")
                document = await service.ingest_file(destination)
                ingested.append(IncidentModel.from_domain(document))
        return UploadResponse(incidents=ingested)

    @app.post("/search", response_model=SearchResponse)
    async def search_incidents(
        payload: SearchRequest,
        service: IncidentService = Depends(get_incident_service),
    ) -> SearchResponse:
        filters = payload.filters.to_domain() if payload.filters else None
        results = await service.search(payload.query, filters, payload.limit)
        return SearchResponse(
            results=[SearchResultModel.from_domain(result) for result in results],
            count=len(results),
        )

    @app.post("/agent/query", response_model=AgentQueryResponse)
    async def query_agent(
        payload: AgentQueryRequest,
        request: Request,
        service: AnswerService = Depends(get_answer_service),
        _auth: None = Depends(require_api_key),
    ) -> AgentQueryResponse:
        filters = payload.filters.to_domain() if payload.filters else None
        answer = await service.answer(payload.question, filters=filters, limit=payload.limit, detailed=payload.detailed)
        sources = [
            SourceModel(
                incident_id=result.document.id,
                incident_number=result.document.incident_number,
                title=result.document.title,
                client=result.document.client,
                score=result.score,
                relevant_text="\n\n".join(_SECTION_LABEL.sub("", hit.text)[:200] for hit in result.hits),
            )
            for result in answer.sources
        ]
        return AgentQueryResponse(
            query_id=answer.query_id,
            answer=answer.text,
            sources=sources,
            suggested_follow_up=list(answer.suggested_follow_up),
            latency_ms=answer.latency_ms,
            retrieval_ms=answer.retrieval_ms,
            generation_ms=answer.generation_ms,
            trace_id=getattr(request.state, "correlation_id", None),
        )

    @app.get("/stats", response_model=StatsResponse)
    async def corpus_stats(service: IncidentService = Depends(get_incident_service)) -> StatsResponse:
        return StatsResponse.from_domain(await service.stats())

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from incidentrag import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    return app


app = create_app()
