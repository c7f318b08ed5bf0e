"""
FastAPI application for the omnirag REST API.

Run with:
    uvicorn omnirag.api.main:app --reload

Or use the CLI:
    omnirag serve
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnirag import __version__
from omnirag.api.models import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    ProjectSchema,
    SearchRequest,
    SearchResponse,
    SearchResultSchema,
)
from omnirag.chat.service import new_session
from omnirag.config import Settings, get_settings
from omnirag.errors import OmniError
from omnirag.library.projects import ProjectNotFound
from omnirag.logging_setup import configure_logging
from omnirag.retrieval.indexer import file_identity
from omnirag.services import Services, build_services

logger = logging.getLogger(__name__)


def create_app(
    services: Optional[Services] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Browser origins are refused unless listed in ``api_cors_origins``: the
    server reads local files on behalf of its callers.

    Args:
        services: Pre-built components (tests); built from settings on
            startup when omitted
        settings: Settings for CORS and startup; taken from services, or
            loaded from the environment, when omitted

    Returns:
        Configured FastAPI app instance
    """
    if settings is None:
        settings = services.settings if services is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        if owned:
            configure_logging(settings.log_level)
            logger.info("Initializing omnirag services...")
            app.state.services = build_services(settings)
        else:
            app.state.services = services

        yield

        if owned:
            logger.info("Shutting down omnirag...")
            app.state.services.close()

    app = FastAPI(
        title="omnirag",
        description="Local document indexing, retrieval and LLM routing",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(OmniError)
    async def omni_error_handler(request: Request, exc: OmniError) -> JSONResponse:
        logger.error(f"{request.url.path} failed ({exc.kind}): {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error=exc.kind, message=exc.message).model_dump(),
        )

    app.include_router(router)
    return app


def get_services(request: Request) -> Services:
    return request.app.state.services


router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """Health check with index size and routing mode."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        indexed_files=len(services.store.list_files()),
        mode=services.router.mode().value,
    )


@router.post("/search", response_model=SearchResponse, tags=["Retrieval"])
async def search_endpoint(
    request: SearchRequest,
    services: Services = Depends(get_services),
) -> SearchResponse:
    """
    Search indexed chunks.

    Matches are case-insensitive substrings; on a miss the first chunks of
    the scoped files are returned as a preview. An empty scope returns
    nothing.
    """
    scope = request.scope
    if scope is None:
        scope = [f.file_id for f in services.store.list_files()]
    results = services.retriever.search(request.query, scope)
    return SearchResponse(
        results=[
            SearchResultSchema(
                file_id=r.file_id,
                file_name=r.file_name,
                chunk_index=r.chunk_index,
                text=r.text,
            )
            for r in results
        ]
    )


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={500: {"model": ErrorResponse, "description": "Storage failure"}},
    tags=["Chat"],
)
async def chat_endpoint(
    request: ChatRequest,
    services: Services = Depends(get_services),
) -> ChatResponse:
    """
    Answer one message in a fresh session.

    Provider failures are reported in the answer text rather than as an
    HTTP error, the same way the chat service reports them. Attachments
    must be indexed files or lie under one of ``api_attachment_roots``.
    """
    attachments = [Path(p) for p in request.attachments]
    refused = [str(p) for p in attachments if not _attachment_allowed(p, services)]
    if refused:
        logger.warning(f"Refused chat attachments: {refused}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "message": f"Attachments not allowed: {', '.join(refused)}"},
        )

    scope = request.scope
    if scope is None:
        scope = [f.file_id for f in services.store.list_files()]
    session = new_session(attached_files=scope)
    session.attached_project_id = request.project_id

    reply = await services.chat.send_message(
        session,
        request.message,
        attachments=attachments,
    )
    return ChatResponse(
        answer=reply.content,
        sources=reply.sources or [],
        suggested_action=reply.suggested_action,
        title=session.title,
    )


def _attachment_allowed(path: Path, services: Services) -> bool:
    resolved = Path(file_identity(path))
    if services.store.lookup_by_identity(str(resolved)) is not None:
        return True
    return any(resolved.is_relative_to(root) for root in services.settings.api_attachment_roots)


@router.get("/projects", response_model=list[ProjectSchema], tags=["Library"])
async def list_projects(services: Services = Depends(get_services)) -> list[ProjectSchema]:
    return [
        ProjectSchema(id=p.id, name=p.name, is_active=p.is_active, file_count=len(p.files))
        for p in services.library.projects
    ]


@router.post(
    "/projects/{project_id}/activate",
    response_model=ProjectSchema,
    responses={404: {"model": ErrorResponse, "description": "Unknown project"}},
    tags=["Library"],
)
async def activate_project(
    project_id: UUID,
    services: Services = Depends(get_services),
) -> ProjectSchema:
    """Make a project the single active one."""
    try:
        services.library.set_active_project(project_id)
    except ProjectNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": f"Project {project_id} not found"},
        )
    project = services.library.get_project(project_id)
    return ProjectSchema(
        id=project.id,
        name=project.name,
        is_active=project.is_active,
        file_count=len(project.files),
    )


# Create app instance
app = create_app()
