"""
Pydantic models for API request and response schemas.

These models provide automatic validation and OpenAPI documentation.
"""

from uuid import UUID

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    """Request schema for the /search endpoint."""

    query: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="Text to look for (case-insensitive substring)",
        examples=["quarterly revenue"],
    )
    scope: list[str] | None = Field(
        default=None,
        description="File identities to search; all indexed files when omitted",
    )


class SearchResultSchema(BaseModel):
    """Schema for one retrieved chunk."""

    file_id: str = Field(description="Identity of the owning file")
    file_name: str = Field(description="Display name of the owning file", examples=["report.pdf"])
    chunk_index: int = Field(ge=0, description="Sequence index within the file")
    text: str = Field(description="Chunk text")


class SearchResponse(BaseModel):
    """Response schema for the /search endpoint."""

    results: list[SearchResultSchema] = Field(default_factory=list)


class ChatRequest(BaseModel):
    """Request schema for the /chat endpoint."""

    message: str = Field(
        ...,
        min_length=1,
        max_length=10000,
        description="User message",
        examples=["What was revenue in Q3?"],
    )
    attachments: list[str] = Field(
        default_factory=list,
        description="Paths of files to answer from instead of searching the index",
    )
    scope: list[str] | None = Field(
        default=None,
        description="File identities searched when there are no attachments; all indexed files when omitted",
    )
    project_id: UUID | None = Field(
        default=None,
        description="Project whose library is used instead of the active project",
    )


class ChatResponse(BaseModel):
    """Response schema for the /chat endpoint."""

    answer: str = Field(description="Assistant reply with its action tag removed")
    sources: list[str] = Field(default_factory=list, description="Files the answer was built from")
    suggested_action: str | None = Field(default=None, examples=["SUMMARIZE_DOCUMENT"])
    title: str = Field(description="Session title derived from the message")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "answer": "According to 'report.pdf', Q3 revenue was $4.2M.",
                    "sources": ["/home/me/docs/report.pdf"],
                    "suggested_action": "DRAFT_EMAIL",
                    "title": "What was revenue in Q3?",
                }
            ]
        }
    }


class ProjectSchema(BaseModel):
    """Schema for a project summary."""

    id: UUID
    name: str
    is_active: bool
    file_count: int = Field(ge=0)


class HealthResponse(BaseModel):
    """Response schema for the /health endpoint."""

    status: str = Field(
        description="Health status",
        examples=["healthy", "degraded", "unhealthy"],
    )
    version: str = Field(
        description="API version",
    )
    indexed_files: int = Field(
        description="Number of files in the index",
    )
    mode: str = Field(
        description="Backend family calls are routed to",
        examples=["remote", "local"],
    )


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    error: str = Field(
        description="Error code",
        examples=["not_found", "persistence_failure", "corrupt_record"],
    )
    message: str = Field(
        description="Human-readable error message",
    )
