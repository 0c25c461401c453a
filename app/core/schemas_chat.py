"""Schemas for the regulations chat pipeline."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ProjectScope(BaseModel):
    """Validated (project, user) pair a scoped request may read."""

    project_id: str
    user_id: str
    name: str | None = None
    description: str | None = None
    label: str | None = None
    status: str | None = None

    @property
    def storage_prefix(self) -> str:
        """Storage path prefix every project document must live under."""
        return f"{self.user_id}/{self.project_id}/"


class ProjectDocument(BaseModel):
    """Row from the project_documents table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    file_name: str
    file_path: str
    file_type: str
    file_size: int = 0
    user_id: str
    project_id: str


class ConversationRecord(BaseModel):
    """Row from the conversations table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = "Untitled conversation"
    created_at: str
    project_id: str | None = None
    user_id: str


class ConversationMessage(BaseModel):
    """Row from the messages table."""

    model_config = ConfigDict(extra="ignore")

    content: str
    role: Literal["user", "assistant"]
    created_at: str


class MatchImage(BaseModel):
    """Diagram reference attached to an indexed regulation chunk."""

    model_config = ConfigDict(extra="ignore")

    url: str
    title: str | None = None
    page: int | None = None


class ChunkMetadata(BaseModel):
    """Metadata stored alongside each regulation vector."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    text: str = ""
    source: str | None = None
    url: str | None = None
    last_updated: str | None = Field(default=None, alias="lastUpdated")
    section: str | None = None
    images: list[MatchImage] = Field(default_factory=list)


class RetrievalMatch(BaseModel):
    """Single nearest-neighbour hit returned by the vector index."""

    model_config = ConfigDict(extra="ignore")

    id: str
    score: float
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class RegulationImage(BaseModel):
    """Image returned to the client next to an answer."""

    url: str
    title: str
    source: str


class DocumentAnalysis(BaseModel):
    """Text produced for one project document."""

    document_id: str
    file_name: str
    content: str
    degraded: bool = False


class ChatAnswer(BaseModel):
    """Successful chat response body."""

    model_config = ConfigDict(populate_by_name=True)

    response: str
    images: list[RegulationImage] = Field(default_factory=list)
    documents_analyzed: int | None = Field(default=None, alias="documentsAnalyzed")
    conversations_referenced: Literal["Available", "None"] | None = Field(
        default=None, alias="conversationsReferenced"
    )
    project_id: str | None = Field(default=None, alias="projectId")

    def to_response(self) -> dict[str, Any]:
        """Serialise with camelCase keys, dropping absent optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ChatErrorResponse(BaseModel):
    """Failure body returned by the chat endpoint."""

    error: str
    details: str
    images: list[RegulationImage] = Field(default_factory=list)
