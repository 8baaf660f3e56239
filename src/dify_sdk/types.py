"""Type definitions for Dify SDK."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from .errors import ConfigurationError
from .routes import CredentialScope

T = TypeVar("T")

OFFICIAL_API_URL = "https://api.dify.ai/v1"


@dataclass(frozen=True)
class DifyConfig:
    """Configuration for connecting to a Dify API server."""

    base_url: str = OFFICIAL_API_URL
    """Base URL of the API, including the version prefix"""

    connect_timeout: float = 15.0
    """Connect timeout in seconds, applied to every request"""

    read_timeout: float = 30.0
    """Read timeout in seconds, applied to every request"""

    stream_buffer_size: int = 64
    """Number of decoded events buffered per stream before the reader blocks it"""

    auto_generate_name: bool = False
    """Ask the server to auto-generate conversation names"""

    def __post_init__(self) -> None:
        if self.stream_buffer_size < 1:
            raise ConfigurationError(
                "stream_buffer_size must be positive", "INVALID_CONFIG"
            )


class CredentialStore:
    """API keys per credential scope.

    Keys may be replaced at any time; a request reads the current key once,
    when it is dispatched.
    """

    def __init__(self, chat: str | None = None, knowledge_base: str | None = None):
        self._keys: dict[CredentialScope, str | None] = {
            CredentialScope.CHAT: chat,
            CredentialScope.KNOWLEDGE_BASE: knowledge_base,
        }

    def get(self, scope: CredentialScope) -> str:
        key = self._keys.get(scope)
        if not key:
            raise ConfigurationError(
                f"No API key configured for {scope.value} endpoints",
                "MISSING_CREDENTIAL",
            )
        return key

    def update(self, scope: CredentialScope, key: str | None) -> None:
        self._keys[scope] = key


# chat


class Message(BaseModel):
    """A chat message with its answer."""

    id: str
    conversation_id: str | None = None
    parent_message_id: str | None = None
    inputs: dict[str, Any] | None = None
    query: str | None = None
    answer: str | None = None
    message_files: Any = None
    feedback: Any = None
    retriever_resources: Any = None
    created_at: datetime | None = None


class PagedResult(BaseModel, Generic[T]):
    """One page of a listing endpoint."""

    data: list[T]
    has_more: bool = False
    limit: int = 0
    total: int | None = None
    page: int | None = None


class Conversation(BaseModel):
    id: str
    name: str | None = None
    inputs: dict[str, Any] | None = None
    messages: list[Message] | None = None
    status: str | None = None
    introduction: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Document(BaseModel):
    """A document stored in a knowledge base."""

    id: str
    position: int | None = None
    data_source_type: str | None = None
    data_source_info: Any = None
    dataset_process_rule_id: str | None = None
    name: str | None = None
    created_from: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    tokens: int | None = None
    indexing_status: str | None = None
    error: Any = None
    enabled: bool | None = None
    disabled_at: Any = None
    disabled_by: Any = None
    archived: bool | None = None


# knowledge base


class KnowledgeBase(BaseModel):
    id: str
    name: str | None = None
    description: str | None = None
    permission: str | None = None
    data_source_type: str | None = None
    indexing_technique: str | None = None
    app_count: int | None = None
    document_count: int | None = None
    word_count: int | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None


class PreProcessingRule(BaseModel):
    id: str
    enabled: bool


class Segmentation(BaseModel):
    separator: str | None = None
    """Custom segment separator, the server defaults to a newline"""

    max_tokens: int | None = None


class SubchunkSegmentation(BaseModel):
    separator: str | None = None
    max_tokens: int | None = None
    """Must be smaller than the parent segment length"""

    chunk_overlap: int | None = None


class Rules(BaseModel):
    pre_processing_rules: list[PreProcessingRule] | None = None
    segmentation: Segmentation | None = None
    parent_mode: str | None = None
    """Parent chunk recall mode: full-doc or paragraph"""

    subchunk_segmentation: SubchunkSegmentation | None = None


class DocProcessRule(BaseModel):
    """Cleaning and segmentation rules for a document."""

    mode: str = "automatic"
    """automatic or custom; rules are only read in custom mode"""

    rules: Rules | None = None


class RerankingModel(BaseModel):
    reranking_provider_name: str | None = None
    reranking_model_name: str | None = None


class RetrievalModel(BaseModel):
    search_method: str | None = None
    """hybrid_search, semantic_search or full_text_search"""

    reranking_enable: bool | None = None
    reranking_model: RerankingModel | None = None
    top_k: int | None = None
    score_threshold_enabled: bool | None = None
    score_threshold: float | None = None


class DocCreateParam(BaseModel):
    """Body for creating a document from text."""

    name: str
    text: str
    doc_type: str | None = None
    doc_metadata: dict[str, Any] | None = None
    """Required when doc_type is set"""

    indexing_technique: str | None = None
    """high_quality or economy"""

    doc_form: str = "text_model"
    doc_language: str = "English"
    process_rule: DocProcessRule = Field(default_factory=DocProcessRule)
    retrieval_model: RetrievalModel | None = None
    """Required on the first upload to a knowledge base"""

    embedding_model: str | None = None
    embedding_model_provider: str | None = None


class DocUpdateParam(BaseModel):
    """Body for updating a document from text."""

    name: str | None = None
    text: str | None = None
    process_rule: DocProcessRule | None = None


class DocResult(BaseModel):
    document: Document
    batch: str | None = None


class RetrieveQuery(BaseModel):
    content: str


class SegmentDocument(BaseModel):
    id: str
    data_source_type: str | None = None
    name: str | None = None
    doc_type: Any = None


class Segment(BaseModel):
    id: str
    position: int | None = None
    document_id: str | None = None
    content: str | None = None
    answer: Any = None
    word_count: int | None = None
    tokens: int | None = None
    keywords: list[str] | None = None
    index_node_id: str | None = None
    index_node_hash: str | None = None
    hit_count: int | None = None
    enabled: bool | None = None
    disabled_at: Any = None
    disabled_by: Any = None
    status: str | None = None
    created_by: str | None = None
    created_at: int | None = None
    indexing_at: int | None = None
    completed_at: int | None = None
    error: Any = None
    stopped_at: Any = None
    document: SegmentDocument | None = None


class Record(BaseModel):
    segment: Segment
    score: float | None = None
    tsne_position: Any = None


class RetrieveResult(BaseModel):
    """Hits returned by a knowledge base retrieval test."""

    query: RetrieveQuery
    records: list[Record]


class RerankingMode(BaseModel):
    reranking_provider_name: str | None = None
    reranking_model_name: str | None = None


class RetrieveRetrievalModel(BaseModel):
    search_method: str | None = None
    """keyword_search, semantic_search, full_text_search or hybrid_search"""

    reranking_enable: bool | None = None
    reranking_mode: RerankingMode | None = None
    weights: float | None = None
    """Weight of semantic search in hybrid mode"""

    top_k: int | None = None
    score_threshold_enabled: bool | None = None
    score_threshold: float | None = None


class RetrieveKnowledgeParam(BaseModel):
    """Body for a knowledge base retrieval."""

    query: str
    retrieval_model: RetrieveRetrievalModel | None = None


# Internal response types for parsing API responses
# These are not exported in __init__.py but are used across package modules


class ApiErrorResponse(BaseModel):
    """Error document returned with non-200 responses (internal)."""

    code: str
    message: str
    status: int | None = None


class StopResponse(BaseModel):
    """Response from the stop-generation endpoint (internal)."""

    result: str
