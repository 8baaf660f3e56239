"""Dify SDK: async client for the Dify chat and knowledge base APIs."""

from .client import DifyClient
from .errors import (
    ConfigurationError,
    DecodeError,
    DifyError,
    ErrorKind,
    StatusError,
    TransportError,
)
from .routes import CredentialScope, Route
from .stream import EventStream, StreamScheduler
from .transport import DeferredCloseResponse, RequestDispatcher
from .types import (
    OFFICIAL_API_URL,
    Conversation,
    CredentialStore,
    DifyConfig,
    DocCreateParam,
    DocProcessRule,
    DocResult,
    DocUpdateParam,
    Document,
    KnowledgeBase,
    Message,
    PagedResult,
    RetrievalModel,
    RetrieveKnowledgeParam,
    RetrieveResult,
    RetrieveRetrievalModel,
)

__all__ = [
    "OFFICIAL_API_URL",
    "ConfigurationError",
    "Conversation",
    "CredentialScope",
    "CredentialStore",
    "DecodeError",
    "DeferredCloseResponse",
    "DifyClient",
    "DifyConfig",
    "DifyError",
    "DocCreateParam",
    "DocProcessRule",
    "DocResult",
    "DocUpdateParam",
    "Document",
    "ErrorKind",
    "EventStream",
    "KnowledgeBase",
    "Message",
    "PagedResult",
    "RequestDispatcher",
    "RetrievalModel",
    "RetrieveKnowledgeParam",
    "RetrieveResult",
    "RetrieveRetrievalModel",
    "Route",
    "StatusError",
    "StreamScheduler",
    "TransportError",
]
