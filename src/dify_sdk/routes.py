"""Route table for the Dify REST API."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from string import Formatter
from urllib.parse import urlencode

from .errors import ConfigurationError


class CredentialScope(str, Enum):
    """API family a route belongs to; each family has its own API key."""

    CHAT = "chat"
    KNOWLEDGE_BASE = "knowledge_base"


@dataclass(frozen=True)
class Route:
    """An API endpoint: HTTP method, URL template and credential scope.

    URL templates use positional ``{}`` placeholders.
    """

    method: str
    url_template: str
    scope: CredentialScope

    @property
    def placeholder_count(self) -> int:
        return sum(
            1
            for _, field, _, _ in Formatter().parse(self.url_template)
            if field is not None
        )

    def format(self, *args: str) -> str:
        """Substitute positional arguments into the URL template.

        Raises:
            ConfigurationError: If the argument count does not match the template
        """
        expected = self.placeholder_count
        if len(args) != expected:
            raise ConfigurationError(
                f"Route {self.method} {self.url_template} expects {expected} "
                f"argument(s), got {len(args)}",
                "INVALID_ROUTE_ARGS",
            )
        path = self.url_template.format(*args)
        # Query-carrying routes with no parameters
        if path.endswith("?"):
            path = path[:-1]
        return path


def build_query(params: Mapping[str, object]) -> str:
    """Join query parameters as ``k1=v1&k2=v2``, dropping None values."""
    return urlencode({k: v for k, v in params.items() if v is not None})


# chat
APP_PARAMETERS = Route("GET", "/parameters", CredentialScope.CHAT)
APP_INFO = Route("GET", "/info", CredentialScope.CHAT)
FEEDBACK = Route("POST", "/messages/{}/feedbacks", CredentialScope.CHAT)
STOP_GENERATION = Route("POST", "/chat-messages/{}/stop", CredentialScope.CHAT)
CREATE_CHAT_MESSAGE = Route("POST", "/chat-messages", CredentialScope.CHAT)
GET_CONVERSATION_MESSAGES = Route("GET", "/messages?{}", CredentialScope.CHAT)
GET_CONVERSATIONS = Route("GET", "/conversations?{}", CredentialScope.CHAT)
RENAME_CONVERSATION = Route("POST", "/conversations/{}/name", CredentialScope.CHAT)
DELETE_CONVERSATION = Route("DELETE", "/conversations/{}", CredentialScope.CHAT)

# knowledge base
GET_DATASETS = Route("GET", "/datasets?{}", CredentialScope.KNOWLEDGE_BASE)
CREATE_DOC_TXT = Route(
    "POST", "/datasets/{}/document/create-by-text", CredentialScope.KNOWLEDGE_BASE
)
UPDATE_DOC_TXT = Route(
    "POST",
    "/datasets/{}/documents/{}/update-by-text",
    CredentialScope.KNOWLEDGE_BASE,
)
GET_DOCUMENTS = Route("GET", "/datasets/{}/documents?{}", CredentialScope.KNOWLEDGE_BASE)
RETRIEVE_KNOWLEDGE = Route("POST", "/datasets/{}/retrieve", CredentialScope.KNOWLEDGE_BASE)
DELETE_DOCUMENT = Route(
    "DELETE", "/datasets/{}/documents/{}", CredentialScope.KNOWLEDGE_BASE
)
