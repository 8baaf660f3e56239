"""Client for the Dify chat and knowledge base APIs."""

from typing import Any

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from . import routes
from .errors import DecodeError
from .routes import CredentialScope, build_query
from .stream import EventStream, StreamScheduler
from .transport import RequestDispatcher
from .types import (
    Conversation,
    CredentialStore,
    DifyConfig,
    DocCreateParam,
    DocResult,
    DocUpdateParam,
    Document,
    KnowledgeBase,
    Message,
    PagedResult,
    RetrieveKnowledgeParam,
    RetrieveResult,
    StopResponse,
)


def _build_request_body(**kwargs: Any) -> dict[str, Any]:
    """Build request body, omitting None values."""
    return {k: v for k, v in kwargs.items() if v is not None}


def _dump(param: BaseModel) -> dict[str, Any]:
    return param.model_dump(mode="json", exclude_none=True)


def _parse(target: Any, text: str) -> Any:
    """Validate a JSON response body against a model or type."""
    try:
        return TypeAdapter(target).validate_json(text)
    except ValidationError as e:
        raise DecodeError(
            f"Invalid response from Dify API: {e}",
            "INVALID_RESPONSE",
            text,
        ) from e


class DifyClient:
    """Async client for a Dify application and its knowledge bases.

    Chat endpoints authenticate with ``chat_api_key``, knowledge base
    endpoints with ``knowledge_base_api_key``. Either may be omitted; calling
    an endpoint whose key is missing raises ``ConfigurationError``.

    Args:
        chat_api_key: API key of the chat application
        knowledge_base_api_key: API key for knowledge base endpoints
        config: Connection settings, defaults to the official API
        http_client: Optional shared ``httpx.AsyncClient``; it is not closed
            by ``aclose()``. Redirects must not be followed.
        scheduler: Optional shared ``StreamScheduler`` for streaming calls; it
            is not shut down by ``aclose()``

    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        chat_api_key: str | None = None,
        knowledge_base_api_key: str | None = None,
        *,
        config: DifyConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        scheduler: StreamScheduler | None = None,
    ) -> None:
        self.config = config or DifyConfig()
        self.auto_generate_name = self.config.auto_generate_name
        self._credentials = CredentialStore(chat_api_key, knowledge_base_api_key)

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.config.read_timeout, connect=self.config.connect_timeout
            ),
            follow_redirects=False,
        )
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or StreamScheduler()

        self._dispatcher = RequestDispatcher(
            self.config.base_url,
            self._credentials,
            client=self._http_client,
            scheduler=self.scheduler,
            stream_buffer_size=self.config.stream_buffer_size,
        )

    def update_chat_api_key(self, chat_api_key: str | None) -> None:
        """Replace the API key used for chat endpoints."""
        self._credentials.update(CredentialScope.CHAT, chat_api_key)

    def update_knowledge_base_api_key(self, knowledge_base_api_key: str | None) -> None:
        """Replace the API key used for knowledge base endpoints."""
        self._credentials.update(CredentialScope.KNOWLEDGE_BASE, knowledge_base_api_key)

    async def aclose(self) -> None:
        """Stop owned stream tasks and close the owned HTTP client."""
        if self._owns_scheduler:
            await self.scheduler.aclose()
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "DifyClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # chat

    async def get_application_info(self) -> dict[str, Any]:
        """Retrieve basic information about the application."""
        return _parse(dict[str, Any], await self._dispatcher.send(routes.APP_INFO))

    async def get_application_parameters(self) -> dict[str, Any]:
        """Retrieve the application's input form and feature settings."""
        return _parse(
            dict[str, Any], await self._dispatcher.send(routes.APP_PARAMETERS)
        )

    async def message_feedback(
        self,
        message_id: str,
        rating: str | None,
        user: str,
        content: str | None = None,
    ) -> None:
        """Rate a message.

        Args:
            message_id: The message to rate
            rating: "like", "dislike", or None to revoke a rating
            user: End-user identifier
            content: Optional free-text feedback
        """
        await self._dispatcher.send(
            routes.FEEDBACK,
            message_id,
            body={"rating": rating, "user": user, "content": content},
        )

    async def stop_generation(self, task_id: str, user: str) -> None:
        """Stop a streaming generation.

        Args:
            task_id: Task ID, taken from a streamed chunk
            user: End-user identifier, must match the one that started it

        Raises:
            DecodeError: If the server does not report success
        """
        text = await self._dispatcher.send(
            routes.STOP_GENERATION, task_id, body={"user": user}
        )
        result: StopResponse = _parse(StopResponse, text)
        if result.result != "success":
            raise DecodeError(
                f"Unexpected stop result: {result.result}", "UNKNOWN_RESULT", text
            )

    def _chat_message_body(
        self,
        inputs: dict[str, Any],
        query: str,
        user: str,
        conversation_id: str | None,
        response_mode: str,
    ) -> dict[str, Any]:
        return _build_request_body(
            inputs=inputs,
            query=query,
            user=user,
            response_mode=response_mode,
            auto_generate_name=self.auto_generate_name,
            conversation_id=conversation_id or None,
        )

    async def create_chat_message(
        self,
        inputs: dict[str, Any],
        query: str,
        user: str,
        conversation_id: str | None = None,
    ) -> Message:
        """Send a chat message and wait for the complete answer.

        Args:
            inputs: Values for the application's input variables
            query: The user's message
            user: End-user identifier
            conversation_id: Continue this conversation; starts a new one if None

        Returns:
            The answered Message

        Raises:
            DifyError: On configuration, transport, status or decode failures
        """
        text = await self._dispatcher.send(
            routes.CREATE_CHAT_MESSAGE,
            body=self._chat_message_body(
                inputs, query, user, conversation_id, "blocking"
            ),
        )
        return _parse(Message, text)

    async def create_chat_message_stream(
        self,
        inputs: dict[str, Any],
        query: str,
        user: str,
        conversation_id: str | None = None,
    ) -> EventStream:
        """Send a chat message and stream the answer as it is generated.

        Returns an EventStream of raw JSON chunk payloads. Iterate it (or
        ``iter_json()``) to read chunks; close it to stop reading early.

        Errors in the request itself are raised here. Errors after the
        stream has started end the iteration and are kept in
        ``EventStream.error``.

        Raises:
            DifyError: On configuration, transport or status failures
        """
        return await self._dispatcher.open_stream(
            routes.CREATE_CHAT_MESSAGE,
            body=self._chat_message_body(
                inputs, query, user, conversation_id, "streaming"
            ),
        )

    async def get_conversation_messages(
        self,
        user: str,
        conversation_id: str | None = None,
        first_id: str | None = None,
        limit: int | None = None,
    ) -> PagedResult[Message]:
        """List the messages of a conversation, newest page first.

        Args:
            user: End-user identifier
            conversation_id: The conversation to read
            first_id: ID of the first message on the current page, for paging back
            limit: Maximum number of messages to return
        """
        query = build_query(
            {
                "user": user,
                "conversation_id": conversation_id,
                "first_id": first_id,
                "limit": limit,
            }
        )
        text = await self._dispatcher.send(routes.GET_CONVERSATION_MESSAGES, query)
        return _parse(PagedResult[Message], text)

    async def get_conversations(
        self,
        user: str,
        last_id: str | None = None,
        limit: int | None = None,
        sort_by: str | None = None,
    ) -> PagedResult[Conversation]:
        """List a user's conversations.

        Args:
            user: End-user identifier
            last_id: ID of the last conversation on the current page
            limit: Maximum number of conversations to return
            sort_by: Sort field, e.g. "-updated_at"
        """
        query = build_query(
            {
                "user": user,
                "last_id": last_id or None,
                "limit": limit,
                "sort_by": sort_by or None,
            }
        )
        text = await self._dispatcher.send(routes.GET_CONVERSATIONS, query)
        return _parse(PagedResult[Conversation], text)

    async def rename_conversation(
        self, conversation_id: str, name: str, user: str
    ) -> Conversation:
        text = await self._dispatcher.send(
            routes.RENAME_CONVERSATION,
            conversation_id,
            body={"name": name, "user": user},
        )
        return _parse(Conversation, text)

    async def delete_conversation(self, conversation_id: str, user: str) -> None:
        await self._dispatcher.send(
            routes.DELETE_CONVERSATION, conversation_id, body={"user": user}
        )

    # knowledge base

    async def get_datasets(
        self, page: int = 1, limit: int | None = None
    ) -> PagedResult[KnowledgeBase]:
        """List knowledge bases."""
        query = build_query({"page": page, "limit": limit})
        text = await self._dispatcher.send(routes.GET_DATASETS, query)
        return _parse(PagedResult[KnowledgeBase], text)

    async def create_doc_by_text(
        self, dataset_id: str, param: DocCreateParam
    ) -> DocResult:
        """Create a document in a knowledge base from plain text."""
        text = await self._dispatcher.send(
            routes.CREATE_DOC_TXT, dataset_id, body=_dump(param)
        )
        return _parse(DocResult, text)

    async def update_doc_by_text(
        self, dataset_id: str, document_id: str, param: DocUpdateParam
    ) -> DocResult:
        """Replace a document's name, text or processing rules."""
        text = await self._dispatcher.send(
            routes.UPDATE_DOC_TXT, dataset_id, document_id, body=_dump(param)
        )
        return _parse(DocResult, text)

    async def delete_doc(self, dataset_id: str, document_id: str) -> None:
        await self._dispatcher.send(routes.DELETE_DOCUMENT, dataset_id, document_id)

    async def get_documents(
        self, dataset_id: str, keyword: str | None = None
    ) -> PagedResult[Document]:
        """List the documents of a knowledge base, optionally filtered by name."""
        query = build_query({"keyword": keyword or None})
        text = await self._dispatcher.send(routes.GET_DOCUMENTS, dataset_id, query)
        return _parse(PagedResult[Document], text)

    async def retrieve_knowledge(
        self, dataset_id: str, param: RetrieveKnowledgeParam
    ) -> RetrieveResult:
        """Run a retrieval query against a knowledge base."""
        text = await self._dispatcher.send(
            routes.RETRIEVE_KNOWLEDGE, dataset_id, body=_dump(param)
        )
        return _parse(RetrieveResult, text)
