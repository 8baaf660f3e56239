"""Tests for Dify SDK client methods."""

import json

import pytest
from pytest_httpx import HTTPXMock

from dify_sdk import (
    ConfigurationError,
    Conversation,
    DecodeError,
    DifyClient,
    DifyConfig,
    DifyError,
    DocCreateParam,
    DocUpdateParam,
    ErrorKind,
    Message,
    PagedResult,
    RetrieveKnowledgeParam,
    RetrieveRetrievalModel,
    StatusError,
    StreamScheduler,
)

BASE = "http://localhost/v1"


class TestDifyError:
    def test_construction(self):
        error = DifyError("Something went wrong", "TEST_ERROR")
        assert str(error) == "Something went wrong"
        assert error.code == "TEST_ERROR"
        assert error.raw_text is None

    def test_status_error(self):
        error = StatusError("Not found", "not_found", 404, '{"code": "not_found"}')
        assert error.status_code == 404
        assert error.kind is ErrorKind.STATUS
        assert error.raw_text == '{"code": "not_found"}'
        assert repr(error) == "StatusError('not_found', 'Not found')"

    def test_kinds_are_distinct(self):
        assert ConfigurationError("x", "X").kind is ErrorKind.CONFIGURATION
        assert DecodeError("x", "X").kind is ErrorKind.DECODE


class TestChat:
    async def test_create_chat_message(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/chat-messages",
            json={
                "id": "msg-1",
                "conversation_id": "conv-1",
                "answer": "Hello, world!",
                "created_at": 1705407629,
                "metadata": {"usage": {"total_tokens": 12}},
            },
        )

        result = await client.create_chat_message({"name": "Ann"}, "Say hello", "user-1")

        assert isinstance(result, Message)
        assert result.answer == "Hello, world!"
        assert result.conversation_id == "conv-1"
        assert result.created_at is not None

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["authorization"] == "Bearer chat-key"
        body = json.loads(request.content)
        assert body == {
            "inputs": {"name": "Ann"},
            "query": "Say hello",
            "user": "user-1",
            "response_mode": "blocking",
            "auto_generate_name": False,
        }

    async def test_create_chat_message_in_conversation(
        self, httpx_mock: HTTPXMock, config: DifyConfig
    ):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages", json={"id": "msg-2", "answer": "Again"}
        )
        async with DifyClient(
            "chat-key",
            config=DifyConfig(base_url=config.base_url, auto_generate_name=True),
        ) as client:
            await client.create_chat_message({}, "More", "user-1", "conv-1")

        request = httpx_mock.get_request()
        assert request is not None
        body = json.loads(request.content)
        assert body["conversation_id"] == "conv-1"
        assert body["auto_generate_name"] is True

    async def test_invalid_response(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(url=f"{BASE}/chat-messages", json={"unexpected": "format"})

        with pytest.raises(DecodeError) as exc_info:
            await client.create_chat_message({}, "test", "user-1")

        assert exc_info.value.code == "INVALID_RESPONSE"
        assert exc_info.value.raw_text is not None
        assert "unexpected" in exc_info.value.raw_text

    async def test_http_error(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages",
            status_code=401,
            json={"code": "unauthorized", "message": "Invalid API key", "status": 401},
        )

        with pytest.raises(StatusError) as exc_info:
            await client.create_chat_message({}, "test", "user-1")

        assert exc_info.value.code == "unauthorized"
        assert "Invalid API key" in str(exc_info.value)

    async def test_update_chat_api_key(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(url=f"{BASE}/info", json={"name": "My App"})

        client.update_chat_api_key("new-key")
        info = await client.get_application_info()

        assert info == {"name": "My App"}
        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["authorization"] == "Bearer new-key"

    async def test_get_application_parameters(
        self, httpx_mock: HTTPXMock, client: DifyClient
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE}/parameters",
            json={"opening_statement": "Hi", "user_input_form": []},
        )

        params = await client.get_application_parameters()

        assert params["opening_statement"] == "Hi"

    async def test_message_feedback(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/messages/msg-1/feedbacks",
            json={"result": "success"},
        )

        await client.message_feedback("msg-1", "like", "user-1", "Great")

        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content) == {
            "rating": "like",
            "user": "user-1",
            "content": "Great",
        }

    async def test_stop_generation(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/chat-messages/task-1/stop",
            json={"result": "success"},
        )

        await client.stop_generation("task-1", "user-1")

        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content) == {"user": "user-1"}

    async def test_stop_generation_unknown_result(
        self, httpx_mock: HTTPXMock, client: DifyClient
    ):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages/task-1/stop", json={"result": "pending"}
        )

        with pytest.raises(DecodeError) as exc_info:
            await client.stop_generation("task-1", "user-1")

        assert exc_info.value.code == "UNKNOWN_RESULT"

    async def test_get_conversation_messages(
        self, httpx_mock: HTTPXMock, client: DifyClient
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE}/messages?user=user-1&conversation_id=conv-1&limit=2",
            json={
                "data": [
                    {"id": "m1", "query": "Hi", "answer": "Hello"},
                    {"id": "m2", "query": "Bye", "answer": "Goodbye"},
                ],
                "has_more": True,
                "limit": 2,
            },
        )

        page = await client.get_conversation_messages("user-1", "conv-1", limit=2)

        assert isinstance(page, PagedResult)
        assert [m.id for m in page.data] == ["m1", "m2"]
        assert page.has_more is True

    async def test_get_conversations(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE}/conversations?user=user-1&sort_by=-updated_at",
            json={
                "data": [{"id": "conv-1", "name": "First", "status": "normal"}],
                "has_more": False,
                "limit": 20,
            },
        )

        page = await client.get_conversations("user-1", last_id="", sort_by="-updated_at")

        assert page.data[0].name == "First"

    async def test_rename_conversation(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/conversations/conv-1/name",
            json={"id": "conv-1", "name": "Renamed"},
        )

        conversation = await client.rename_conversation("conv-1", "Renamed", "user-1")

        assert isinstance(conversation, Conversation)
        assert conversation.name == "Renamed"

    async def test_delete_conversation(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="DELETE",
            url=f"{BASE}/conversations/conv-1",
            json={"result": "success"},
        )

        await client.delete_conversation("conv-1", "user-1")

        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content) == {"user": "user-1"}


class TestKnowledgeBase:
    async def test_get_datasets(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE}/datasets?page=2&limit=10",
            json={
                "data": [{"id": "ds-1", "name": "Docs", "document_count": 3}],
                "has_more": False,
                "limit": 10,
                "total": 1,
                "page": 2,
            },
        )

        page = await client.get_datasets(page=2, limit=10)

        assert page.data[0].document_count == 3
        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["authorization"] == "Bearer kb-key"

    async def test_create_doc_by_text(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/datasets/ds-1/document/create-by-text",
            json={
                "document": {"id": "doc-1", "name": "Notes", "indexing_status": "waiting"},
                "batch": "batch-1",
            },
        )

        result = await client.create_doc_by_text(
            "ds-1",
            DocCreateParam(name="Notes", text="Some text", indexing_technique="economy"),
        )

        assert result.document.id == "doc-1"
        assert result.batch == "batch-1"
        request = httpx_mock.get_request()
        assert request is not None
        body = json.loads(request.content)
        assert body["name"] == "Notes"
        assert body["doc_form"] == "text_model"
        assert body["process_rule"] == {"mode": "automatic"}
        assert "retrieval_model" not in body

    async def test_update_doc_by_text(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/datasets/ds-1/documents/doc-1/update-by-text",
            json={"document": {"id": "doc-1", "name": "Renamed"}, "batch": "b"},
        )

        result = await client.update_doc_by_text(
            "ds-1", "doc-1", DocUpdateParam(name="Renamed")
        )

        assert result.document.name == "Renamed"
        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content) == {"name": "Renamed"}

    async def test_delete_doc(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="DELETE",
            url=f"{BASE}/datasets/ds-1/documents/doc-1",
            json={"result": "success"},
        )

        await client.delete_doc("ds-1", "doc-1")

        request = httpx_mock.get_request()
        assert request is not None
        assert "content-type" not in request.headers

    async def test_get_documents(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE}/datasets/ds-1/documents?keyword=notes",
            json={"data": [{"id": "doc-1", "name": "notes.txt"}], "has_more": False},
        )

        page = await client.get_documents("ds-1", keyword="notes")

        assert page.data[0].name == "notes.txt"

    async def test_get_documents_without_keyword(
        self, httpx_mock: HTTPXMock, client: DifyClient
    ):
        httpx_mock.add_response(
            method="GET", url=f"{BASE}/datasets/ds-1/documents", json={"data": []}
        )

        page = await client.get_documents("ds-1")

        assert page.data == []

    async def test_retrieve_knowledge(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/datasets/ds-1/retrieve",
            json={
                "query": {"content": "refunds"},
                "records": [
                    {
                        "segment": {
                            "id": "seg-1",
                            "content": "Refunds take 5 days",
                            "document": {"id": "doc-1", "name": "policy.md"},
                        },
                        "score": 0.87,
                    }
                ],
            },
        )

        result = await client.retrieve_knowledge(
            "ds-1",
            RetrieveKnowledgeParam(
                query="refunds",
                retrieval_model=RetrieveRetrievalModel(search_method="semantic_search", top_k=3),
            ),
        )

        assert result.query.content == "refunds"
        assert result.records[0].segment.document is not None
        assert result.records[0].segment.document.name == "policy.md"
        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content) == {
            "query": "refunds",
            "retrieval_model": {"search_method": "semantic_search", "top_k": 3},
        }

    async def test_missing_knowledge_base_key(
        self, httpx_mock: HTTPXMock, config: DifyConfig
    ):
        async with DifyClient("chat-key", config=config) as client:
            with pytest.raises(ConfigurationError) as exc_info:
                await client.get_datasets()

        assert exc_info.value.code == "MISSING_CREDENTIAL"
        assert httpx_mock.get_requests() == []


class TestChatStream:
    def _sse_response(self, events: list[tuple[str, dict]]) -> str:
        """Helper to create SSE formatted response."""
        lines = []
        for event_type, data in events:
            lines.append(f"event: {event_type}")
            lines.append(f"data: {json.dumps(data)}")
            lines.append("")
        return "\n".join(lines) + "\n"

    async def test_basic_stream(self, httpx_mock: HTTPXMock, client: DifyClient):
        sse_data = self._sse_response(
            [
                ("message", {"event": "message", "task_id": "t1", "answer": "Hello"}),
                ("message", {"event": "message", "task_id": "t1", "answer": ", world!"}),
                ("message_end", {"event": "message_end", "task_id": "t1"}),
            ]
        )
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/chat-messages",
            text=sse_data,
            headers={"content-type": "text/event-stream"},
        )

        stream = await client.create_chat_message_stream({}, "Say hello", "user-1")

        chunks = [chunk async for chunk in stream.iter_json()]

        assert [c.get("answer") for c in chunks] == ["Hello", ", world!", None]
        assert chunks[-1]["event"] == "message_end"
        assert stream.error is None

        request = httpx_mock.get_request()
        assert request is not None
        body = json.loads(request.content)
        assert body["response_mode"] == "streaming"
        assert request.headers["authorization"] == "Bearer chat-key"

    async def test_raw_payloads_keep_leading_space(
        self, httpx_mock: HTTPXMock, client: DifyClient
    ):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages",
            text='data: {"answer": "a"}\n\n',
            headers={"content-type": "text/event-stream"},
        )

        stream = await client.create_chat_message_stream({}, "q", "user-1")

        assert [payload async for payload in stream] == [' {"answer": "a"}']

    async def test_incomplete_trailing_frame(
        self, httpx_mock: HTTPXMock, client: DifyClient
    ):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages",
            text='data: {"answer": "a"}\n\ndata: {"answer": "b"}',
            headers={"content-type": "text/event-stream"},
        )

        stream = await client.create_chat_message_stream({}, "q", "user-1")

        chunks = [chunk async for chunk in stream.iter_json()]
        assert chunks == [{"answer": "a"}]

    async def test_close_early(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages",
            text=self._sse_response([("message", {"answer": str(i)}) for i in range(20)]),
            headers={"content-type": "text/event-stream"},
        )

        stream = await client.create_chat_message_stream({}, "q", "user-1")
        async with stream:
            first = await stream.__anext__()

        assert json.loads(first) == {"answer": "0"}
        assert stream.closed
        await client.scheduler.join()
        assert client.scheduler.active == 0

    async def test_http_error(self, httpx_mock: HTTPXMock, client: DifyClient):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages",
            status_code=400,
            json={"code": "invalid_param", "message": "Query is required"},
        )

        with pytest.raises(StatusError) as exc_info:
            await client.create_chat_message_stream({}, "", "user-1")

        assert exc_info.value.code == "invalid_param"
        assert client.scheduler.active == 0

    async def test_shared_scheduler_survives_client(
        self, httpx_mock: HTTPXMock, config: DifyConfig
    ):
        httpx_mock.add_response(
            url=f"{BASE}/chat-messages",
            text='data: {"answer": "a"}\n\n',
            headers={"content-type": "text/event-stream"},
        )
        scheduler = StreamScheduler()
        try:
            async with DifyClient("chat-key", config=config, scheduler=scheduler) as client:
                stream = await client.create_chat_message_stream({}, "q", "user-1")
                assert [p async for p in stream] == [' {"answer": "a"}']
            assert not scheduler.closed
        finally:
            await scheduler.aclose()
