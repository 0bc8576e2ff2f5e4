"""HTTP transport, auth and the REST client against a mocked backend."""

import json

import httpx
import pytest

from counsel_inbox.auth import Auth
from counsel_inbox.client import AsyncInbox
from counsel_inbox.errors import AuthError, NetworkError, UnsupportedRoleError, ValidationError
from counsel_inbox.messages import MessagesAPI, api_id
from counsel_inbox.mutations import Ok
from counsel_inbox.roles import STUDENT_INBOX
from counsel_inbox.transport.http import HttpClient, error_for_status, error_message

BASE = "http://portal.test/api"


class Backend:
    """Routes requests to canned responses and remembers what it saw."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"message": f"No route {key}"})
        if callable(handler):
            return handler(request)
        status, body = handler
        return httpx.Response(status, json=body)

    def bodies(self, method, path):
        return [json.loads(r.content) for r in self.requests if r.method == method and r.url.path == path]


def _http(backend, token="tok") -> HttpClient:
    return HttpClient(base_url=BASE, token=token, transport=httpx.MockTransport(backend))


def test_error_message_picks_best_field():
    assert error_message({"message": "Nope"}, "x") == "Nope"
    assert error_message({"errors": {"content": ["The content field is required."]}}, "x") == \
        "The content field is required."
    assert error_message("", "fallback") == "fallback"


def test_error_for_status_mapping():
    assert isinstance(error_for_status(401, None), AuthError)
    assert isinstance(error_for_status(419, None), AuthError)
    invalid = error_for_status(422, {"message": "bad"})
    assert isinstance(invalid, ValidationError) and invalid.status == 422
    assert isinstance(error_for_status(500, None), NetworkError)
    assert error_for_status(503, None).retryable


def test_api_id():
    assert api_id("12") == 12
    assert api_id("new-counselor-7-1") == "new-counselor-7-1"


@pytest.mark.asyncio
async def test_bearer_token_and_status_errors():
    backend = Backend({
        ("GET", "/api/student/messages"): (200, {"data": []}),
        ("PATCH", "/api/messages/5"): (403, {"message": "Forbidden"}),
    })
    http = _http(backend)
    assert await http.get("/student/messages") == {"data": []}
    assert backend.requests[0].headers["Authorization"] == "Bearer tok"

    with pytest.raises(AuthError) as exc:
        await http.patch("/messages/5", {"content": "x"})
    assert exc.value.status == 403
    await http.close()


@pytest.mark.asyncio
async def test_transport_failure_becomes_network_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = HttpClient(base_url=BASE, transport=httpx.MockTransport(refuse))
    with pytest.raises(NetworkError):
        await http.get("/student/messages")
    await http.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [httpx.TooManyRedirects, httpx.DecodingError])
async def test_any_request_error_becomes_network_error(error):
    def broken(request):
        raise error("broken response", request=request)

    http = HttpClient(base_url=BASE, transport=httpx.MockTransport(broken))
    with pytest.raises(NetworkError):
        await http.get("/student/messages")
    await http.close()


@pytest.mark.asyncio
async def test_search_peers_queries_directory():
    backend = Backend({
        ("GET", "/api/users/search"): (200, {"users": [
            {"id": 7, "name": "Mr. Reyes", "role": "Counselor", "avatar": "https://cdn.test/7.png"},
            {"id": 8, "first_name": "Ms.", "last_name": "Tan", "role": "counselor"},
            {"id": 42, "name": "Ana Cruz", "role": "student"},
        ]}),
    })
    api = MessagesAPI(_http(backend), STUDENT_INBOX)

    peers = await api.search_peers("Counsellor", " re ")
    assert [(p.id, p.name, p.role) for p in peers] == [
        ("7", "Mr. Reyes", "counselor"),
        ("8", "Ms. Tan", "counselor"),
    ]
    assert dict(backend.requests[-1].url.params) == {"role": "counselor", "q": "re"}

    await api.search_peers("counselor")
    assert dict(backend.requests[-1].url.params) == {"role": "counselor", "limit": "20"}

    with pytest.raises(ValidationError) as exc:
        await api.search_peers("student", "ana")
    assert exc.value.code == "invalid_recipient"
    assert len(backend.requests) == 2


@pytest.mark.asyncio
async def test_messages_api_paths_and_bodies():
    backend = Backend({
        ("POST", "/api/student/messages"): (201, {"messageRecord": {"id": 9, "content": "hi"}}),
        ("POST", "/api/student/messages/mark-as-read"): (200, {"updated": 2}),
        ("DELETE", "/api/messages/conversations/new-counselor-7"): (204, None),
    })
    api = MessagesAPI(_http(backend), STUDENT_INBOX)
    await api.send("hi", recipient_id="7", recipient_role="counselor", conversation_id="11")
    await api.mark_read(["3", "4"])
    await api.delete_conversation("new-counselor-7")

    assert backend.bodies("POST", "/api/student/messages") == [
        {"content": "hi", "recipient_id": 7, "recipient_role": "counselor", "conversation_id": 11},
    ]
    assert backend.bodies("POST", "/api/student/messages/mark-as-read") == [{"message_ids": [3, 4]}]


@pytest.mark.asyncio
async def test_login_stores_token():
    backend = Backend({
        ("POST", "/api/auth/login"): (200, {"token": "fresh", "user": {"id": 42, "name": "Ana", "role": "Student"}}),
    })
    http = _http(backend, token=None)
    token, identity = await Auth(http).login("ana@example.edu", "secret")
    assert token == "fresh"
    assert http.token == "fresh"
    assert identity.id == "42"
    assert identity.role == "student"
    assert "Authorization" not in backend.requests[0].headers


@pytest.mark.asyncio
async def test_login_rejected():
    backend = Backend({("POST", "/api/auth/login"): (422, {"message": "These credentials do not match."})})
    with pytest.raises(AuthError):
        await Auth(_http(backend, token=None)).login("ana@example.edu", "wrong")


@pytest.mark.asyncio
async def test_inbox_end_to_end():
    inbox = [
        {"id": 1, "conversation_id": 11, "sender": "counselor", "sender_id": 7, "sender_name": "Mr. Reyes",
         "recipient_id": 42, "content": "How are you?", "is_read": 0, "created_at": "2024-03-01T09:00:00Z"},
        {"id": 2, "conversation_id": 12, "sender": "counselor", "sender_id": 8,
         "recipient_id": 99, "content": "Not for Ana", "is_read": 0, "created_at": "2024-03-01T09:00:00Z"},
    ]
    backend = Backend({
        ("GET", "/api/auth/me"): (200, {"user": {"id": 42, "name": "Ana Cruz", "role": "student"}}),
        ("GET", "/api/student/messages"): (200, {"messages": inbox}),
        ("POST", "/api/student/messages/mark-as-read"): (200, {"updated": 1}),
    })
    async with AsyncInbox(http=_http(backend)) as client:
        result = await client.connect()
        assert isinstance(result, Ok) and result.value == 1
        [conversation] = client.get_conversations()
        assert conversation.peer_name == "Mr. Reyes"
        assert conversation.unread_count == 1

        await client.open_conversation("11")
        assert client.get_conversations()[0].unread_count == 0
    assert backend.bodies("POST", "/api/student/messages/mark-as-read") == [{"message_ids": [1]}]


@pytest.mark.asyncio
async def test_admin_inbox_unsupported():
    backend = Backend({("GET", "/api/auth/me"): (200, {"id": 1, "role": "admin"})})
    client = AsyncInbox(http=_http(backend))
    with pytest.raises(UnsupportedRoleError):
        await client.connect()
    await client.disconnect()


@pytest.mark.asyncio
async def test_connect_requires_token():
    client = AsyncInbox(http=HttpClient(base_url=BASE, transport=httpx.MockTransport(Backend({}))))
    with pytest.raises(AuthError):
        await client.connect()
    await client.disconnect()
