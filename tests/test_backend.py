"""Tests for the model host, its HTTP service, and the channels reaching it."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from semantic_find.backend import ModelHost, create_app
from semantic_find.embeddings import (
    HttpChannel,
    InProcessChannel,
    LocalProvider,
    RemoteProvider,
    RpcClient,
    SessionEmbeddingProvider,
)
from semantic_find.errors import TransportError

from .conftest import BrokenEncoder, KeywordEncoder


# ---------------------------------------------------------------------------
# ModelHost messages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_host_loads_with_warmup_and_reports_status() -> None:
    encoder = KeywordEncoder()
    host = ModelHost(encoder, name="test_host")

    assert await host.wait_ready()
    reply = await host.handle_message({"id": "abc", "type": "GET_MODEL_STATUS"})

    assert reply == {
        "id": "abc",
        "ready": True,
        "loading": False,
        "progress": 100,
        "error": None,
        "host": "test_host",
        "model": "keyword-topics",
    }
    assert encoder.encoded == ["test"]
    assert host.dimension == 4


@pytest.mark.asyncio
async def test_host_embeds_and_echoes_request_id() -> None:
    host = ModelHost(KeywordEncoder())

    reply = await host.handle_message(
        {"id": "req-1", "type": "GENERATE_EMBEDDING", "text": "galaxy and stars"}
    )

    assert reply["id"] == "req-1"
    assert reply["success"] is True
    assert reply["embedding"] == [0.0, 2.0, 0.0, 0.0]
    assert reply["data"] == reply["embedding"]


@pytest.mark.asyncio
async def test_host_rejects_empty_text() -> None:
    host = ModelHost(KeywordEncoder())

    reply = await host.handle_message({"id": "req-2", "type": "GENERATE_EMBEDDING", "text": ""})

    assert reply == {"id": "req-2", "error": "No text provided", "success": False}
    await host.wait_ready()


@pytest.mark.asyncio
async def test_host_answers_unknown_message_type_with_error() -> None:
    host = ModelHost(KeywordEncoder())

    reply = await host.handle_message({"id": "req-3", "type": "SHUTDOWN"})

    assert reply["success"] is False
    assert "SHUTDOWN" in reply["error"]
    await host.wait_ready()


@pytest.mark.asyncio
async def test_host_reports_load_failure() -> None:
    host = ModelHost(BrokenEncoder())

    assert not await host.wait_ready()
    status = await host.handle_message({"id": "s", "type": "GET_MODEL_STATUS"})
    embed = await host.handle_message({"id": "e", "type": "GENERATE_EMBEDDING", "text": "x"})

    assert status["ready"] is False
    assert status["error"] == "weights missing"
    assert embed == {"id": "e", "error": "weights missing", "success": False}


@pytest.mark.asyncio
async def test_in_process_channel_drives_session_provider() -> None:
    host = ModelHost(KeywordEncoder(), name="test_host")
    provider = SessionEmbeddingProvider(
        local=LocalProvider(KeywordEncoder(model_id="local-keyword")),
        remote=RemoteProvider(RpcClient(InProcessChannel(host))),
        status_poll_interval=0.01,
    )

    state = await provider.prepare()
    vector, model_id = await provider.embed_with_model("bake the bread in the oven")

    assert state.ready
    assert model_id == "remote:keyword-topics"
    assert vector == [1.0, 0.0, 0.0, 0.0]
    assert not provider.fallen_back


# ---------------------------------------------------------------------------
# HTTP service
# ---------------------------------------------------------------------------


def test_http_service_endpoints() -> None:
    host = ModelHost(KeywordEncoder(), name="test_host")

    with TestClient(create_app(host)) as client:
        assert client.get("/health").json() == {"status": "ok", "host": "test_host"}

        embedded = client.post("/api/embed", json={"text": "wind turbine"})
        assert embedded.status_code == 200
        assert embedded.json() == {"embedding": [0.0, 0.0, 0.0, 2.0], "model": "keyword-topics"}

        status = client.get("/api/status").json()
        assert status["ready"] is True
        assert status["progress"] == 100

        assert client.post("/api/embed", json={"text": ""}).status_code == 400

        reply = client.post(
            "/rpc",
            json={"id": "r1", "type": "GENERATE_EMBEDDING", "target": "test_host", "text": "moon"},
        )
        assert reply.json()["id"] == "r1"
        assert reply.json()["embedding"] == [0.0, 1.0, 0.0, 0.0]

        missing = client.post("/rpc", json={"id": "r2", "type": "GET_MODEL_STATUS", "target": "x"})
        assert missing.status_code == 404


def test_http_service_reports_unavailable_model() -> None:
    with TestClient(create_app(ModelHost(BrokenEncoder()))) as client:
        response = client.post("/api/embed", json={"text": "anything"})

    assert response.status_code == 503
    assert response.json() == {"error": "weights missing"}


@pytest.mark.asyncio
async def test_http_channel_round_trip_through_service() -> None:
    host = ModelHost(KeywordEncoder(), name="test_host")
    transport = httpx.ASGITransport(app=create_app(host))
    async with httpx.AsyncClient(transport=transport, base_url="http://model-host") as http:
        client = RpcClient(HttpChannel("http://model-host", client=http), target="test_host")

        status = await client.request("GET_MODEL_STATUS")
        reply = await client.request("GENERATE_EMBEDDING", text="dividend portfolio")

    assert status["host"] == "test_host"
    assert reply["embedding"] == [0.0, 0.0, 2.0, 0.0]


@pytest.mark.asyncio
async def test_http_channel_rejects_request_for_other_host() -> None:
    host = ModelHost(KeywordEncoder(), name="test_host")
    transport = httpx.ASGITransport(app=create_app(host))
    async with httpx.AsyncClient(transport=transport, base_url="http://model-host") as http:
        client = RpcClient(HttpChannel("http://model-host", client=http))

        with pytest.raises(TransportError, match="404"):
            await client.request("GET_MODEL_STATUS")


@pytest.mark.asyncio
async def test_http_channel_wraps_connection_errors() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
        channel = HttpChannel("http://model-host", client=http)

        with pytest.raises(TransportError, match="unreachable"):
            await channel.open()
        with pytest.raises(TransportError, match="request failed"):
            await channel.send({"id": "x", "type": "GET_MODEL_STATUS"})
