"""
Tests for the aiohttp upstream client against a local test server
"""

import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from keyrelay.core.errors import TransportFailure
from keyrelay.core.upstream_client import UpstreamClient


def build_upstream(received):
    async def chat(request):
        received.append({"headers": dict(request.headers), "json": await request.json()})
        return web.Response(status=429, body=b'{"error":"slow down"}',
                            content_type="application/json", headers={"Retry-After": "4"})

    async def slow(request):
        await asyncio.sleep(1)
        return web.json_response({})

    app = web.Application()
    app.router.add_post("/chat/completions", chat)
    app.router.add_post("/slow", slow)
    return app


def test_post_sends_auth_and_branding_headers():
    async def scenario():
        received = []
        server = test_utils.TestServer(build_upstream(received))
        await server.start_server()
        client = UpstreamClient(str(server.make_url("/chat/completions")),
                                http_referer="https://example.test", x_title="Relay Test")
        try:
            response = await client.post_chat_completion("sk-secret-key-9999", {"model": "m"})
        finally:
            await client.stop()
            await server.close()
        return received, response

    received, response = asyncio.run(scenario())

    headers = received[0]["headers"]
    assert headers["Authorization"] == "Bearer sk-secret-key-9999"
    assert headers["HTTP-Referer"] == "https://example.test"
    assert headers["X-Title"] == "Relay Test"
    assert received[0]["json"] == {"model": "m"}

    assert response.status == 429
    assert response.body == b'{"error":"slow down"}'
    assert response.content_type.startswith("application/json")
    assert response.retry_after == "4"


def test_timeout_becomes_transport_failure():
    async def scenario():
        server = test_utils.TestServer(build_upstream([]))
        await server.start_server()
        client = UpstreamClient(str(server.make_url("/slow")), "r", "t", timeout_seconds=0.1)
        try:
            await client.post_chat_completion("sk-key-000000001", {})
        finally:
            await client.stop()
            await server.close()

    with pytest.raises(TransportFailure):
        asyncio.run(scenario())


def test_unreachable_upstream_becomes_transport_failure():
    async def scenario():
        server = test_utils.TestServer(web.Application())
        await server.start_server()
        url = str(server.make_url("/chat/completions"))
        await server.close()

        client = UpstreamClient(url, "r", "t", timeout_seconds=2)
        try:
            await client.post_chat_completion("sk-key-000000001", {})
        finally:
            await client.stop()

    with pytest.raises(TransportFailure):
        asyncio.run(scenario())
