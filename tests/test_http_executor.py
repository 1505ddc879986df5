"""
http.request 执行器测试
"""
import asyncio
import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from flow_runtime.actions.http import HttpExecutor, encode_body


async def hello(request: web.Request) -> web.Response:
    return web.json_response({"hello": "world"}, headers={"X-Custom": "yes"})


async def echo(request: web.Request) -> web.Response:
    body = await request.text()
    return web.json_response({
        "method": request.method,
        "contentType": request.headers.get("Content-Type"),
        "token": request.headers.get("X-Token"),
        "body": body,
    })


async def broken(request: web.Request) -> web.Response:
    return web.Response(status=500, text="boom")


async def slow(request: web.Request) -> web.Response:
    await asyncio.sleep(2)
    return web.Response(text="late")


@pytest.fixture
async def server():
    app = web.Application()
    app.router.add_get("/hello", hello)
    app.router.add_route("*", "/echo", echo)
    app.router.add_get("/broken", broken)
    app.router.add_get("/slow", slow)

    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest.fixture
def http():
    return HttpExecutor()


@pytest.mark.asyncio
async def test_get(server, http):
    result = await http.execute({"url": str(server.make_url("/hello")), "method": "get"})

    assert result.success
    assert result.output["status"] == 200
    assert json.loads(result.output["body"]) == {"hello": "world"}
    assert result.output["headers"]["x-custom"] == "yes"


@pytest.mark.asyncio
async def test_method_defaults_to_get(server, http):
    result = await http.execute({"url": str(server.make_url("/echo"))})

    assert json.loads(result.output["body"])["method"] == "GET"


@pytest.mark.asyncio
async def test_get_never_sends_body(server, http):
    result = await http.execute({
        "url": str(server.make_url("/echo")),
        "method": "GET",
        "body": {"ignored": True},
    })

    assert json.loads(result.output["body"])["body"] == ""


@pytest.mark.asyncio
async def test_post_json_body(server, http):
    result = await http.execute({
        "url": str(server.make_url("/echo")),
        "method": "POST",
        "headers": {"X-Token": "abc"},
        "body": {"name": "flow"},
    })

    echoed = json.loads(result.output["body"])
    assert result.success
    assert echoed["method"] == "POST"
    assert echoed["contentType"].startswith("application/json")
    assert echoed["token"] == "abc"
    assert json.loads(echoed["body"]) == {"name": "flow"}


@pytest.mark.asyncio
async def test_string_body_sent_verbatim(server, http):
    result = await http.execute({
        "url": str(server.make_url("/echo")),
        "method": "PUT",
        "headers": {"Content-Type": "text/plain"},
        "body": "raw text",
    })

    echoed = json.loads(result.output["body"])
    assert echoed["body"] == "raw text"
    assert echoed["contentType"].startswith("text/plain")


@pytest.mark.asyncio
async def test_non_2xx_is_failure(server, http):
    result = await http.execute({"url": str(server.make_url("/broken")), "method": "GET"})

    assert not result.success
    assert result.output["status"] == 500
    assert result.output["body"] == "boom"


@pytest.mark.asyncio
async def test_timeout(server, http):
    result = await http.execute({"url": str(server.make_url("/slow")), "method": "GET", "timeout": 100})

    assert not result.success
    assert result.output["status"] == 0
    assert result.output["headers"] == {}
    assert "timed out" in result.output["body"]


@pytest.mark.asyncio
async def test_invalid_url(http):
    result = await http.execute({"url": "not a url", "method": "GET"})

    assert not result.success
    assert result.output["status"] == 0
    assert result.output["body"]


def test_encode_body():
    assert encode_body(None) is None
    assert encode_body("text") == "text"
    assert encode_body({"a": 1}) == '{"a": 1}'
    assert encode_body([1, 2]) == "[1, 2]"
