"""HTTP transport tests against a local aiohttp server."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from railwatch._transport import BodyKind, HttpTransport, RequestDescriptor, parse_body
from railwatch.exceptions import FetchError, HttpStatusError, TransportError

TRACK_XML = '<layout><station id="A" lat="39.3" lon="-76.6"/></layout>'


async def _vehicles(_request: web.Request) -> web.Response:
    return web.json_response({"vehicles": [{"id": "T1"}]}, headers={"x-feed": "vehicles"})


async def _track(_request: web.Request) -> web.Response:
    return web.Response(text=TRACK_XML, content_type="application/xml")


async def _broken_json(_request: web.Request) -> web.Response:
    return web.Response(text="<html>maintenance</html>", content_type="text/html")


async def _missing(_request: web.Request) -> web.Response:
    return web.Response(status=404, text="no such feed")


async def _latin1(_request: web.Request) -> web.Response:
    return web.Response(body=b"caf\xe9 <x/>", content_type="text/plain")


async def _latin1_outage(_request: web.Request) -> web.Response:
    return web.Response(status=503, body=b"\xff\xfe oops", content_type="text/plain")


async def _echo_headers(request: web.Request) -> web.Response:
    return web.json_response(dict(request.headers))


@pytest_asyncio.fixture
async def server() -> AsyncIterator[TestServer]:
    app = web.Application()
    app.router.add_get("/vehicles.json", _vehicles)
    app.router.add_get("/track.xml", _track)
    app.router.add_get("/broken.json", _broken_json)
    app.router.add_get("/missing", _missing)
    app.router.add_get("/headers", _echo_headers)
    app.router.add_get("/latin1", _latin1)
    app.router.add_get("/latin1-outage", _latin1_outage)
    async with TestServer(app) as test_server:
        yield test_server


@pytest_asyncio.fixture
async def transport() -> AsyncIterator[HttpTransport]:
    async with aiohttp.ClientSession() as session:
        yield HttpTransport(session, default_headers={"user-agent": "railwatch-tests"})


@pytest.mark.asyncio
async def test_json_body_parsed(server: TestServer, transport: HttpTransport) -> None:
    request = RequestDescriptor(url=str(server.make_url("/vehicles.json")), body_kind=BodyKind.JSON)

    envelope = await transport.fetch(request)

    assert envelope.status_code == 200
    assert envelope.status_text == "OK"
    assert envelope.headers["X-Feed"] == "vehicles"
    assert envelope.parsed == {"vehicles": [{"id": "T1"}]}
    assert envelope.parsed == parse_body(envelope.raw, BodyKind.JSON)


@pytest.mark.asyncio
async def test_xml_body_parsed(server: TestServer, transport: HttpTransport) -> None:
    request = RequestDescriptor(url=str(server.make_url("/track.xml")), body_kind="xml")  # type: ignore[arg-type]

    envelope = await transport.fetch(request)

    assert isinstance(envelope.parsed, ET.Element)
    assert envelope.parsed.tag == "layout"
    assert envelope.raw == TRACK_XML


@pytest.mark.asyncio
async def test_text_body_left_raw(server: TestServer, transport: HttpTransport) -> None:
    request = RequestDescriptor(url=str(server.make_url("/track.xml")))

    envelope = await transport.fetch(request)

    assert envelope.parsed == TRACK_XML


@pytest.mark.asyncio
async def test_unparseable_body_downgrades_to_text(server: TestServer, transport: HttpTransport) -> None:
    request = RequestDescriptor(url=str(server.make_url("/broken.json")), body_kind=BodyKind.JSON)

    envelope = await transport.fetch(request)

    assert envelope.parsed == "<html>maintenance</html>"


@pytest.mark.asyncio
async def test_non_200_raises_with_envelope(server: TestServer, transport: HttpTransport) -> None:
    url = str(server.make_url("/missing"))

    with pytest.raises(HttpStatusError) as exc_info:
        await transport.fetch(RequestDescriptor(url=url, body_kind=BodyKind.JSON))

    exc = exc_info.value
    assert isinstance(exc, FetchError)
    assert exc.status_code == 404
    assert exc.url == url
    assert exc.envelope is not None
    assert exc.envelope.status_code == 404
    assert exc.envelope.raw == "no such feed"


@pytest.mark.asyncio
async def test_undecodable_body_still_returns_envelope(server: TestServer, transport: HttpTransport) -> None:
    envelope = await transport.fetch(RequestDescriptor(url=str(server.make_url("/latin1"))))

    assert envelope.status_code == 200
    assert envelope.raw.startswith("caf")
    assert envelope.raw.endswith(" <x/>")
    assert envelope.parsed == envelope.raw


@pytest.mark.asyncio
async def test_undecodable_error_body_keeps_status_envelope(server: TestServer, transport: HttpTransport) -> None:
    with pytest.raises(HttpStatusError) as exc_info:
        await transport.fetch(RequestDescriptor(url=str(server.make_url("/latin1-outage")), body_kind=BodyKind.JSON))

    exc = exc_info.value
    assert exc.status_code == 503
    assert exc.envelope is not None
    assert exc.envelope.raw.endswith(" oops")
    assert exc.envelope.parsed == exc.envelope.raw


@pytest.mark.asyncio
async def test_headers_merged_over_defaults(server: TestServer, transport: HttpTransport) -> None:
    request = RequestDescriptor(
        url=str(server.make_url("/headers")),
        headers={"X-Api-Key": "k1"},
        body_kind=BodyKind.JSON,
    )

    envelope = await transport.fetch(request)

    received = {key.lower(): value for key, value in envelope.parsed.items()}
    assert received["x-api-key"] == "k1"
    assert received["user-agent"] == "railwatch-tests"


@pytest.mark.asyncio
async def test_connection_failure_raises_transport_error(transport: HttpTransport) -> None:
    app = web.Application()
    async with TestServer(app) as closed_server:
        url = str(closed_server.make_url("/vehicles.json"))

    with pytest.raises(TransportError) as exc_info:
        await transport.fetch(RequestDescriptor(url=url))

    assert exc_info.value.envelope is None
    assert exc_info.value.cause is not None


@pytest.mark.asyncio
async def test_invalid_url_raises_transport_error(transport: HttpTransport) -> None:
    with pytest.raises(TransportError) as exc_info:
        await transport.fetch(RequestDescriptor(url="not-a-url"))

    assert exc_info.value.envelope is None


def test_request_descriptor_is_immutable() -> None:
    headers = {"accept": "application/json"}
    request = RequestDescriptor(url="https://example.com", method="get", headers=headers)
    headers["accept"] = "text/plain"

    assert request.method == "GET"
    assert request.headers["accept"] == "application/json"
    with pytest.raises(TypeError):
        request.headers["accept"] = "x"  # type: ignore[index]


def test_parse_body_fallbacks() -> None:
    assert parse_body("{broken", BodyKind.JSON) == "{broken"
    assert parse_body("<unclosed", BodyKind.XML) == "<unclosed"
    assert parse_body("[1, 2]", BodyKind.JSON) == [1, 2]
    assert parse_body("plain", BodyKind.TEXT) == "plain"
