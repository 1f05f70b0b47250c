"""HTTP transport: the only place railwatch performs network I/O."""

from __future__ import annotations

import dataclasses
import json
import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Protocol

import aiohttp
from multidict import CIMultiDict, CIMultiDictProxy

from railwatch.exceptions import HttpStatusError, TransportError

_logger = logging.getLogger(__name__)


class BodyKind(StrEnum):
    """How a response body should be interpreted."""

    JSON = "json"
    XML = "xml"
    TEXT = "text"


def _freeze(headers: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(headers or {}))


@dataclasses.dataclass(frozen=True)
class RequestDescriptor:
    """A single feed request. Immutable once built."""

    url: str
    method: str = "GET"
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    body_kind: BodyKind = BodyKind.TEXT

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", _freeze(self.headers))
        object.__setattr__(self, "body_kind", BodyKind(self.body_kind))


@dataclasses.dataclass(frozen=True)
class ResponseEnvelope:
    """A fully received response.

    ``parsed`` holds the body decoded per the request's :class:`BodyKind`,
    or the raw text when decoding failed.
    """

    status_code: int
    status_text: str
    headers: Mapping[str, str]
    """Case-insensitive, read-only."""
    raw: str
    parsed: Any

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def parse_body(raw: str, kind: BodyKind) -> Any:
    """Decode *raw* according to *kind*, falling back to the raw text."""
    if kind == BodyKind.JSON:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            _logger.debug("Body is not valid JSON, keeping raw text (%d chars)", len(raw))
            return raw
    if kind == BodyKind.XML:
        try:
            return ET.fromstring(raw)
        except ET.ParseError:
            _logger.debug("Body is not valid XML, keeping raw text (%d chars)", len(raw))
            return raw
    return raw


class Transport(Protocol):
    """Structural transport interface used by data sources.

    Keeping this a protocol makes it easy to pass test doubles while the
    production implementation (:class:`HttpTransport`) stays concrete.
    """

    async def fetch(self, request: RequestDescriptor) -> ResponseEnvelope:
        ...


class HttpTransport:
    """aiohttp-backed transport.

    Issues exactly one request per :meth:`fetch` call. No retries, and no
    timeout beyond whatever the underlying session enforces.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        default_headers: Mapping[str, str] | None = None,
    ) -> None:
        self._http = http_session
        self._default_headers = dict(default_headers or {})

    async def fetch(self, request: RequestDescriptor) -> ResponseEnvelope:
        """Perform *request* and return its envelope.

        Raises
        ------
        TransportError
            The request failed before a response was received.
        HttpStatusError
            A response was received with a status other than 200.
        """
        headers = CIMultiDict(self._default_headers)
        headers.update(request.headers)
        _logger.debug("%s %s", request.method, request.url)

        try:
            async with self._http.request(request.method, request.url, headers=headers) as resp:
                # Undecodable bytes become U+FFFD; a completed response always has an envelope.
                raw = await resp.text(errors="replace")
                status_code = resp.status
                status_text = resp.reason or ""
                response_headers = CIMultiDictProxy(CIMultiDict(resp.headers))
        except (aiohttp.ClientError, ValueError, TypeError) as exc:
            # ValueError/TypeError cover malformed URLs and header values.
            raise TransportError(
                f"Request to {request.url} failed: {exc}",
                url=request.url,
                cause=exc,
            ) from exc
        except TimeoutError as exc:
            raise TransportError(
                f"Request to {request.url} timed out",
                url=request.url,
                cause=exc,
            ) from exc

        envelope = ResponseEnvelope(
            status_code=status_code,
            status_text=status_text,
            headers=response_headers,
            raw=raw,
            parsed=parse_body(raw, request.body_kind),
        )
        if not envelope.ok:
            raise HttpStatusError(
                f"HTTP {envelope.status_code} from {request.url}: {raw[:200]}",
                status_code=envelope.status_code,
                url=request.url,
                envelope=envelope,
            )
        return envelope
