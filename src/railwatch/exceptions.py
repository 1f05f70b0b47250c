"""Custom exception hierarchy for railwatch."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from railwatch._transport import ResponseEnvelope


class RailwatchError(Exception):
    """Base exception for all railwatch errors."""


class ConfigError(RailwatchError):
    """Invalid or missing configuration."""


class FetchError(RailwatchError):
    """A feed request did not complete with status 200.

    ``cause`` is the underlying exception (or ``None`` for a plain HTTP
    status failure) and ``envelope`` the response, when one was received.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        cause: BaseException | None = None,
        envelope: ResponseEnvelope | None = None,
    ) -> None:
        self.url = url
        self.cause = cause
        self.envelope = envelope
        super().__init__(message)


class TransportError(FetchError):
    """Network or request-setup failure before any response was received."""


class HttpStatusError(FetchError):
    """The request completed but with a status other than 200."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        url: str = "",
        envelope: ResponseEnvelope | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, url=url, envelope=envelope)


class ParseError(RailwatchError):
    """A feed body does not have the shape its decoder expects."""


class NotFoundError(RailwatchError, KeyError):
    """No data source is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No data source named {name!r}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


class DuplicateSourceError(RailwatchError):
    """A data source with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Data source {name!r} is already registered")


class InsufficientDataError(RailwatchError):
    """Correlation was requested without any stations to compare against."""


class GeolocationError(RailwatchError):
    """The geolocation provider reported an error instead of a position.

    ``reason`` is a short machine-friendly tag such as ``"permission_denied"``
    or ``"unavailable"``.
    """

    def __init__(self, message: str, *, reason: str = "unavailable") -> None:
        self.reason = reason
        super().__init__(message)
