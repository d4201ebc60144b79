"""Error types for warehouse operations."""

from enum import StrEnum
from typing import Self

from pydantic import BaseModel


class ErrorKind(StrEnum):
    """Classification of warehouse errors."""

    TRANSPORT = "transport"
    SCHEMA = "schema"
    ENCODE = "encode"
    DECODE = "decode"
    JOB = "job"
    CANCELLED = "cancelled"
    INVALID_INPUT = "invalid_input"


# HTTP status codes and service reasons worth another attempt while polling.
_TRANSIENT_CODES = frozenset({429, 500, 502, 503, 504})
_TRANSIENT_REASONS = frozenset({"backendError", "rateLimitExceeded", "internalError"})


class ErrorProto(BaseModel, frozen=True):
    """A single error entry as reported by the service."""

    reason: str = ""
    """Short machine-readable error code."""

    location: str = ""
    """Where the error occurred, if the service reported it."""

    message: str = ""
    """Human-readable description."""

    debug_info: str = ""
    """Debugging information; not stable across service releases."""

    @classmethod
    def from_api(cls, payload: dict[str, object]) -> Self:
        return cls(
            reason=str(payload.get("reason", "")),
            location=str(payload.get("location", "")),
            message=str(payload.get("message", "")),
            debug_info=str(payload.get("debugInfo", "")),
        )

    def __str__(self) -> str:
        return f"{self.message} (reason: {self.reason!r}, location: {self.location!r})"


class WarehouseError(Exception):
    """Base error for all warehouse operations."""

    __slots__ = ("kind", "message", "source")

    kind_default: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        source: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.kind_default
        self.source = source

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, kind={self.kind!r})"


class TransportError(WarehouseError):
    """The RPC itself failed: network, auth, or service-side rejection.

    The structured payload (code, reason, details) is carried verbatim from
    the transport so callers can introspect it.
    """

    __slots__ = ("code", "details", "reason")

    kind_default = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        code: int | None = None,
        reason: str = "",
        details: list[dict[str, object]] | None = None,
        source: BaseException | None = None,
    ) -> None:
        super().__init__(message, source=source)
        self.code = code
        self.reason = reason
        self.details = details or []

    @property
    def transient(self) -> bool:
        """Whether a later identical request could plausibly succeed."""
        return self.code in _TRANSIENT_CODES or self.reason in _TRANSIENT_REASONS


class SchemaError(WarehouseError):
    """A schema could not be inferred or failed validation."""

    __slots__ = ()

    kind_default = ErrorKind.SCHEMA


class EncodeError(WarehouseError):
    """A native value could not be converted to its wire form."""

    __slots__ = ()

    kind_default = ErrorKind.ENCODE


class DecodeError(WarehouseError):
    """A wire value could not be converted into the requested shape."""

    __slots__ = ()

    kind_default = ErrorKind.DECODE


class JobError(WarehouseError):
    """The service reported that a job failed.

    `errors` holds every error entry the service attached to the job; the
    fatal one is mirrored in `reason`/`location`/`message`.
    """

    __slots__ = ("errors", "location", "reason")

    kind_default = ErrorKind.JOB

    def __init__(
        self,
        message: str,
        reason: str = "",
        location: str = "",
        errors: list[ErrorProto] | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.location = location
        self.errors = errors or []

    @classmethod
    def from_proto(cls, proto: ErrorProto, errors: list[ErrorProto] | None = None) -> Self:
        return cls(proto.message, reason=proto.reason, location=proto.location, errors=errors)


class CancellationError(WarehouseError):
    """The caller gave up before the operation finished.

    Distinct from `JobError`: the job may still be running on the service.
    """

    __slots__ = ()

    kind_default = ErrorKind.CANCELLED
