"""RPC descriptors handed to the transport."""

from enum import StrEnum

from pydantic import BaseModel, Field


class HttpMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    PATCH = "PATCH"
    DELETE = "DELETE"


class RpcRequest(BaseModel, frozen=True):
    """A single call against the service's REST surface."""

    method: HttpMethod
    """HTTP verb."""

    path: str
    """Path relative to the service root, e.g. `projects/p/jobs`."""

    params: dict[str, str] = Field(default_factory=dict)
    """Query-string parameters."""

    body: dict[str, object] | None = None
    """JSON payload, if any."""

    def __str__(self) -> str:
        return f"{self.method} {self.path}"
