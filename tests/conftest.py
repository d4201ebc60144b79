"""Shared fixtures: a scripted in-memory transport and a client wired to it."""

from collections import deque

import pytest

from warehouse_client import Client
from warehouse_client.types import BackoffParams, ClientParams, RpcRequest


class FakeTransport:
    """Transport that replays queued responses and records every request."""

    def __init__(self) -> None:
        self.requests: list[RpcRequest] = []
        self._responses: deque[dict[str, object] | BaseException] = deque()

    def queue(self, *responses: dict[str, object] | BaseException) -> None:
        self._responses.extend(responses)

    @property
    def pending(self) -> int:
        return len(self._responses)

    async def execute(self, request: RpcRequest) -> dict[str, object]:
        self.requests.append(request)
        if not self._responses:
            msg = f"unexpected request: {request}"
            raise AssertionError(msg)
        response = self._responses.popleft()
        if isinstance(response, BaseException):
            raise response
        return response


def job_resource(job_id: str, state: str, kind: str = "query", **status: object) -> dict[str, object]:
    return {
        "jobReference": {"projectId": "proj", "jobId": job_id, "location": "US"},
        "configuration": {kind: {}},
        "status": {"state": state, **status},
    }


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def params() -> ClientParams:
    return ClientParams(
        project_id="proj",
        backoff=BackoffParams(initial=0.001, maximum=0.005, jitter=0.0),
    )


@pytest.fixture
def client(transport: FakeTransport, params: ClientParams) -> Client:
    return Client(transport, params)
