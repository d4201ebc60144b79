"""Asynchronous job lifecycle: submission, polling and completion.

A job moves CREATED -> PENDING -> RUNNING -> DONE. Only CREATED is local;
every later state is whatever the service last reported. Once a job is
DONE its status is cached and never polled again.
"""

import asyncio
import datetime
import logging
import secrets
from collections.abc import Awaitable
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel

from warehouse_client.backoff import Backoff
from warehouse_client.errors import (
    CancellationError,
    ErrorProto,
    JobError,
    TransportError,
    WarehouseError,
)
from warehouse_client.iterator import Page, RowIterator
from warehouse_client.protocols import Transport
from warehouse_client.types.params import ClientParams, JobKind
from warehouse_client.types.references import JobRef
from warehouse_client.types.rpc import HttpMethod, RpcRequest

logger = logging.getLogger(__name__)


class JobState(StrEnum):
    CREATED = "CREATED"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"


def _millis(raw: object) -> datetime.datetime | None:
    if raw in (None, ""):
        return None
    return datetime.datetime.fromtimestamp(int(raw) / 1000, tz=datetime.UTC)  # type: ignore[call-overload]


def _int_or_none(raw: object) -> int | None:
    return None if raw in (None, "") else int(raw)  # type: ignore[call-overload]


class JobStatistics(BaseModel, frozen=True):
    """Statistics the service reports for a job."""

    creation_time: datetime.datetime | None = None
    start_time: datetime.datetime | None = None
    end_time: datetime.datetime | None = None
    total_bytes_processed: int | None = None
    cache_hit: bool | None = None
    num_dml_affected_rows: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any] | None) -> Self:
        payload = payload or {}
        query = payload.get("query") or {}
        return cls(
            creation_time=_millis(payload.get("creationTime")),
            start_time=_millis(payload.get("startTime")),
            end_time=_millis(payload.get("endTime")),
            total_bytes_processed=_int_or_none(
                payload.get("totalBytesProcessed", query.get("totalBytesProcessed"))
            ),
            cache_hit=query.get("cacheHit"),
            num_dml_affected_rows=_int_or_none(query.get("numDmlAffectedRows")),
        )


class JobStatus(BaseModel, frozen=True):
    """A snapshot of a job's state."""

    state: JobState
    """Lifecycle state."""

    error: ErrorProto | None = None
    """The fatal error, set only when the job is DONE and failed."""

    errors: tuple[ErrorProto, ...] = ()
    """Every error the service attached, including non-fatal ones."""

    statistics: JobStatistics | None = None

    @property
    def done(self) -> bool:
        return self.state is JobState.DONE

    def err(self) -> JobError | None:
        """The job failure as an exception, or None if the job has not failed."""
        if self.error is None:
            return None
        return JobError.from_proto(self.error, list(self.errors))

    @classmethod
    def from_api(cls, job: dict[str, Any]) -> Self:
        status = job.get("status") or {}
        raw_error = status.get("errorResult")
        return cls(
            state=JobState(status.get("state", JobState.PENDING)),
            error=ErrorProto.from_api(raw_error) if raw_error else None,
            errors=tuple(ErrorProto.from_api(e) for e in status.get("errors") or []),
            statistics=JobStatistics.from_api(job.get("statistics")),
        )


def new_job_id(prefix: str | None = None) -> str:
    """A random job id, optionally after a caller-chosen prefix."""
    suffix = secrets.token_urlsafe(21).replace("-", "_")
    return f"{prefix}{suffix}" if prefix else suffix


def kind_of(configuration: dict[str, Any]) -> JobKind:
    for kind in JobKind:
        if kind.value in configuration:
            return kind
    msg = f"job configuration has no recognised kind: {sorted(configuration)}"
    raise WarehouseError(msg)


async def _unless_cancelled[T](aw: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """Await `aw`, giving up as soon as `cancel` is set."""
    if cancel is None:
        return await aw
    if cancel.is_set():
        if asyncio.iscoroutine(aw):
            aw.close()
        msg = "wait cancelled by caller"
        raise CancellationError(msg)
    work = asyncio.ensure_future(aw)
    stop = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (work, stop):
            if not task.done():
                task.cancel()
    if work in done:
        return work.result()
    msg = "wait cancelled by caller"
    raise CancellationError(msg)


class Job:
    """A server-tracked unit of work: query, load, copy or extract.

    Instances are meant for a single owner; concurrent use needs external
    synchronisation.
    """

    __slots__ = ("_backoff", "_kind", "_params", "_ref", "_status", "_transport")

    def __init__(
        self,
        transport: Transport,
        params: ClientParams,
        ref: JobRef,
        kind: JobKind,
        status: JobStatus | None = None,
        backoff: Backoff | None = None,
    ) -> None:
        self._transport = transport
        self._params = params
        self._ref = ref
        self._kind = kind
        self._status = status or JobStatus(state=JobState.CREATED)
        self._backoff = backoff or Backoff(params.backoff)

    @classmethod
    async def submit(
        cls,
        transport: Transport,
        params: ClientParams,
        configuration: dict[str, Any],
        job_id: str | None = None,
        location: str | None = None,
    ) -> Self:
        """Insert a new job and return it in the state the service reports.

        Transport failures propagate unchanged; no retry happens here.
        """
        kind = kind_of(configuration)
        ref = JobRef(
            project_id=params.project_id,
            job_id=job_id or new_job_id(),
            location=location or params.location,
        )
        request = RpcRequest(
            method=HttpMethod.POST,
            path=f"projects/{ref.project_id}/jobs",
            body={"jobReference": ref.to_api(), "configuration": configuration},
        )
        logger.debug("%s", request)
        resource = await transport.execute(request)
        job = cls._from_resource(transport, params, resource, fallback=ref, kind=kind)
        if job._status.state is JobState.CREATED:
            job._status = JobStatus(state=JobState.PENDING)
        logger.info("submitted %s job %s", kind, job.id)
        return job

    @classmethod
    def _from_resource(
        cls,
        transport: Transport,
        params: ClientParams,
        resource: dict[str, Any],
        fallback: JobRef | None = None,
        kind: JobKind | None = None,
    ) -> Self:
        raw_ref = resource.get("jobReference")
        ref = JobRef.from_api(raw_ref) if raw_ref else fallback
        if ref is None:
            msg = "job resource has no jobReference"
            raise WarehouseError(msg)
        if kind is None:
            kind = kind_of(resource.get("configuration") or {})
        status = JobStatus.from_api(resource) if resource.get("status") else None
        return cls(transport, params, ref, kind, status)

    @classmethod
    async def lookup(
        cls,
        transport: Transport,
        params: ClientParams,
        job_id: str,
        location: str | None = None,
    ) -> Self:
        """Fetch an existing job by id."""
        ref = JobRef(project_id=params.project_id, job_id=job_id, location=location or params.location)
        request = RpcRequest(method=HttpMethod.GET, path=cls._path(ref), params=cls._location_params(ref))
        logger.debug("%s", request)
        resource = await transport.execute(request)
        return cls._from_resource(transport, params, resource, fallback=ref)

    @staticmethod
    def _path(ref: JobRef) -> str:
        return f"projects/{ref.project_id}/jobs/{ref.job_id}"

    @staticmethod
    def _location_params(ref: JobRef) -> dict[str, str]:
        return {"location": ref.location} if ref.location else {}

    @property
    def id(self) -> str:
        return self._ref.job_id

    @property
    def location(self) -> str | None:
        return self._ref.location

    @property
    def ref(self) -> JobRef:
        return self._ref

    @property
    def kind(self) -> JobKind:
        return self._kind

    @property
    def last_status(self) -> JobStatus:
        """Most recent status, without contacting the service."""
        return self._status

    def __repr__(self) -> str:
        return f"Job(id={self.id!r}, kind={self._kind!r}, state={self._status.state!r})"

    async def status(self) -> JobStatus:
        """Poll the service once for the job's status.

        After the job is DONE this returns the cached terminal status
        without issuing an RPC.
        """
        if self._status.done:
            return self._status
        request = RpcRequest(
            method=HttpMethod.GET,
            path=self._path(self._ref),
            params=self._location_params(self._ref),
        )
        logger.debug("%s", request)
        resource = await self._transport.execute(request)
        self._status = JobStatus.from_api(resource)
        logger.debug("job %s is %s", self.id, self._status.state)
        return self._status

    async def wait(
        self,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> JobStatus:
        """Block until the job is DONE.

        Polls with exponential backoff; transient transport errors are
        retried on the same schedule. Raises `JobError` if the job failed and
        `CancellationError` if `timeout` elapses or `cancel` is set first.
        Giving up never cancels the job itself.
        """
        if self._status.done:
            return self._finish(self._status)
        scope = asyncio.timeout(timeout)
        try:
            async with scope:
                return await self._poll_until_done(cancel)
        except TimeoutError as e:
            if not scope.expired():
                raise
            msg = f"gave up waiting for job {self.id} after {timeout}s"
            raise CancellationError(msg, source=e) from e

    async def _poll_until_done(self, cancel: asyncio.Event | None) -> JobStatus:
        attempt = 0
        while True:
            try:
                status = await _unless_cancelled(self.status(), cancel)
            except TransportError as e:
                if not e.transient:
                    raise
                logger.warning("transient error polling job %s, retrying: %s", self.id, e)
            else:
                if status.done:
                    return self._finish(status)
            delay = self._backoff.delay(attempt)
            attempt += 1
            logger.debug("job %s: next poll in %.2fs", self.id, delay)
            await _unless_cancelled(asyncio.sleep(delay), cancel)

    @staticmethod
    def _finish(status: JobStatus) -> JobStatus:
        err = status.err()
        if err is not None:
            raise err
        return status

    async def cancel(self) -> JobStatus:
        """Ask the service to cancel the job; returns the reported status.

        Cancellation is best-effort: the job may still finish successfully.
        """
        request = RpcRequest(
            method=HttpMethod.POST,
            path=f"{self._path(self._ref)}/cancel",
            params=self._location_params(self._ref),
        )
        logger.debug("%s", request)
        response = await self._transport.execute(request)
        job = response.get("job") or {}
        if job.get("status") and not self._status.done:
            self._status = JobStatus.from_api(job)
        return self._status

    async def read(
        self,
        into: Any = list,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> RowIterator:
        """Wait for a query job and iterate over its results."""
        if self._kind is not JobKind.QUERY:
            msg = f"cannot read results of a {self._kind} job"
            raise WarehouseError(msg)
        await self.wait(timeout=timeout, cancel=cancel)
        return RowIterator(self.fetch_page, into=into, job=self)

    async def fetch_page(self, page_token: str | None) -> Page:
        """Fetch one page of a finished query job's results."""
        params = self._location_params(self._ref)
        params["formatOptions.useInt64Timestamp"] = "true"
        if page_token:
            params["pageToken"] = page_token
        if self._params.page_size:
            params["maxResults"] = str(self._params.page_size)
        request = RpcRequest(
            method=HttpMethod.GET,
            path=f"projects/{self._ref.project_id}/queries/{self._ref.job_id}",
            params=params,
        )
        logger.debug("%s", request)
        return Page.from_api(await self._transport.execute(request))
