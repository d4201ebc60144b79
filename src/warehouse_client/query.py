"""Queries and the read path selector.

`Query.read` tries the single-RPC fast path first when the query's options
allow it, and falls back to submitting a job and polling it when the
service does not finish within its synchronous window. Either way the
caller gets the same kind of `RowIterator`.
"""

import asyncio
import base64
import datetime
import logging
import uuid
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from warehouse_client.errors import EncodeError, WarehouseError
from warehouse_client.iterator import Page, RowIterator
from warehouse_client.jobs import Job, JobState, JobStatus, new_job_id
from warehouse_client.protocols import Transport
from warehouse_client.types.params import (
    ClientParams,
    CreateDisposition,
    JobKind,
    QueryPriority,
    SchemaUpdateOption,
    WriteDisposition,
)
from warehouse_client.types.references import DatasetRef, JobRef, TableRef
from warehouse_client.types.rpc import HttpMethod, RpcRequest
from warehouse_client.types.values import NullValue

logger = logging.getLogger(__name__)

_NULL_PARAM_TYPES = {
    "INTEGER": "INT64",
    "FLOAT": "FLOAT64",
    "BOOLEAN": "BOOL",
}


class QueryParameter(BaseModel, frozen=True):
    """A value bound to `@name` (or `?` when `name` is None) in the query text."""

    name: str | None = None
    value: Any


def _param_type(value: object) -> dict[str, object]:  # noqa: PLR0911
    if isinstance(value, NullValue):
        name = str(value.field_type)
        return {"type": _NULL_PARAM_TYPES.get(name, name)}
    if isinstance(value, bool):
        return {"type": "BOOL"}
    if isinstance(value, int):
        return {"type": "INT64"}
    if isinstance(value, float):
        return {"type": "FLOAT64"}
    if isinstance(value, str):
        return {"type": "STRING"}
    if isinstance(value, (bytes, bytearray)):
        return {"type": "BYTES"}
    if isinstance(value, Decimal):
        return {"type": "NUMERIC"}
    if isinstance(value, datetime.datetime):
        return {"type": "TIMESTAMP" if value.tzinfo else "DATETIME"}
    if isinstance(value, datetime.date):
        return {"type": "DATE"}
    if isinstance(value, datetime.time):
        return {"type": "TIME"}
    if isinstance(value, Mapping):
        return {
            "type": "STRUCT",
            "structTypes": [{"name": k, "type": _param_type(v)} for k, v in value.items()],
        }
    if isinstance(value, Sequence):
        if not value:
            msg = "cannot infer the element type of an empty array parameter"
            raise EncodeError(msg)
        return {"type": "ARRAY", "arrayType": _param_type(value[0])}
    msg = f"unsupported query parameter type {type(value).__name__}"
    raise EncodeError(msg)


def _param_value(value: object) -> dict[str, object]:
    if isinstance(value, NullValue):
        if not value.valid:
            return {}
        value = value.value
    if isinstance(value, Mapping):
        return {"structValues": {k: _param_value(v) for k, v in value.items()}}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return {"arrayValues": [_param_value(v) for v in value]}
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, (bytes, bytearray)):
        text = base64.b64encode(bytes(value)).decode("ascii")
    elif isinstance(value, datetime.datetime) and value.tzinfo:
        text = value.astimezone(datetime.UTC).strftime("%Y-%m-%d %H:%M:%S.%f+00:00")
    elif isinstance(value, (datetime.date, datetime.time)):
        text = value.isoformat()
    else:
        text = str(value)
    return {"value": text}


def encode_parameter(param: QueryParameter) -> dict[str, object]:
    """Wire form of a query parameter."""
    out: dict[str, object] = {
        "parameterType": _param_type(param.value),
        "parameterValue": _param_value(param.value),
    }
    if param.name:
        out["name"] = param.name
    return out


class Query:
    """A query and its options. Configure attributes, then `run` or `read`."""

    def __init__(self, transport: Transport, params: ClientParams, sql: str) -> None:
        self._transport = transport
        self._params = params

        self.sql = sql
        self.parameters: list[QueryParameter] = []
        self.default_dataset: DatasetRef | None = None
        self.destination: TableRef | None = None
        self.create_disposition: CreateDisposition | None = None
        self.write_disposition: WriteDisposition | None = None
        self.schema_update_options: list[SchemaUpdateOption] = []
        self.use_legacy_sql: bool = params.use_legacy_sql
        self.dry_run: bool = False
        self.labels: dict[str, str] = {}
        self.max_bytes_billed: int | None = None
        self.priority: QueryPriority = QueryPriority.INTERACTIVE
        self.job_id: str | None = None
        self.add_job_id_suffix: bool = False
        self.location: str | None = params.location
        # Always submit a job, even when the fast path would apply.
        self.force_job: bool = False

    def _parameter_fields(self) -> dict[str, object]:
        if not self.parameters:
            return {}
        named = [p for p in self.parameters if p.name]
        if named and len(named) != len(self.parameters):
            msg = "query parameters must be either all named or all positional"
            raise EncodeError(msg)
        return {
            "parameterMode": "NAMED" if named else "POSITIONAL",
            "queryParameters": [encode_parameter(p) for p in self.parameters],
        }

    def configuration(self) -> dict[str, object]:
        """The `configuration` block of the job this query submits."""
        query: dict[str, object] = {
            "query": self.sql,
            "useLegacySql": self.use_legacy_sql,
            "priority": str(self.priority),
            **self._parameter_fields(),
        }
        if self.default_dataset is not None:
            query["defaultDataset"] = self.default_dataset.to_api()
        if self.destination is not None:
            query["destinationTable"] = self.destination.to_api()
        if self.create_disposition is not None:
            query["createDisposition"] = str(self.create_disposition)
        if self.write_disposition is not None:
            query["writeDisposition"] = str(self.write_disposition)
        if self.schema_update_options:
            query["schemaUpdateOptions"] = [str(o) for o in self.schema_update_options]
        if self.max_bytes_billed is not None:
            query["maximumBytesBilled"] = str(self.max_bytes_billed)
        config: dict[str, object] = {JobKind.QUERY.value: query}
        if self.dry_run:
            config["dryRun"] = True
        if self.labels:
            config["labels"] = dict(self.labels)
        return config

    def _job_id(self) -> str | None:
        if self.job_id and self.add_job_id_suffix:
            return new_job_id(f"{self.job_id}-")
        return self.job_id

    def fast_path_eligible(self) -> bool:
        """Whether the query can run through the single-RPC query endpoint."""
        return not (
            self.force_job
            or self.destination is not None
            or self.create_disposition is not None
            or self.write_disposition is not None
            or self.schema_update_options
            or self.dry_run
            or self.job_id
            or self.priority is QueryPriority.BATCH
        )

    async def run(self) -> Job:
        """Submit the query as a job."""
        return await Job.submit(
            self._transport,
            self._params,
            self.configuration(),
            job_id=self._job_id(),
            location=self.location,
        )

    async def read(
        self,
        into: Any = list,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> RowIterator:
        """Run the query and iterate over its rows.

        `timeout` and `cancel` bound the wait for a job on the general path;
        see `Job.wait`.
        """
        if not self.fast_path_eligible():
            job = await self.run()
            return await job.read(into=into, timeout=timeout, cancel=cancel)

        response = await self._transport.execute(self._fast_path_request())
        raw_ref = response.get("jobReference")
        ref = JobRef.from_api(raw_ref) if raw_ref else None  # type: ignore[arg-type]
        if not response.get("jobComplete"):
            if ref is None:
                msg = "incomplete query response carries no job reference"
                raise WarehouseError(msg)
            logger.info("query did not finish on the fast path; polling job %s", ref.job_id)
            job = Job(self._transport, self._params, ref, JobKind.QUERY)
            return await job.read(into=into, timeout=timeout, cancel=cancel)

        first = Page.from_api(response)
        if ref is None:
            if first.page_token:
                msg = "paged query response carries no job reference"
                raise WarehouseError(msg)
            return RowIterator(None, into=into, first_page=first)
        job = Job(
            self._transport,
            self._params,
            ref,
            JobKind.QUERY,
            status=JobStatus(state=JobState.DONE),
        )
        return RowIterator(job.fetch_page, into=into, first_page=first, job=job)

    def _fast_path_request(self) -> RpcRequest:
        body: dict[str, object] = {
            "query": self.sql,
            "useLegacySql": self.use_legacy_sql,
            "timeoutMs": self._params.fast_path_timeout_ms,
            "requestId": str(uuid.uuid4()),
            "formatOptions": {"useInt64Timestamp": True},
            **self._parameter_fields(),
        }
        if self.default_dataset is not None:
            body["defaultDataset"] = self.default_dataset.to_api()
        if self.labels:
            body["labels"] = dict(self.labels)
        if self.max_bytes_billed is not None:
            body["maximumBytesBilled"] = str(self.max_bytes_billed)
        if self.location:
            body["location"] = self.location
        if self._params.page_size:
            body["maxResults"] = self._params.page_size
        request = RpcRequest(
            method=HttpMethod.POST,
            path=f"projects/{self._params.project_id}/queries",
            body=body,
        )
        logger.debug("%s", request)
        return request
