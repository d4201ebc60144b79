"""Copy, load and extract operations.

Each operation is configured through its attributes and started with
`run()`, which submits a job and returns it without waiting.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from warehouse_client.errors import ErrorKind, WarehouseError
from warehouse_client.jobs import Job
from warehouse_client.protocols import Transport
from warehouse_client.types.params import (
    ClientParams,
    CopyOperation,
    CreateDisposition,
    JobKind,
    SchemaUpdateOption,
    WriteDisposition,
)
from warehouse_client.types.references import GCSReference, TableRef
from warehouse_client.types.values import Schema


class _Operation(ABC):
    """Options shared by every job-backed operation."""

    kind: JobKind

    def __init__(self, transport: Transport, params: ClientParams) -> None:
        self._transport = transport
        self._params = params
        self.job_id: str | None = None
        self.location: str | None = params.location
        self.labels: dict[str, str] = {}

    @abstractmethod
    def _body(self) -> dict[str, object]:
        """The kind-specific part of the configuration."""

    def configuration(self) -> dict[str, object]:
        """The `configuration` block of the submitted job."""
        config: dict[str, object] = {self.kind.value: self._body()}
        if self.labels:
            config["labels"] = dict(self.labels)
        return config

    async def run(self) -> Job:
        return await Job.submit(
            self._transport,
            self._params,
            self.configuration(),
            job_id=self.job_id,
            location=self.location,
        )


def _dispositions(
    create: CreateDisposition | None, write: WriteDisposition | None
) -> dict[str, object]:
    out: dict[str, object] = {}
    if create is not None:
        out["createDisposition"] = str(create)
    if write is not None:
        out["writeDisposition"] = str(write)
    return out


class Copier(_Operation):
    """Copies one or more tables into a destination table."""

    kind = JobKind.COPY

    def __init__(
        self,
        transport: Transport,
        params: ClientParams,
        dst: TableRef,
        sources: Sequence[TableRef],
    ) -> None:
        super().__init__(transport, params)
        if not sources:
            msg = "a copy needs at least one source table"
            raise WarehouseError(msg, kind=ErrorKind.INVALID_INPUT)
        self.dst = dst
        self.sources = list(sources)
        self.create_disposition: CreateDisposition | None = None
        self.write_disposition: WriteDisposition | None = None
        self.operation_type: CopyOperation = CopyOperation.COPY

    def _body(self) -> dict[str, object]:
        return {
            "destinationTable": self.dst.to_api(),
            "sourceTables": [s.to_api() for s in self.sources],
            "operationType": str(self.operation_type),
            **_dispositions(self.create_disposition, self.write_disposition),
        }


class Loader(_Operation):
    """Loads objects from cloud storage into a table."""

    kind = JobKind.LOAD

    def __init__(
        self,
        transport: Transport,
        params: ClientParams,
        dst: TableRef,
        source: GCSReference,
    ) -> None:
        super().__init__(transport, params)
        self.dst = dst
        self.source = source
        # Destination schema; overrides any schema on the source reference.
        self.schema: Schema | None = None
        self.create_disposition: CreateDisposition | None = None
        self.write_disposition: WriteDisposition | None = None
        self.schema_update_options: list[SchemaUpdateOption] = []

    def _body(self) -> dict[str, object]:
        body = self.source.load_config()
        body["destinationTable"] = self.dst.to_api()
        if self.schema is not None:
            body["schema"] = self.schema.to_api()
        body.update(_dispositions(self.create_disposition, self.write_disposition))
        if self.schema_update_options:
            body["schemaUpdateOptions"] = [str(o) for o in self.schema_update_options]
        return body


class Extractor(_Operation):
    """Exports a table to objects in cloud storage."""

    kind = JobKind.EXTRACT

    def __init__(
        self,
        transport: Transport,
        params: ClientParams,
        src: TableRef,
        dst: GCSReference,
    ) -> None:
        super().__init__(transport, params)
        self.src = src
        self.dst = dst
        self.disable_header = False

    def _body(self) -> dict[str, object]:
        body = self.dst.extract_config()
        body["sourceTable"] = self.src.to_api()
        if self.disable_header:
            body["printHeader"] = False
        return body
