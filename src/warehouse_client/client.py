"""Client entry point and dataset/table handles."""

from typing import ClassVar, Self

from warehouse_client.inserter import Inserter
from warehouse_client.jobs import Job
from warehouse_client.operations import Copier, Extractor, Loader
from warehouse_client.protocols import Transport
from warehouse_client.query import Query
from warehouse_client.types.params import ClientParams
from warehouse_client.types.references import DatasetRef, GCSReference, TableRef


class Table:
    """Handle on a table; the table itself may not exist yet."""

    __slots__: ClassVar[tuple[str, str, str]] = ("_params", "_transport", "ref")

    def __init__(self, transport: Transport, params: ClientParams, ref: TableRef) -> None:
        self._transport = transport
        self._params = params
        self.ref = ref

    def __repr__(self) -> str:
        return f"Table({self.ref.fully_qualified_name!r})"

    def copier_from(self, *sources: "Table | TableRef") -> Copier:
        """Copy `sources` into this table."""
        refs = [s.ref if isinstance(s, Table) else s for s in sources]
        return Copier(self._transport, self._params, self.ref, refs)

    def loader_from(self, source: GCSReference) -> Loader:
        """Load cloud storage objects into this table."""
        return Loader(self._transport, self._params, self.ref, source)

    def extractor_to(self, dst: GCSReference) -> Extractor:
        """Export this table to cloud storage objects."""
        return Extractor(self._transport, self._params, self.ref, dst)

    def inserter(self) -> Inserter:
        """Stream rows into this table."""
        return Inserter(self._transport, self._params, self.ref)


class Dataset:
    """Handle on a dataset; the dataset itself may not exist yet."""

    __slots__: ClassVar[tuple[str, str, str]] = ("_params", "_transport", "ref")

    def __init__(self, transport: Transport, params: ClientParams, ref: DatasetRef) -> None:
        self._transport = transport
        self._params = params
        self.ref = ref

    def __repr__(self) -> str:
        return f"Dataset({self.ref.project_id + '.' + self.ref.dataset_id!r})"

    def table(self, table_id: str) -> Table:
        ref = TableRef(
            project_id=self.ref.project_id,
            dataset_id=self.ref.dataset_id,
            table_id=table_id,
        )
        return Table(self._transport, self._params, ref)


class Client:
    """Entry point for talking to the warehouse service.

    The transport carries authentication and connection handling; the
    client only describes RPCs and interprets their responses.
    """

    __slots__: ClassVar[tuple[str, str]] = ("_params", "_transport")

    _params: ClientParams
    _transport: Transport

    def __init__(self, transport: Transport, params: ClientParams) -> None:
        self._transport = transport
        self._params = params

    @classmethod
    def for_project(cls, transport: Transport, project_id: str, **settings: object) -> Self:
        """Build a client from a project id and optional `ClientParams` fields."""
        return cls(transport, ClientParams(project_id=project_id, **settings))  # type: ignore[arg-type]

    @property
    def params(self) -> ClientParams:
        return self._params

    @property
    def project_id(self) -> str:
        return self._params.project_id

    def dataset(self, dataset_id: str) -> Dataset:
        """A dataset in the client's project."""
        return self.dataset_in_project(self._params.project_id, dataset_id)

    def dataset_in_project(self, project_id: str, dataset_id: str) -> Dataset:
        ref = DatasetRef(project_id=project_id, dataset_id=dataset_id)
        return Dataset(self._transport, self._params, ref)

    def query(self, sql: str) -> Query:
        """Build a query; nothing is sent until `run` or `read`."""
        return Query(self._transport, self._params, sql)

    async def job_from_id(self, job_id: str, location: str | None = None) -> Job:
        """Look up an existing job, e.g. one started by another process."""
        return await Job.lookup(self._transport, self._params, job_id, location=location)
