"""Reference types naming service-side resources.

A reference may point at something that does not exist yet; building one
never issues an RPC.
"""

from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field

from warehouse_client.types.values import Schema


class DatasetRef(BaseModel, frozen=True):
    """A dataset within a project."""

    project_id: str
    dataset_id: str

    def to_api(self) -> dict[str, object]:
        return {"projectId": self.project_id, "datasetId": self.dataset_id}


class TableRef(BaseModel, frozen=True):
    """A table within a dataset."""

    project_id: str
    dataset_id: str
    table_id: str

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.project_id}.{self.dataset_id}.{self.table_id}"

    def to_api(self) -> dict[str, object]:
        return {
            "projectId": self.project_id,
            "datasetId": self.dataset_id,
            "tableId": self.table_id,
        }

    @classmethod
    def from_api(cls, payload: dict[str, object]) -> Self:
        return cls(
            project_id=str(payload["projectId"]),
            dataset_id=str(payload["datasetId"]),
            table_id=str(payload["tableId"]),
        )

    def __str__(self) -> str:
        return self.fully_qualified_name


class JobRef(BaseModel, frozen=True):
    """Identity of a job: opaque id plus the location it runs in."""

    project_id: str
    job_id: str
    location: str | None = None

    def to_api(self) -> dict[str, object]:
        out: dict[str, object] = {"projectId": self.project_id, "jobId": self.job_id}
        if self.location:
            out["location"] = self.location
        return out

    @classmethod
    def from_api(cls, payload: dict[str, object]) -> Self:
        location = payload.get("location")
        return cls(
            project_id=str(payload["projectId"]),
            job_id=str(payload["jobId"]),
            location=str(location) if location else None,
        )


class DataFormat(StrEnum):
    """File formats for load sources and extract destinations."""

    CSV = "CSV"
    JSON = "NEWLINE_DELIMITED_JSON"
    AVRO = "AVRO"
    PARQUET = "PARQUET"
    ORC = "ORC"


class Compression(StrEnum):
    NONE = "NONE"
    GZIP = "GZIP"
    DEFLATE = "DEFLATE"
    SNAPPY = "SNAPPY"


class GCSReference(BaseModel, populate_by_name=True):
    """One or more objects in cloud storage, used as a load source or an
    extract destination.

    Only the options relevant to the job it is attached to are sent.
    """

    uris: list[str]
    """Object URIs; a single `*` wildcard is allowed in each."""

    source_format: DataFormat = DataFormat.CSV
    """File format of the objects."""

    compression: Compression = Compression.NONE
    """Compression applied to extracted objects."""

    field_delimiter: str = ","
    """CSV column separator."""

    skip_leading_rows: int = Field(default=0, ge=0)
    """CSV header rows to skip when loading."""

    allow_jagged_rows: bool = False
    """Accept CSV rows missing trailing optional columns."""

    allow_quoted_newlines: bool = False
    """Accept quoted CSV values containing newlines."""

    ignore_unknown_values: bool = False
    """Ignore values that do not match the table schema."""

    max_bad_records: int = Field(default=0, ge=0)
    """Bad records tolerated before the load fails."""

    encoding: str = "UTF-8"
    """Character encoding of CSV data (UTF-8 or ISO-8859-1)."""

    quote: str | None = None
    """CSV quote character; None leaves the service default."""

    schema_: Schema | None = Field(default=None, alias="schema")
    """Schema of the source data, when not autodetected."""

    autodetect: bool = False
    """Let the service infer the schema from the data."""

    def load_config(self) -> dict[str, object]:
        cfg: dict[str, object] = {
            "sourceUris": list(self.uris),
            "sourceFormat": str(self.source_format),
        }
        if self.source_format is DataFormat.CSV:
            cfg.update(
                fieldDelimiter=self.field_delimiter,
                skipLeadingRows=self.skip_leading_rows,
                allowJaggedRows=self.allow_jagged_rows,
                allowQuotedNewlines=self.allow_quoted_newlines,
                encoding=self.encoding,
            )
            if self.quote is not None:
                cfg["quote"] = self.quote
        if self.ignore_unknown_values:
            cfg["ignoreUnknownValues"] = True
        if self.max_bad_records:
            cfg["maxBadRecords"] = self.max_bad_records
        if self.schema_ is not None:
            cfg["schema"] = self.schema_.to_api()
        if self.autodetect:
            cfg["autodetect"] = True
        return cfg

    def extract_config(self) -> dict[str, object]:
        cfg: dict[str, object] = {
            "destinationUris": list(self.uris),
            "destinationFormat": str(self.source_format),
        }
        if self.source_format is DataFormat.CSV:
            cfg["fieldDelimiter"] = self.field_delimiter
        if self.compression is not Compression.NONE:
            cfg["compression"] = str(self.compression)
        return cfg
