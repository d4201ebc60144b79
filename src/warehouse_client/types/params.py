"""Parameter types for client and job configuration.

Params define how the client operates (backoff, page sizes, defaults),
while the job option enums are shared by queries, loads, copies and extracts.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class BackoffParams(BaseModel, frozen=True):
    """Exponential backoff bounds for status polling."""

    initial: float = Field(default=1.0, gt=0)
    """First delay, in seconds."""

    multiplier: float = Field(default=2.0, ge=1.0)
    """Growth factor applied per attempt."""

    maximum: float = Field(default=60.0, gt=0)
    """Upper bound on any single delay, in seconds."""

    jitter: float = Field(default=1.0, ge=0.0, le=1.0)
    """Fraction of each delay that is randomized (1.0 is full jitter)."""


class ClientParams(BaseModel, frozen=True):
    """Client-wide settings."""

    project_id: str
    """Project that owns submitted jobs and is billed for them."""

    location: str | None = None
    """Default location for jobs; None lets the service decide."""

    backoff: BackoffParams = Field(default_factory=BackoffParams)
    """Polling backoff used by `Job.wait`."""

    fast_path_timeout_ms: int = Field(default=10_000, gt=0)
    """How long the fast query path may block server-side before handing
    back a job reference instead of results."""

    page_size: int | None = Field(default=None, gt=0)
    """Rows requested per result page; None leaves the service default."""

    insert_batch_size: int = Field(default=500, gt=0)
    """Rows sent per streaming-insert RPC."""

    use_legacy_sql: bool = False
    """Default SQL dialect for queries."""


class JobKind(StrEnum):
    """Kinds of asynchronous work the service runs."""

    QUERY = "query"
    LOAD = "load"
    COPY = "copy"
    EXTRACT = "extract"


class CreateDisposition(StrEnum):
    """Whether a job may create its destination table."""

    CREATE_IF_NEEDED = "CREATE_IF_NEEDED"
    CREATE_NEVER = "CREATE_NEVER"


class WriteDisposition(StrEnum):
    """How a job treats existing data in its destination table."""

    WRITE_APPEND = "WRITE_APPEND"
    WRITE_TRUNCATE = "WRITE_TRUNCATE"
    WRITE_EMPTY = "WRITE_EMPTY"


class QueryPriority(StrEnum):
    INTERACTIVE = "INTERACTIVE"
    BATCH = "BATCH"


class SchemaUpdateOption(StrEnum):
    """Schema changes a load or query may apply to its destination."""

    ALLOW_FIELD_ADDITION = "ALLOW_FIELD_ADDITION"
    ALLOW_FIELD_RELAXATION = "ALLOW_FIELD_RELAXATION"


class CopyOperation(StrEnum):
    COPY = "COPY"
    SNAPSHOT = "SNAPSHOT"
    RESTORE = "RESTORE"
    CLONE = "CLONE"
