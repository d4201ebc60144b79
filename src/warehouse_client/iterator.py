"""Lazy, forward-only iteration over paged query results."""

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, Field

from warehouse_client.codec import decode
from warehouse_client.types.values import Schema

if TYPE_CHECKING:
    from warehouse_client.jobs import Job

logger = logging.getLogger(__name__)


class Page(BaseModel, frozen=True):
    """One page of a result set as returned by the service."""

    schema_: Schema = Field(alias="schema")
    rows: list[dict[str, object]] = Field(default_factory=list)
    page_token: str | None = None
    total_rows: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, object]) -> Self:
        total = payload.get("totalRows")
        return cls(
            schema=Schema.from_api(payload.get("schema")),  # type: ignore[arg-type]
            rows=list(payload.get("rows") or []),  # type: ignore[call-overload]
            page_token=payload.get("pageToken") or None,  # type: ignore[arg-type]
            total_rows=int(total) if total is not None else None,  # type: ignore[call-overload]
        )


type PageFetcher = Callable[[str | None], Awaitable[Page]]


class RowIterator:
    """Async iterator over decoded rows.

    Holds at most one page in memory and fetches the next one only when the
    current page is used up. Once exhausted it stays exhausted.

    Rows are decoded with the schema that came with the result set, into the
    shape given by `into` (see `codec.decode`).
    """

    __slots__ = ("_exhausted", "_fetch", "_into", "_job", "_page", "_pos", "_started")

    def __init__(
        self,
        fetch: PageFetcher | None,
        into: Any = list,
        first_page: Page | None = None,
        job: "Job | None" = None,
    ) -> None:
        self._fetch = fetch
        self._into = into
        self._job = job
        self._page = first_page
        self._pos = 0
        self._started = first_page is not None
        self._exhausted = False

    @property
    def schema(self) -> Schema:
        """Schema of the result set; empty until the first page arrives."""
        return self._page.schema_ if self._page else Schema()

    @property
    def total_rows(self) -> int | None:
        return self._page.total_rows if self._page else None

    @property
    def page_token(self) -> str | None:
        """Token of the page after the one currently held."""
        return self._page.page_token if self._page else None

    @property
    def job(self) -> "Job | None":
        """The job backing the results, if there is one."""
        return self._job

    async def _advance(self) -> bool:
        if self._started and (self._page is None or self._page.page_token is None):
            return False
        if self._fetch is None:
            return False
        token = self._page.page_token if self._page else None
        page = await self._fetch(token)
        if self._page is not None and not page.schema_.fields:
            page = page.model_copy(update={"schema_": self._page.schema_})
        logger.debug("fetched result page with %d rows (next token: %s)", len(page.rows), page.page_token)
        self._page = page
        self._pos = 0
        self._started = True
        return True

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> Any:
        if self._exhausted:
            raise StopAsyncIteration
        while self._page is None or self._pos >= len(self._page.rows):
            if not await self._advance():
                self._exhausted = True
                self._page = self._page.model_copy(update={"rows": []}) if self._page else None
                raise StopAsyncIteration
        row = self._page.rows[self._pos]
        self._pos += 1
        return decode(self._page.schema_, row, self._into)

    async def collect(self) -> list[Any]:
        """Drain the remaining rows into a list."""
        return [row async for row in self]
