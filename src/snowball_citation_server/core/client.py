"""
Semantic Scholar API client.

Direct HTTP client for the Semantic Scholar Graph API using httpx.
Every request goes through a shared semaphore that caps in-flight
calls, and transient failures are retried with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx

from ..config import Settings
from .errors import ProviderError, ProviderErrorKind
from .models import (
    ChunkFailure,
    Direction,
    EdgeBatch,
    Identifier,
    PaperInfo,
)
from .retry import with_retry

logger = logging.getLogger("snowball-citation-server")

# Semantic Scholar API base URL
BASE_URL = "https://api.semanticscholar.org/graph/v1"


def _chunked(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class SemanticScholarClient:
    """
    Async client for the Semantic Scholar API.

    Implements the provider contract used by the snowball engine:
    resolve, lookup_papers and fetch_edges.
    """

    # Fields to request for paper metadata
    PAPER_FIELDS = [
        "paperId",
        "externalIds",
        "title",
        "authors",
        "year",
        "venue",
        "journal",
        "abstract",
        "citationCount",
        "referenceCount",
    ]

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: int = 30,
        base_url: str = BASE_URL,
        max_concurrent_requests: int = 5,
        max_attempts: int = 4,
        backoff_base: float = 1.0,
        backoff_factor: float = 2.0,
        backoff_max: float = 30.0,
        edge_chunk_size: int = 20,
        edge_page_size: int = 1000,
        max_edge_pages: int = 10,
        lookup_batch_size: int = 500,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Semantic Scholar client.

        Args:
            api_key: Optional API key for higher rate limits.
            timeout: Request timeout in seconds.
            base_url: Graph API root.
            max_concurrent_requests: Cap on in-flight HTTP requests.
            max_attempts: Attempts per request before giving up.
            backoff_base: First retry delay in seconds.
            backoff_factor: Multiplier applied per further attempt.
            backoff_max: Upper bound for a single delay.
            edge_chunk_size: Frontier IDs per edge chunk.
            edge_page_size: Page size when draining references/citations.
            max_edge_pages: Page ceiling per paper and direction.
            lookup_batch_size: IDs per /paper/batch call.
            transport: Optional httpx transport (used by tests).
        """
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_factor = backoff_factor
        self.backoff_max = backoff_max
        self.edge_chunk_size = edge_chunk_size
        self.edge_page_size = edge_page_size
        self.max_edge_pages = max_edge_pages
        self.lookup_batch_size = lookup_batch_size
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SemanticScholarClient":
        return cls(
            api_key=settings.S2_API_KEY,
            timeout=settings.REQUEST_TIMEOUT,
            base_url=settings.S2_BASE_URL,
            max_concurrent_requests=settings.MAX_CONCURRENT_REQUESTS,
            max_attempts=settings.MAX_ATTEMPTS,
            backoff_base=settings.BACKOFF_BASE,
            backoff_factor=settings.BACKOFF_FACTOR,
            backoff_max=settings.BACKOFF_MAX,
            edge_chunk_size=settings.EDGE_CHUNK_SIZE,
            edge_page_size=settings.EDGE_PAGE_SIZE,
            max_edge_pages=settings.MAX_EDGE_PAGES,
            lookup_batch_size=settings.LOOKUP_BATCH_SIZE,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            headers = {}
            if self.api_key:
                headers["x-api-key"] = self.api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _parse_paper_dict(self, data: Optional[dict[str, Any]]) -> Optional[PaperInfo]:
        """
        Convert API response dict to PaperInfo. None when the paper has no ID.

        Raises:
            TypeError, ValueError: If a field has the wrong shape or type.
        """
        if not isinstance(data, dict) or not data.get("paperId"):
            return None

        external_ids = data.get("externalIds") or {}
        if not isinstance(external_ids, dict):
            raise TypeError(f"externalIds of {data['paperId']!r} is not an object")
        journal = data.get("journal") or {}
        author_list = data.get("authors") or []
        if not isinstance(author_list, list):
            raise TypeError(f"authors of {data['paperId']!r} is not a list")

        # Parse authors - API returns list of dicts with 'name' key
        authors = []
        for author in author_list:
            if isinstance(author, dict):
                authors.append(author.get("name") or "Unknown")
            else:
                authors.append(str(author))

        pmid = external_ids.get("PubMed")
        return PaperInfo(
            paper_id=data["paperId"],
            title=data.get("title") or "Unknown Title",
            authors=authors,
            year=data.get("year"),
            venue=data.get("venue") or None,
            journal=journal.get("name") if isinstance(journal, dict) else None,
            abstract=data.get("abstract"),
            doi=external_ids.get("DOI"),
            pmid=str(pmid) if pmid is not None else None,
            citation_count=data.get("citationCount"),
            reference_count=data.get("referenceCount"),
        )

    # ==================== Transport ====================

    async def _send(self, method: str, url: str, **kwargs: Any) -> Optional[Any]:
        """
        Issue one HTTP request and decode the JSON body.

        Returns None on 404. Raises ProviderError for every other failure.
        """
        client = await self._get_client()
        async with self._semaphore:
            logger.debug(f"{method} {url} {kwargs.get('params', '')}")
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                raise ProviderError(ProviderErrorKind.TIMEOUT, f"Timeout on {url}: {e}") from e
            except httpx.TransportError as e:
                raise ProviderError(
                    ProviderErrorKind.TRANSPORT, f"Transport error on {url}: {e}"
                ) from e

        status = response.status_code
        if status == 404:
            return None
        if status == 429:
            raise ProviderError(
                ProviderErrorKind.RATE_LIMITED,
                f"Rate limited on {url}",
                status_code=status,
                retry_after=self._retry_after(response),
            )
        if status in (401, 403):
            raise ProviderError(
                ProviderErrorKind.CONFIG,
                f"Provider rejected credentials ({status}) on {url}",
                status_code=status,
            )
        if status >= 500:
            raise ProviderError(
                ProviderErrorKind.TRANSPORT,
                f"Provider error {status} on {url}",
                status_code=status,
            )
        if status >= 400:
            raise ProviderError(
                ProviderErrorKind.TRANSPORT,
                f"Provider refused request ({status}) on {url}: {response.text[:200]}",
                status_code=status,
                retryable=False,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                ProviderErrorKind.MALFORMED, f"Malformed JSON from {url}: {e}"
            ) from e

    @staticmethod
    def _retry_after(response: httpx.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    async def _request(
        self,
        method: str,
        url: str,
        parse: Optional[Callable[[Any], Any]] = None,
        **kwargs: Any,
    ) -> Optional[Any]:
        """
        Send a request with retry on transient failures.

        The decoded body is passed through `parse`. A body that `parse`
        rejects (ValueError, TypeError or KeyError, which includes pydantic
        ValidationError) counts as a malformed response and is retried
        like any other transient failure.
        """

        async def attempt() -> Optional[Any]:
            data = await self._send(method, url, **kwargs)
            if data is None or parse is None:
                return data
            try:
                return parse(data)
            except (ValueError, TypeError, KeyError) as e:
                raise ProviderError(
                    ProviderErrorKind.MALFORMED, f"Unexpected payload from {url}: {e}"
                ) from e

        return await with_retry(
            attempt,
            max_attempts=self.max_attempts,
            base=self.backoff_base,
            factor=self.backoff_factor,
            maximum=self.backoff_max,
            description=f"{method} {url}",
        )

    # ==================== Provider contract ====================

    async def resolve(self, identifier: Identifier) -> list[PaperInfo]:
        """
        Look up the records matching an identifier.

        Args:
            identifier: Parsed DOI, PMID or Semantic Scholar ID.

        Returns:
            Matching papers; empty if the provider has no record.
        """
        papers = await self._request(
            "GET",
            f"/paper/{identifier.provider_query}",
            parse=self._parse_resolved,
            params={"fields": ",".join(self.PAPER_FIELDS)},
        )
        if papers is None:
            logger.warning(f"Paper not found: {identifier.raw}")
            return []
        return papers

    def _parse_resolved(self, data: Any) -> list[PaperInfo]:
        if not isinstance(data, dict):
            raise TypeError("paper record is not an object")
        paper = self._parse_paper_dict(data)
        return [paper] if paper else []

    async def lookup_papers(self, paper_ids: list[str]) -> dict[str, Optional[PaperInfo]]:
        """
        Batch fetch metadata for canonical IDs.

        Chunks that fail after retries map their IDs to None.

        Returns:
            Dict mapping paper_id to PaperInfo (or None if unavailable).
        """
        ordered = sorted(set(paper_ids))
        chunks = _chunked(ordered, self.lookup_batch_size)
        results = await asyncio.gather(
            *(self._lookup_chunk(chunk) for chunk in chunks),
            return_exceptions=True,
        )

        papers: dict[str, Optional[PaperInfo]] = {}
        for chunk, result in zip(chunks, results):
            if isinstance(result, ProviderError) and result.recoverable:
                logger.warning(f"Batch lookup failed for {len(chunk)} papers: {result}")
                papers.update({pid: None for pid in chunk})
            elif isinstance(result, BaseException):
                raise result
            else:
                papers.update(result)
        return papers

    async def _lookup_chunk(self, chunk: list[str]) -> dict[str, Optional[PaperInfo]]:
        papers = await self._request(
            "POST",
            "/paper/batch",
            parse=lambda data: self._parse_batch(chunk, data),
            params={"fields": ",".join(self.PAPER_FIELDS)},
            json={"ids": chunk},
        )
        if papers is None:
            return {pid: None for pid in chunk}
        return papers

    def _parse_batch(self, chunk: list[str], data: Any) -> dict[str, Optional[PaperInfo]]:
        # The batch endpoint answers positionally, null for unknown IDs
        if not isinstance(data, list) or len(data) != len(chunk):
            raise ValueError(f"expected a list of {len(chunk)} records")
        return {pid: self._parse_paper_dict(item) for pid, item in zip(chunk, data)}

    async def fetch_edges(self, paper_ids: set[str], direction: Direction) -> EdgeBatch:
        """
        Fetch the references or citations of many papers.

        IDs are processed in sorted chunks of `edge_chunk_size`. A chunk
        that fails after retries is reported in `failures` and contributes
        no edges; the remaining chunks still succeed.

        Raises:
            ProviderError: Only for unrecoverable (configuration) failures.
        """
        chunks = _chunked(sorted(paper_ids), self.edge_chunk_size)
        results = await asyncio.gather(
            *(self._fetch_chunk(chunk, direction) for chunk in chunks),
            return_exceptions=True,
        )

        batch = EdgeBatch(direction=direction)
        for chunk, result in zip(chunks, results):
            if isinstance(result, ProviderError) and result.recoverable:
                logger.warning(
                    f"Failed to fetch {direction.value} for {len(chunk)} papers: {result}"
                )
                batch.failures.append(
                    ChunkFailure(
                        direction=direction,
                        ids=chunk,
                        reason=result.reason.value,
                        message=str(result),
                    )
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                edges, unresolved = result
                batch.edges.update(edges)
                batch.unresolved_edges += unresolved

        logger.info(
            f"Fetched {direction.value} for {len(paper_ids)} papers "
            f"({len(chunks)} chunks, {len(batch.failures)} failed)"
        )
        return batch

    async def _fetch_chunk(
        self,
        chunk: list[str],
        direction: Direction,
    ) -> tuple[dict[str, list[PaperInfo]], int]:
        """Drain every paper in a chunk; the chunk fails if any paper fails."""
        results = await asyncio.gather(
            *(self._drain_edges(pid, direction) for pid in chunk),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            if not (isinstance(error, ProviderError) and error.recoverable):
                raise error
        if errors:
            raise errors[0]

        edges: dict[str, list[PaperInfo]] = {}
        unresolved = 0
        for pid, (papers, missing) in zip(chunk, results):
            edges[pid] = papers
            unresolved += missing
        return edges, unresolved

    async def _drain_edges(
        self,
        paper_id: str,
        direction: Direction,
    ) -> tuple[list[PaperInfo], int]:
        """
        Follow pagination until the provider reports no further page.

        At most `max_edge_pages` pages are read per paper.

        Returns:
            (linked papers in provider order, count of entries without an ID)

        Raises:
            ProviderError: MALFORMED if the page ceiling is reached.
        """
        papers: list[PaperInfo] = []
        unresolved = 0
        offset = 0

        for _ in range(self.max_edge_pages):
            page = await self._request(
                "GET",
                f"/paper/{paper_id}/{direction.value}",
                parse=lambda data, at=offset: self._parse_edge_page(data, direction, at),
                params={
                    "fields": ",".join(self.PAPER_FIELDS),
                    "offset": offset,
                    "limit": self.edge_page_size,
                },
            )
            if page is None:
                logger.warning(f"Paper not found for {direction.value}: {paper_id}")
                return papers, unresolved

            linked, missing, next_offset = page
            papers.extend(linked)
            unresolved += missing
            if next_offset is None or not (linked or missing):
                return papers, unresolved
            offset = next_offset

        raise ProviderError(
            ProviderErrorKind.MALFORMED,
            f"{direction.value} of {paper_id} exceed {self.max_edge_pages} pages",
            retryable=False,
        )

    def _parse_edge_page(
        self,
        page: Any,
        direction: Direction,
        offset: int,
    ) -> tuple[list[PaperInfo], int, Optional[int]]:
        """
        Decode one page of references or citations.

        Returns:
            (linked papers, entries without an ID, offset of the next page or None)
        """
        if not isinstance(page, dict) or not isinstance(page.get("data"), list):
            raise ValueError("page has no 'data' list")

        papers: list[PaperInfo] = []
        unresolved = 0
        for item in page["data"]:
            if not isinstance(item, dict):
                raise TypeError(f"edge record is not an object: {item!r}")
            linked = self._parse_paper_dict(item.get(direction.nested_key))
            if linked is None:
                unresolved += 1
            else:
                papers.append(linked)

        next_offset = page.get("next")
        if next_offset is not None:
            # bool is an int subclass
            if isinstance(next_offset, bool) or not isinstance(next_offset, int):
                raise TypeError(f"'next' is not an integer: {next_offset!r}")
            if next_offset <= offset:
                raise ValueError(f"'next' ({next_offset}) does not advance past offset {offset}")
        return papers, unresolved, next_offset

    async def close(self) -> None:
        """Close the client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
