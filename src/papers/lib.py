"""arXiv paper metadata lookup.

Resolves a query (an arXiv link, an identifier or a free-text topic) to the
paper's title, abstract and links using the public arXiv Atom API.
"""

import logging
import re
from xml.sax import SAXException

import feedparser
import httpx
from pydantic import BaseModel, Field

from src.config import EnvVar, get_environment
from src.core.errors import PipelineError, ServiceCallFailure

logger = logging.getLogger(__name__)

DEFAULT_ARXIV_API_URL = "http://export.arxiv.org/api/query"

# New-style ids (2301.01234, optional version) and old-style (hep-th/9901001)
_ID_PATTERNS = [
    re.compile(r"arxiv\.org/(?:abs|pdf)/([\w.\-/]+?)(?:\.pdf)?(?=$|[\s?#])", re.I),
    re.compile(r"arxiv:\s*([\w.\-/]+)", re.I),
    re.compile(r"^\s*(\d{4}\.\d{4,5}(?:v\d+)?)\s*$"),
    re.compile(r"^\s*([a-z\-]+(?:\.[A-Z]{2})?/\d{7}(?:v\d+)?)\s*$"),
]


class PaperLookupError(ServiceCallFailure):
    """The metadata source could not be reached or returned garbage."""


class PaperNotFoundError(PipelineError, LookupError):
    """No paper matches the query."""


class PaperMetadata(BaseModel):
    """Metadata for one paper."""

    id: str = Field(..., description="arXiv identifier, e.g. 1706.03762v7")
    title: str
    abstract: str
    authors: list[str] = Field(default_factory=list)
    published_date: str | None = None
    pdf_url: str | None = None
    abs_url: str | None = None


def extract_arxiv_id(query: str) -> str | None:
    """Pull an arXiv id out of a link, an `arXiv:` reference or a bare id.

    Example:
        >>> extract_arxiv_id("https://arxiv.org/pdf/1706.03762v7.pdf")
        '1706.03762v7'
        >>> extract_arxiv_id("transformers for translation") is None
        True
    """
    for pattern in _ID_PATTERNS:
        match = pattern.search(query.strip())
        if match:
            return match.group(1).rstrip("/.")
    return None


def _clean(value: str | None) -> str:
    return " ".join((value or "").split())


def parse_atom_feed(xml_text: str) -> list[PaperMetadata]:
    """Parse an arXiv Atom feed into paper metadata.

    Raises:
        PaperLookupError: If the document is not well-formed XML.
    """
    feed = feedparser.parse(xml_text)
    if feed.bozo and not feed.entries:
        if isinstance(feed.get("bozo_exception"), SAXException):
            raise PaperLookupError(
                f"arXiv returned malformed XML: {feed.bozo_exception}"
            )

    papers = []
    for entry in feed.entries:
        entry_id = entry.get("id", "")
        # The API reports bad ids as a single error entry
        if not entry_id or "/api/errors" in entry_id:
            logger.debug(f"Skipping arXiv error entry: {entry.get('summary')}")
            continue

        pdf_url = None
        abs_url = None
        for link in entry.get("links", []):
            if link.get("title") == "pdf":
                pdf_url = link.get("href")
            elif link.get("rel") == "alternate":
                abs_url = link.get("href")

        papers.append(
            PaperMetadata(
                id=entry_id.rsplit("/abs/", 1)[-1],
                title=_clean(entry.get("title")),
                abstract=_clean(entry.get("summary")),
                authors=[
                    _clean(author.get("name"))
                    for author in entry.get("authors", [])
                    if author.get("name")
                ],
                published_date=entry.get("published", "")[:10] or None,
                pdf_url=pdf_url,
                abs_url=abs_url or entry_id,
            )
        )
    return papers


class ArxivClient:
    """Async client for the arXiv query API.

    Example:
        >>> paper = await ArxivClient().lookup("https://arxiv.org/abs/1706.03762")
        >>> paper.title
        'Attention Is All You Need'
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize arXiv client.

        Args:
            base_url: Query endpoint. Defaults to ARXIV_API_URL.
            timeout: Request timeout in seconds.
            client: Pre-built httpx client, mainly for tests.
        """
        self.base_url = base_url or get_environment(EnvVar.ARXIV_API_URL)
        self.timeout = timeout
        self._client = client

    async def fetch(self, arxiv_id: str) -> PaperMetadata:
        """Fetch one paper by id.

        Raises:
            PaperNotFoundError: If arXiv has no such paper.
            PaperLookupError: On transport or HTTP errors.
        """
        papers = await self._query({"id_list": arxiv_id, "max_results": 1})
        if not papers:
            raise PaperNotFoundError(f"No arXiv paper with id '{arxiv_id}'")
        return papers[0]

    async def search(self, topic: str, max_results: int = 1) -> list[PaperMetadata]:
        """Search all fields for a topic, most relevant first."""
        return await self._query(
            {
                "search_query": f"all:{topic}",
                "max_results": max_results,
                "sortBy": "relevance",
            }
        )

    async def lookup(self, query: str) -> PaperMetadata:
        """Resolve a link, id or topic to a single paper.

        Raises:
            PaperNotFoundError: If nothing matches.
            PaperLookupError: On transport or HTTP errors.
        """
        arxiv_id = extract_arxiv_id(query)
        if arxiv_id:
            logger.info(f"Fetching arXiv paper {arxiv_id}")
            return await self.fetch(arxiv_id)

        logger.info(f"Searching arXiv for '{query}'")
        papers = await self.search(query)
        if not papers:
            raise PaperNotFoundError(f"No arXiv paper found for '{query}'")
        return papers[0]

    async def _query(self, params: dict) -> list[PaperMetadata]:
        try:
            if self._client is not None:
                response = await self._client.get(self.base_url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.base_url, params=params)
        except httpx.HTTPError as e:
            raise PaperLookupError(f"arXiv request failed: {e}") from e

        if not response.is_success:
            raise PaperLookupError(
                f"arXiv returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        return parse_atom_feed(response.text)


__all__ = [
    "DEFAULT_ARXIV_API_URL",
    "PaperLookupError",
    "PaperNotFoundError",
    "PaperMetadata",
    "extract_arxiv_id",
    "parse_atom_feed",
    "ArxivClient",
]
