"""Tests for arXiv paper lookup.

Unit tests use httpx.MockTransport with canned Atom feeds.
"""

import httpx
import pytest

from .lib import (
    ArxivClient,
    PaperLookupError,
    PaperNotFoundError,
    extract_arxiv_id,
    parse_atom_feed,
)

API_URL = "http://arxiv.test/api/query"

ATTENTION_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>arXiv Query</title>
  <entry>
    <id>http://arxiv.org/abs/1706.03762v7</id>
    <published>2017-06-12T17:57:34Z</published>
    <title>Attention Is All
      You Need</title>
    <summary>  The dominant sequence transduction models are based on
      complex recurrent or convolutional neural networks.</summary>
    <author><name>Ashish Vaswani</name></author>
    <author><name>Noam Shazeer</name></author>
    <link href="http://arxiv.org/abs/1706.03762v7" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/1706.03762v7" rel="related"/>
  </entry>
</feed>
"""

EMPTY_FEED = '<feed xmlns="http://www.w3.org/2005/Atom"><title>q</title></feed>'

ERROR_FEED = """<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_bad</id>
    <title>Error</title>
    <summary>incorrect id format for bad</summary>
  </entry>
</feed>
"""


def make_client(handler) -> ArxivClient:
    return ArxivClient(
        base_url=API_URL,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestExtractArxivId:
    """Tests for arXiv id extraction."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("https://arxiv.org/abs/1706.03762", "1706.03762"),
            ("https://arxiv.org/pdf/1706.03762v7.pdf", "1706.03762v7"),
            ("https://arxiv.org/abs/1706.03762?context=cs", "1706.03762"),
            ("see https://arxiv.org/abs/2301.01234 for details", "2301.01234"),
            ("arXiv:1706.03762", "1706.03762"),
            ("2401.12345v2", "2401.12345v2"),
            ("hep-th/9901001", "hep-th/9901001"),
        ],
    )
    def test_ids(self, query, expected):
        """Links, references and bare ids are recognised."""
        assert extract_arxiv_id(query) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("query", ["attention mechanisms", "protein folding 2024"])
    def test_topics(self, query):
        """Free-text topics carry no id."""
        assert extract_arxiv_id(query) is None


class TestParseAtomFeed:
    """Tests for Atom parsing."""

    @pytest.mark.unit
    def test_entry_fields(self):
        """Entry fields are extracted with whitespace collapsed."""
        (paper,) = parse_atom_feed(ATTENTION_FEED)
        assert paper.id == "1706.03762v7"
        assert paper.title == "Attention Is All You Need"
        assert paper.abstract.startswith("The dominant sequence")
        assert "\n" not in paper.abstract
        assert paper.authors == ["Ashish Vaswani", "Noam Shazeer"]
        assert paper.published_date == "2017-06-12"
        assert paper.pdf_url == "http://arxiv.org/pdf/1706.03762v7"
        assert paper.abs_url == "http://arxiv.org/abs/1706.03762v7"

    @pytest.mark.unit
    def test_error_entries_skipped(self):
        """API error entries are not papers."""
        assert parse_atom_feed(ERROR_FEED) == []

    @pytest.mark.unit
    def test_malformed_xml(self):
        """Broken XML raises PaperLookupError."""
        with pytest.raises(PaperLookupError):
            parse_atom_feed("<feed>")


class TestArxivClient:
    """Tests for ArxivClient."""

    @pytest.mark.unit
    async def test_lookup_by_link(self):
        """Links are fetched by id."""
        seen = []

        def handler(request):
            seen.append(request.url.params)
            return httpx.Response(200, text=ATTENTION_FEED)

        paper = await make_client(handler).lookup("https://arxiv.org/abs/1706.03762")
        assert paper.title == "Attention Is All You Need"
        assert seen[0]["id_list"] == "1706.03762"

    @pytest.mark.unit
    async def test_lookup_by_topic(self):
        """Topics are searched across all fields."""
        seen = []

        def handler(request):
            seen.append(request.url.params)
            return httpx.Response(200, text=ATTENTION_FEED)

        paper = await make_client(handler).lookup("attention translation")
        assert paper.id == "1706.03762v7"
        assert seen[0]["search_query"] == "all:attention translation"
        assert seen[0]["max_results"] == "1"

    @pytest.mark.unit
    async def test_topic_not_found(self):
        """An empty feed raises PaperNotFoundError."""
        client = make_client(lambda r: httpx.Response(200, text=EMPTY_FEED))
        with pytest.raises(PaperNotFoundError):
            await client.lookup("nothing matches this")

    @pytest.mark.unit
    async def test_bad_id_not_found(self):
        """An error entry for an id is reported as not found."""
        client = make_client(lambda r: httpx.Response(200, text=ERROR_FEED))
        with pytest.raises(PaperNotFoundError):
            await client.fetch("bad")

    @pytest.mark.unit
    async def test_http_error(self):
        """Non-2xx responses raise PaperLookupError."""
        client = make_client(lambda r: httpx.Response(503, text="busy"))
        with pytest.raises(PaperLookupError) as exc_info:
            await client.lookup("attention")
        assert exc_info.value.status_code == 503

    @pytest.mark.unit
    async def test_transport_error(self):
        """Connection errors raise PaperLookupError."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(PaperLookupError):
            await make_client(handler).lookup("attention")
