"""Tests for the request service.

arXiv and the image service are replaced by httpx.MockTransport handlers;
the compiler is an AsyncMock returning canned results.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.core.errors import InputContractViolation
from src.generation import GenerationClient, GenerationClientConfig
from src.llm import CompilationMode, CompilationResult, SummaryCompiler
from src.papers import ArxivClient
from src.schema import AudienceTier
from src.trace import MemoryTraceStore, TraceLayer

from .lib import (
    QueryType,
    RequestService,
    RequestStatus,
    SummaryMode,
    UnknownRequestError,
    classify_query,
)

IMAGE_URL = "https://cdn.test/poster.png"
LINK = "https://arxiv.org/abs/1706.03762"

FEED = """<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/abs/1706.03762v7</id>
    <published>2017-06-12T17:57:34Z</published>
    <title>Attention Is All You Need</title>
    <summary>The dominant sequence transduction models are based on complex
      recurrent or convolutional neural networks. We propose a new simple
      network architecture based solely on attention mechanisms. Experiments
      show these models to be superior in quality while being faster to
      train.</summary>
    <author><name>Ashish Vaswani</name></author>
    <link href="http://arxiv.org/abs/1706.03762v7" rel="alternate"/>
  </entry>
</feed>
"""

EMPTY_FEED = '<feed xmlns="http://www.w3.org/2005/Atom"><title>q</title></feed>'


class FakeServices:
    """One handler serving both the arXiv API and the image service."""

    def __init__(self, feed: str = FEED, image_status: int = 200):
        self.feed = feed
        self.image_status = image_status
        self.arxiv_params: list[dict] = []
        self.submissions: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "arxiv.test":
            self.arxiv_params.append(dict(request.url.params))
            return httpx.Response(200, text=self.feed)
        if request.url.path.endswith("/image/generate"):
            self.submissions.append(json.loads(request.content))
            if self.image_status != 200:
                return httpx.Response(self.image_status, text="down")
            return httpx.Response(
                200, json={"request_id": "r1", "result": {"image_url": IMAGE_URL}}
            )
        return httpx.Response(404)


@pytest.fixture
def services():
    return FakeServices()


def make_service(services, compiler=None, trace_store=None) -> RequestService:
    transport = httpx.MockTransport(services)
    papers = ArxivClient(
        base_url="http://arxiv.test/api/query",
        client=httpx.AsyncClient(transport=transport),
    )
    generation = GenerationClient(
        GenerationClientConfig(
            api_key="k", base_url="https://fibo.test/v2", poll_interval=0
        ),
        client=httpx.AsyncClient(transport=transport),
    )
    return RequestService(
        papers, generation, compiler=compiler, trace_store=trace_store
    )


def make_compiler(result: CompilationResult) -> MagicMock:
    compiler = MagicMock(spec=SummaryCompiler)
    compiler.compile = AsyncMock(return_value=result)
    return compiler


class TestClassifyQuery:
    """Tests for query classification."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("https://arxiv.org/abs/1706.03762", QueryType.ARXIV_LINK),
            ("HTTPS://ARXIV.ORG/pdf/1706.03762", QueryType.ARXIV_LINK),
            ("attention is all you need", QueryType.TOPIC),
            ("1706.03762", QueryType.TOPIC),
        ],
    )
    def test_classify(self, query, expected):
        """Only arxiv.org links count as links."""
        assert classify_query(query) == expected


class TestCreateRequest:
    """Tests for request registration and validation."""

    @pytest.mark.unit
    async def test_creates_pending_record(self, services):
        """New records start pending and are retrievable by id."""
        service = make_service(services)
        record = await service.create_request(
            LINK, "beginner", summary_mode="fallback", run=False
        )
        assert record.status == RequestStatus.PENDING
        assert record.query_type == QueryType.ARXIV_LINK
        assert record.summary_mode == SummaryMode.FALLBACK
        assert record.audience_tier == AudienceTier.BEGINNER
        assert record.request_id.startswith("gen_")
        assert service.get_status(record.request_id) is record
        assert service.list_requests() == [record]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "query,tier,mode",
        [
            ("", "beginner", "fallback"),
            ("   ", "beginner", "fallback"),
            ("transformers", "expert", "fallback"),
            ("transformers", "beginner", "magic"),
        ],
    )
    async def test_rejects_bad_input(self, services, query, tier, mode):
        """Empty queries and unknown tiers or modes are rejected."""
        service = make_service(services)
        with pytest.raises(InputContractViolation):
            await service.create_request(query, tier, summary_mode=mode, run=False)
        assert service.list_requests() == []

    @pytest.mark.unit
    async def test_compiler_mode_needs_compiler(self, services):
        """Compiler mode without a compiler is a contract violation."""
        service = make_service(services)
        with pytest.raises(InputContractViolation, match="fallback"):
            await service.create_request("transformers", "beginner", run=False)

    @pytest.mark.unit
    async def test_evicts_oldest_finished_records(self, services):
        """Past the limit, finished records go first; running ones stay."""
        service = make_service(services)
        service._max_records = 2
        running = await service.create_request(
            "first", "beginner", summary_mode="fallback", run=False
        )
        done = await service.create_request(
            "second", "beginner", summary_mode="fallback", run=False
        )
        done.status = RequestStatus.COMPLETE

        latest = await service.create_request(
            "third", "beginner", summary_mode="fallback", run=False
        )

        assert service.list_requests() == [running, latest]
        with pytest.raises(UnknownRequestError):
            service.get_status(done.request_id)

    @pytest.mark.unit
    def test_unknown_request(self, services):
        """Unknown ids raise UnknownRequestError, which is also a KeyError."""
        service = make_service(services)
        with pytest.raises(UnknownRequestError):
            service.get_status("gen_0_missing")
        with pytest.raises(KeyError):
            service.get_status("gen_0_missing")


class TestRunPipeline:
    """Tests for the background pipeline."""

    @pytest.mark.unit
    async def test_fallback_completes(self, services):
        """A link request in fallback mode ends complete with an image."""
        service = make_service(services)
        record = await service.create_request(
            LINK, "beginner", summary_mode="fallback"
        )
        await service.wait(record.request_id)

        assert record.status == RequestStatus.COMPLETE
        assert record.error is None
        assert record.image_url == IMAGE_URL
        assert record.arxiv_id == "1706.03762v7"
        assert record.paper_title == "Attention Is All You Need"
        assert record.paper_url == "http://arxiv.org/abs/1706.03762v7"
        assert record.summary["title"] == "Attention Is All You Need"
        assert services.arxiv_params[0]["id_list"] == "1706.03762"
        assert len(services.submissions) == 1

        view = record.to_dict()
        assert view["status"] == "complete"
        assert view["image_url"] == IMAGE_URL

    @pytest.mark.unit
    async def test_topic_search(self, services):
        """Topic queries go through arXiv search."""
        service = make_service(services)
        record = await service.create_request(
            "attention is all you need", "intermediate", summary_mode="fallback"
        )
        await service.wait(record.request_id)
        assert record.status == RequestStatus.COMPLETE
        assert services.arxiv_params[0]["search_query"].startswith("all:")

    @pytest.mark.unit
    async def test_paper_not_found(self):
        """A topic with no results fails at the lookup stage."""
        services = FakeServices(feed=EMPTY_FEED)
        service = make_service(services)
        record = await service.create_request(
            "nothing matches this", "beginner", summary_mode="fallback", run=False
        )
        await service.run_pipeline(record.request_id)

        assert record.status == RequestStatus.FAILED
        assert record.error.startswith("paper lookup stage failed:")
        assert services.submissions == []
        assert "image_url" not in record.to_dict()

    @pytest.mark.unit
    async def test_compiler_mode(self, services, sample_input):
        """Compiler mode passes title, abstract and metadata to the compiler."""
        compiler = make_compiler(
            CompilationResult(
                success=True,
                mode=CompilationMode.TWO_PASS,
                data=sample_input,
                attempts=1,
            )
        )
        service = make_service(services, compiler=compiler)
        record = await service.create_request(
            LINK, "beginner", run=False
        )
        await service.run_pipeline(record.request_id)

        assert record.status == RequestStatus.COMPLETE
        text, metadata = compiler.compile.await_args.args
        assert text.startswith("Title: Attention Is All You Need")
        assert "Abstract: The dominant" in text
        assert metadata.source_id == "1706.03762v7"
        assert metadata.audience_tier == AudienceTier.BEGINNER

    @pytest.mark.unit
    async def test_compiler_failure_skips_generation(self, services):
        """A failed compilation never reaches the image service."""
        compiler = make_compiler(
            CompilationResult(
                success=False,
                mode=CompilationMode.TWO_PASS,
                errors=["summary.concepts: too short"],
                attempts=3,
            )
        )
        service = make_service(services, compiler=compiler)
        record = await service.create_request(
            LINK, "beginner", run=False
        )
        await service.run_pipeline(record.request_id)

        assert record.status == RequestStatus.FAILED
        assert record.error.startswith("summary stage failed after 3 attempt(s)")
        assert "summary.concepts" in record.error
        assert services.submissions == []

    @pytest.mark.unit
    async def test_generation_failure(self):
        """Image service errors surface with the generation stage named."""
        services = FakeServices(image_status=500)
        service = make_service(services)
        record = await service.create_request(
            LINK, "beginner", summary_mode="fallback", run=False
        )
        await service.run_pipeline(record.request_id)

        assert record.status == RequestStatus.FAILED
        assert record.error.startswith("generation stage failed:")
        assert record.image_url is None

    @pytest.mark.unit
    async def test_unexpected_error_still_fails_record(self, services):
        """Errors outside the pipeline taxonomy still end the request."""
        service = make_service(services)
        service._orchestrator.generate = AsyncMock(side_effect=OSError("disk full"))
        record = await service.create_request(
            LINK, "beginner", summary_mode="fallback"
        )
        await service.wait(record.request_id)

        assert record.status == RequestStatus.FAILED
        assert record.error == "summarizing failed: disk full"

    @pytest.mark.unit
    async def test_unwritable_output_dir(self, services, tmp_path):
        """A poster that cannot be saved locally still completes."""
        blocked = tmp_path / "output"
        blocked.write_text("not a directory")
        transport = httpx.MockTransport(services)
        service = RequestService(
            ArxivClient(
                base_url="http://arxiv.test/api/query",
                client=httpx.AsyncClient(transport=transport),
            ),
            GenerationClient(
                GenerationClientConfig(
                    api_key="k", base_url="https://fibo.test/v2", poll_interval=0
                ),
                client=httpx.AsyncClient(transport=transport),
            ),
            output_dir=blocked,
        )
        record = await service.create_request(
            LINK, "beginner", summary_mode="fallback"
        )
        await service.wait(record.request_id)

        assert record.status == RequestStatus.COMPLETE
        assert record.image_url == IMAGE_URL

    @pytest.mark.unit
    async def test_status_follows_orchestrator(self, services):
        """Orchestrator statuses are mirrored onto the record."""
        service = make_service(services)
        record = await service.create_request(
            LINK, "beginner", summary_mode="fallback", run=False
        )
        seen = []
        original = service._set_status

        def spy(rec, status):
            seen.append(status)
            original(rec, status)

        service._set_status = spy
        await service.run_pipeline(record.request_id)

        assert seen == [
            RequestStatus.FINDING_PAPER,
            RequestStatus.SUMMARIZING,
            RequestStatus.GENERATING_LAYOUT,
            RequestStatus.GENERATING_PROMPT,
            RequestStatus.GENERATING_FINAL,
            RequestStatus.COMPLETE,
        ]

    @pytest.mark.unit
    async def test_traces_request_and_paper(self, services):
        """Request, paper and pipeline layers share one trace id."""
        store = MemoryTraceStore()
        service = make_service(services, trace_store=store)
        record = await service.create_request(
            LINK, "beginner", summary_mode="fallback", run=False
        )
        await service.run_pipeline(record.request_id)

        rid = record.request_id
        assert (rid, TraceLayer.INPUT, "request") in store.records
        assert (rid, TraceLayer.INPUT, "paper") in store.records
        assert TraceLayer.FINAL in store.layers(rid)
