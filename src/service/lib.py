"""Caller-facing request service.

Accepts a query (an arXiv link or a topic) and an audience tier, then runs
paper lookup -> summary compilation -> poster orchestration in the
background while callers poll the request status.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from src.config import get_available_llm_providers, get_output_dir, get_trace_dir
from src.core.errors import InputContractViolation, PipelineError
from src.generation import GenerationClient, GenerationClientConfig
from src.llm import (
    CompilationMetadata,
    CompilerConfig,
    SummaryCompiler,
    build_fallback_input,
)
from src.orchestrator import (
    GenerationStatus,
    PosterOrchestrator,
    generate_request_id,
)
from src.papers import ArxivClient, PaperMetadata
from src.schema import AudienceTier, CompiledInput
from src.trace import NullTraceStore, TraceLayer, TraceStore, create_trace_store

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 1000


class RequestStatus(str, Enum):
    """Request status: the orchestrator's statuses plus the steps before it."""

    PENDING = "pending"
    FINDING_PAPER = "finding_paper"
    SUMMARIZING = "summarizing"
    GENERATING_LAYOUT = "generating_layout"
    GENERATING_PROMPT = "generating_prompt"
    GENERATING_FINAL = "generating_final"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETE, RequestStatus.FAILED)


class QueryType(str, Enum):
    """How a query identifies its paper."""

    ARXIV_LINK = "arxiv_link"
    TOPIC = "topic"


class SummaryMode(str, Enum):
    """How the paper abstract becomes compiled input."""

    COMPILER = "compiler"
    FALLBACK = "fallback"


class UnknownRequestError(PipelineError, KeyError):
    """No request with the given id."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


@dataclass
class RequestRecord:
    """State of one poster request as seen by callers.

    Attributes:
        request_id: Identifier returned by create_request.
        query: Original query text.
        audience_tier: Requested tier.
        query_type: Link or topic.
        summary_mode: Compiler or explicit fallback.
        status: Current status.
        created_at: ISO-8601 creation time.
        updated_at: ISO-8601 time of the last change.
        error: Failure message naming the stage.
        arxiv_id: Paper id once found.
        paper_title: Paper title once found.
        paper_url: Paper abstract page once found.
        image_url: Poster URL once complete.
        summary: Compiled summary once available.
    """

    request_id: str
    query: str
    audience_tier: AudienceTier
    query_type: QueryType
    summary_mode: SummaryMode
    status: RequestStatus = RequestStatus.PENDING
    created_at: str = field(default_factory=lambda: _now())
    updated_at: str = field(default_factory=lambda: _now())
    error: str | None = None
    arxiv_id: str | None = None
    paper_title: str | None = None
    paper_url: str | None = None
    image_url: str | None = None
    summary: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view for status responses."""
        data = {
            "request_id": self.request_id,
            "query": self.query,
            "audience_tier": self.audience_tier.value,
            "query_type": self.query_type.value,
            "summary_mode": self.summary_mode.value,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.error:
            data["error"] = self.error
        if self.status == RequestStatus.COMPLETE:
            data.update(
                paper_title=self.paper_title,
                paper_url=self.paper_url,
                image_url=self.image_url,
                summary=self.summary,
            )
        return data


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def classify_query(query: str) -> QueryType:
    """Links to arxiv.org are looked up directly; anything else is a topic."""
    if "arxiv.org" in query.lower():
        return QueryType.ARXIV_LINK
    return QueryType.TOPIC


def compiler_input_text(paper: PaperMetadata) -> str:
    """Text handed to the compiler for a paper."""
    return f"Title: {paper.title}\n\nAbstract: {paper.abstract}"


class RequestService:
    """Tracks poster requests and runs their pipelines.

    Records live in memory. Once more than `max_records` are held, the
    oldest finished ones are evicted; requests still running are never
    dropped.

    Example:
        >>> service = RequestService.from_environment()
        >>> record = await service.create_request("transformers", "beginner")
        >>> await service.wait(record.request_id)
        >>> service.get_status(record.request_id).image_url
    """

    def __init__(
        self,
        paper_client: ArxivClient,
        generation_client: GenerationClient,
        compiler: SummaryCompiler | None = None,
        trace_store: TraceStore | None = None,
        output_dir: Path | str | None = None,
        max_records: int = DEFAULT_MAX_RECORDS,
    ):
        """Initialize the request service.

        Args:
            paper_client: Paper metadata source.
            generation_client: Image service client.
            compiler: Summary compiler; required for compiler mode.
            trace_store: Optional per-request trace sink.
            output_dir: If set, finished posters are downloaded here.
            max_records: Record count above which finished records are evicted.
        """
        self._papers = paper_client
        self._compiler = compiler
        self._trace = trace_store or NullTraceStore()
        self._orchestrator = PosterOrchestrator(
            generation_client,
            trace_store=self._trace,
            on_status=self._on_orchestrator_status,
            output_dir=output_dir,
        )
        self._max_records = max_records
        self._records: dict[str, RequestRecord] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    @classmethod
    def from_environment(cls) -> "RequestService":
        """Build a service from environment configuration.

        The compiler is configured for two-pass compilation when any LLM
        provider key is present; otherwise only fallback mode is available.
        """
        compiler = None
        if get_available_llm_providers():
            config = CompilerConfig.from_environment()
            config.two_pass = True
            compiler = SummaryCompiler(config=config)
        else:
            logger.warning("No LLM credentials configured; only fallback mode works")

        generation_config = GenerationClientConfig.from_environment()
        return cls(
            paper_client=ArxivClient(),
            generation_client=GenerationClient(generation_config),
            compiler=compiler,
            trace_store=create_trace_store(get_trace_dir()),
            output_dir=get_output_dir(),
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def create_request(
        self,
        query: str,
        audience_tier: AudienceTier | str,
        *,
        summary_mode: SummaryMode | str = SummaryMode.COMPILER,
        run: bool = True,
    ) -> RequestRecord:
        """Register a request and schedule its pipeline.

        Args:
            query: arXiv link, id or topic.
            audience_tier: Target audience tier.
            summary_mode: "compiler" or "fallback".
            run: Schedule the pipeline as a background task.

        Returns:
            The new record, status "pending".

        Raises:
            InputContractViolation: On an empty query, unknown tier or mode,
                or compiler mode without a configured compiler.
        """
        if not query or not query.strip():
            raise InputContractViolation("Query must not be empty")
        try:
            tier = AudienceTier(audience_tier)
        except ValueError:
            raise InputContractViolation(
                f"Unknown audience tier '{audience_tier}'"
            ) from None
        try:
            mode = SummaryMode(summary_mode)
        except ValueError:
            raise InputContractViolation(
                f"Unknown summary mode '{summary_mode}'"
            ) from None
        if mode == SummaryMode.COMPILER and self._compiler is None:
            raise InputContractViolation(
                "Compiler mode needs LLM credentials; use summary_mode='fallback'"
            )

        record = RequestRecord(
            request_id=generate_request_id(),
            query=query.strip(),
            audience_tier=tier,
            query_type=classify_query(query),
            summary_mode=mode,
        )
        self._records[record.request_id] = record
        self._evict_finished()
        logger.info(
            f"[{record.request_id}] Created {record.query_type.value} request "
            f"({tier.value}, {mode.value})"
        )

        if run:
            task = asyncio.create_task(self.run_pipeline(record.request_id))
            self._tasks[record.request_id] = task
            task.add_done_callback(
                lambda _, rid=record.request_id: self._tasks.pop(rid, None)
            )
        return record

    def get_status(self, request_id: str) -> RequestRecord:
        """Current record for a request.

        Raises:
            UnknownRequestError: If the id is unknown.
        """
        try:
            return self._records[request_id]
        except KeyError:
            raise UnknownRequestError(f"Unknown request '{request_id}'") from None

    def list_requests(self) -> list[RequestRecord]:
        """All records, oldest first."""
        return list(self._records.values())

    async def wait(self, request_id: str) -> RequestRecord:
        """Wait for a scheduled pipeline to finish."""
        record = self.get_status(request_id)
        task = self._tasks.get(request_id)
        if task is not None:
            await task
        return record

    async def run_pipeline(self, request_id: str) -> RequestRecord:
        """Run lookup -> summary -> orchestration for a request.

        Failures are recorded on the request, never raised. Errors outside
        the PipelineError taxonomy are logged with their traceback and fail
        the request with the status it had reached.
        """
        record = self.get_status(request_id)
        self._record(request_id, TraceLayer.INPUT, "request", record)

        try:
            self._set_status(record, RequestStatus.FINDING_PAPER)
            paper = await self._find_paper(record)

            self._set_status(record, RequestStatus.SUMMARIZING)
            compiled = await self._summarize(record, paper)

            output = await self._orchestrator.generate(
                compiled, request_id=request_id
            )
        except PipelineError as e:
            self._fail(record, str(e))
            return record
        except Exception as e:
            # Every record must end in a terminal status
            logger.exception(
                f"[{request_id}] Unexpected error during {record.status.value}"
            )
            self._fail(record, f"{record.status.value} failed: {e}")
            return record

        if output.success:
            record.image_url = output.result_url
            self._set_status(record, RequestStatus.COMPLETE)
            logger.info(f"[{request_id}] Request complete: {record.image_url}")
        else:
            self._fail(record, output.error or "Generation failed")
        return record

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _find_paper(self, record: RequestRecord) -> PaperMetadata:
        try:
            paper = await self._papers.lookup(record.query)
        except PipelineError as e:
            raise PipelineError(f"paper lookup stage failed: {e}") from e
        record.arxiv_id = paper.id
        record.paper_title = paper.title
        record.paper_url = paper.abs_url
        self._record(record.request_id, TraceLayer.INPUT, "paper", paper)
        logger.info(f"[{record.request_id}] Found paper {paper.id}: {paper.title}")
        return paper

    async def _summarize(
        self, record: RequestRecord, paper: PaperMetadata
    ) -> CompiledInput:
        if record.summary_mode == SummaryMode.FALLBACK:
            try:
                compiled = build_fallback_input(
                    paper.title, paper.abstract, record.audience_tier, paper.id
                )
            except PipelineError as e:
                raise PipelineError(f"summary stage failed: {e}") from e
        else:
            result = await self._compiler.compile(
                compiler_input_text(paper),
                CompilationMetadata(
                    source_id=paper.id, audience_tier=record.audience_tier
                ),
            )
            self._record(
                record.request_id, TraceLayer.COMPILATION, "compilation-result", result
            )
            if not result.success:
                raise PipelineError(
                    f"summary stage failed after {result.attempts} attempt(s): "
                    f"{'; '.join(result.errors)}"
                )
            compiled = result.data

        record.summary = compiled.summary.model_dump(mode="json")
        return compiled

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _on_orchestrator_status(
        self, request_id: str, status: GenerationStatus
    ) -> None:
        record = self._records.get(request_id)
        # Terminal states are set by run_pipeline once the output is known
        if record is not None and not status.is_terminal:
            self._set_status(record, RequestStatus(status.value))

    def _evict_finished(self) -> None:
        excess = len(self._records) - self._max_records
        if excess <= 0:
            return
        # Insertion order is creation order
        finished = [
            rid for rid, rec in self._records.items() if rec.status.is_terminal
        ]
        for rid in finished[:excess]:
            del self._records[rid]
        logger.debug(f"Evicted {min(excess, len(finished))} finished record(s)")

    def _set_status(self, record: RequestRecord, status: RequestStatus) -> None:
        record.status = status
        record.updated_at = _now()
        logger.debug(f"[{record.request_id}] {status.value}")

    def _fail(self, record: RequestRecord, message: str) -> None:
        record.error = message
        self._set_status(record, RequestStatus.FAILED)
        logger.error(f"[{record.request_id}] {message}")

    def _record(
        self, request_id: str, layer: TraceLayer, name: str, payload: Any
    ) -> None:
        try:
            self._trace.record(request_id, layer, name, payload)
        except Exception as e:
            logger.warning(f"[{request_id}] Trace write failed for {name}: {e}")


__all__ = [
    "DEFAULT_MAX_RECORDS",
    "RequestStatus",
    "QueryType",
    "SummaryMode",
    "UnknownRequestError",
    "RequestRecord",
    "RequestService",
    "classify_query",
    "compiler_input_text",
]
