"""Per-request pipeline trace.

Every stage's input and output can be written through a TraceStore so a
request can be inspected after the fact. Stores are best-effort: callers
log and ignore their failures.
"""

import dataclasses
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TraceLayer(str, Enum):
    """Pipeline layers, in execution order."""

    INPUT = "1-input"
    COMPILATION = "2-compilation"
    LAYOUT = "3-layout"
    PROMPT = "4-prompt"
    GENERATION = "5-generation"
    FINAL = "6-final"


class TraceStore(Protocol):
    """Protocol for trace sinks used by the pipeline."""

    def record(
        self, request_id: str, layer: TraceLayer, name: str, payload: Any
    ) -> None:
        """Persist one named payload for a request layer."""
        ...


def to_jsonable(value: Any) -> Any:
    """Convert pydantic models, dataclasses, enums and paths to JSON types."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(dataclasses.asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


class NullTraceStore:
    """Discards everything."""

    def record(
        self, request_id: str, layer: TraceLayer, name: str, payload: Any
    ) -> None:
        return None


class MemoryTraceStore:
    """Keeps records in memory, keyed by (request_id, layer, name)."""

    def __init__(self):
        self.records: dict[tuple[str, TraceLayer, str], Any] = {}

    def record(
        self, request_id: str, layer: TraceLayer, name: str, payload: Any
    ) -> None:
        self.records[(request_id, TraceLayer(layer), name)] = to_jsonable(payload)

    def layers(self, request_id: str) -> list[TraceLayer]:
        """Layers recorded for a request, in pipeline order."""
        found = {layer for rid, layer, _ in self.records if rid == request_id}
        return [layer for layer in TraceLayer if layer in found]


class FileTraceStore:
    """Writes `<root>/requests/<request_id>/<layer>/<name>.json`.

    Example:
        >>> store = FileTraceStore("./output")
        >>> store.record("gen_1_abc", TraceLayer.LAYOUT, "layout", layout)
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def path_for(self, request_id: str, layer: TraceLayer, name: str) -> Path:
        layer_dir = self.root / "requests" / request_id / TraceLayer(layer).value
        return layer_dir / f"{name}.json"

    def record(
        self, request_id: str, layer: TraceLayer, name: str, payload: Any
    ) -> None:
        path = self.path_for(request_id, layer, name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(to_jsonable(payload), indent=2, default=str), encoding="utf-8"
        )
        logger.debug(f"Trace written: {path}")


def create_trace_store(root: Path | str | None) -> TraceStore:
    """FileTraceStore under `root`, or NullTraceStore when root is None."""
    if root is None:
        return NullTraceStore()
    return FileTraceStore(root)


__all__ = [
    "TraceLayer",
    "TraceStore",
    "NullTraceStore",
    "MemoryTraceStore",
    "FileTraceStore",
    "create_trace_store",
    "to_jsonable",
]
