"""Tests for trace stores."""

import json
from dataclasses import dataclass
from enum import Enum

import pytest

from .lib import (
    FileTraceStore,
    MemoryTraceStore,
    NullTraceStore,
    TraceLayer,
    create_trace_store,
    to_jsonable,
)


class Color(str, Enum):
    RED = "red"


@dataclass
class Point:
    x: int
    color: Color


class TestToJsonable:
    """Tests for payload conversion."""

    @pytest.mark.unit
    def test_pydantic_model(self, sample_input):
        """Pydantic models dump in JSON mode."""
        data = to_jsonable(sample_input)
        assert data["audience_tier"] == "beginner"
        assert len(data["summary"]["concepts"]) == 3

    @pytest.mark.unit
    def test_dataclass_and_enum(self):
        """Dataclasses become dicts with enum values."""
        assert to_jsonable([Point(1, Color.RED)]) == [{"x": 1, "color": "red"}]


class TestFileTraceStore:
    """Tests for FileTraceStore."""

    @pytest.mark.unit
    def test_layout_on_disk(self, tmp_path, sample_input):
        """Records land in requests/<id>/<layer>/<name>.json."""
        store = FileTraceStore(tmp_path)
        store.record("gen_1_abc", TraceLayer.INPUT, "compiled-input", sample_input)

        path = tmp_path / "requests" / "gen_1_abc" / "1-input" / "compiled-input.json"
        assert path.exists()
        assert json.loads(path.read_text())["source_id"] == "1706.03762"

    @pytest.mark.unit
    def test_overwrites_same_name(self, tmp_path):
        """Recording the same name twice keeps the latest payload."""
        store = FileTraceStore(tmp_path)
        store.record("r", TraceLayer.FINAL, "output", {"n": 1})
        store.record("r", TraceLayer.FINAL, "output", {"n": 2})
        path = store.path_for("r", TraceLayer.FINAL, "output")
        assert json.loads(path.read_text()) == {"n": 2}


class TestOtherStores:
    """Tests for the in-memory and null stores."""

    @pytest.mark.unit
    def test_memory_layers_in_order(self):
        """Layers are reported in pipeline order."""
        store = MemoryTraceStore()
        store.record("r", TraceLayer.PROMPT, "prompt", {})
        store.record("r", TraceLayer.LAYOUT, "layout", {})
        store.record("other", TraceLayer.FINAL, "output", {})
        assert store.layers("r") == [TraceLayer.LAYOUT, TraceLayer.PROMPT]

    @pytest.mark.unit
    def test_factory(self, tmp_path):
        """No root means tracing is disabled."""
        assert isinstance(create_trace_store(None), NullTraceStore)
        assert isinstance(create_trace_store(tmp_path), FileTraceStore)
