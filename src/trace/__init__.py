"""Per-request pipeline trace stores."""

from .lib import (
    FileTraceStore,
    MemoryTraceStore,
    NullTraceStore,
    TraceLayer,
    TraceStore,
    create_trace_store,
    to_jsonable,
)

__all__ = [
    "TraceLayer",
    "TraceStore",
    "NullTraceStore",
    "MemoryTraceStore",
    "FileTraceStore",
    "create_trace_store",
    "to_jsonable",
]
