"""Request service: paper lookup, summary and poster generation per query."""

from .lib import (
    DEFAULT_MAX_RECORDS,
    QueryType,
    RequestRecord,
    RequestService,
    RequestStatus,
    SummaryMode,
    UnknownRequestError,
    classify_query,
    compiler_input_text,
)

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
