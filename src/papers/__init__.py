"""Paper metadata lookup (arXiv)."""

from .lib import (
    DEFAULT_ARXIV_API_URL,
    ArxivClient,
    PaperLookupError,
    PaperMetadata,
    PaperNotFoundError,
    extract_arxiv_id,
    parse_atom_feed,
)

__all__ = [
    "DEFAULT_ARXIV_API_URL",
    "PaperLookupError",
    "PaperNotFoundError",
    "PaperMetadata",
    "extract_arxiv_id",
    "parse_atom_feed",
    "ArxivClient",
]
