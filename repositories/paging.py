"""
Paged reads and chunked filters for Supabase queries.

PostgREST caps every response at the project's `max_rows` (1000 by default)
without signalling truncation, so full-table reads walk `.range()` windows
until an empty page comes back. Queries handed to `fetch_all` must carry a
deterministic `.order()` or rows can repeat or go missing between pages.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Sequence, TypeVar

PAGE_SIZE: int = 1000

# Ids per `in_` filter; keeps the request URL well under proxy limits
ID_CHUNK_SIZE: int = 200

T = TypeVar("T")


def fetch_all(build_query: Callable[[], Any], what: str, page_size: int = PAGE_SIZE) -> List[Dict[str, Any]]:
    """
    Read every row a query matches, one page at a time.

    Args:
        build_query: returns a fresh, ordered query builder for each page
        what: description used in the error message
        page_size: rows per request (must not exceed the server's max_rows)

    Raises:
        RuntimeError: if any page fails
    """

    all_rows: List[Dict[str, Any]] = []
    offset = 0

    while True:
        response = build_query().range(offset, offset + page_size - 1).execute()

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to {what}: {error}")

        page_rows = getattr(response, "data", None) or []
        if not page_rows:
            break

        all_rows.extend(page_rows)
        offset += len(page_rows)

    return all_rows


def chunked(items: Sequence[T], size: int = ID_CHUNK_SIZE) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most `size` items."""

    for start in range(0, len(items), size):
        yield items[start:start + size]


__all__ = ["PAGE_SIZE", "ID_CHUNK_SIZE", "fetch_all", "chunked"]
