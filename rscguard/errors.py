"""Exceptions raised by rscguard.

Both derive from ValueError so callers that already guard URL parsing or
option handling with ``except ValueError`` keep working.
"""

from __future__ import annotations


class InvalidURLError(ValueError):
    """The request URL could not be parsed."""

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        self.detail = detail
        super().__init__(f"Invalid URL {url!r}: {detail}")


class InvalidOptionError(ValueError):
    """A guard or adapter option has a value of the wrong kind."""
