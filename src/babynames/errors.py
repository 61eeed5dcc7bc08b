# ========================
# src/babynames/errors.py
# ========================

"""
Pipeline Errors

Exceptions raised while fetching a single page. The paginated fetcher catches
them and turns them into a terminal fetch state, so they never escape a
pipeline run.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class SourceUnavailable(PipelineError):
    """The remote source answered with a non-OK status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedPage(PipelineError):
    """A page could not be decoded into the expected columns."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset


class FetchCancelled(PipelineError):
    """The caller asked the fetch to stop before the next request."""


class PageGap(PipelineError):
    """A short page was followed by more data, so rows between the two were skipped."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset
