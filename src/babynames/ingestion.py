# ========================
# src/babynames/ingestion.py
# ========================

"""
Data Ingestion Module

Reassembles a complete dataset from a remote CSV source that caps every
response at a fixed page size.
"""

import csv
import io
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import FetchCancelled, MalformedPage, PageGap, SourceUnavailable
from .models import RECORD_FIELDS, FetchResult, FetchState, PageRequest, Record

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


def parse_page(text: str, offset: Optional[int] = None) -> List[Record]:
    """
    Decode one CSV page into Records.

    A header row with no data rows is a valid empty page. A body without a
    header, a header missing any required column, or a cell that cannot be
    read as its column's type makes the whole page malformed.

    Args:
        text (str): Response body
        offset (int): Offset of the page, used in error messages

    Returns:
        list[Record]: The page's rows in source order

    Raises:
        MalformedPage: If the page cannot be decoded
    """
    if not text or not text.strip():
        raise MalformedPage("Response body is empty (no header row)", offset)

    try:
        reader = csv.DictReader(io.StringIO(text))
        header = [name.strip() for name in (reader.fieldnames or [])]
        reader.fieldnames = header

        missing = [column for column in RECORD_FIELDS if column not in header]
        if missing:
            raise MalformedPage(f"Page is missing required columns: {missing}", offset)

        records = []
        for row in reader:
            if None in row:
                raise MalformedPage(
                    f"Row {reader.line_num} has more cells than the header", offset
                )
            records.append(Record(
                year=_parse_int(row['year'], 'year', offset),
                county=_parse_text(row['county']),
                sex=_parse_text(row['sex']),
                first_name=_parse_text(row['first_name']),
                name_count=_parse_int(row['name_count'], 'name_count', offset),
            ))
        return records

    except csv.Error as e:
        raise MalformedPage(f"Unreadable CSV content: {e}", offset) from e


def _parse_text(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_int(value: Optional[str], column: str, offset: Optional[int]) -> Optional[int]:
    """Blank cells are missing values; anything else must be a non-negative integer."""
    if value is None or not value.strip():
        return None
    try:
        number = int(value.strip())
    except ValueError:
        raise MalformedPage(f"Column '{column}' has non-integer value {value!r}", offset)
    if number < 0:
        raise MalformedPage(f"Column '{column}' has negative value {number}", offset)
    return number


@dataclass
class FetchProgress:
    """The single mutable accumulator threaded through the pagination state machine."""
    request: PageRequest
    state: FetchState = FetchState.FETCHING
    records: List[Record] = field(default_factory=list)
    pages_fetched: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None
    status_code: Optional[int] = None
    # (offset, rows) of a short page awaiting confirmation
    short_page: Optional[Tuple[int, int]] = None

    def fail(self, state: FetchState, error: Exception) -> None:
        self.state = state
        self.error = str(error)
        self.error_type = type(error).__name__
        self.status_code = getattr(error, 'status_code', None)

    def to_result(self) -> FetchResult:
        return FetchResult(
            records=self.records,
            state=self.state,
            pages_fetched=self.pages_fetched,
            next_offset=self.request.offset,
            error=self.error,
            error_type=self.error_type,
            status_code=self.status_code,
        )


class PaginatedFetcher:
    """
    Drives sequential limit/offset requests until the source returns an empty page.

    Pagination runs as a state machine: FETCHING moves to FETCHING after a
    non-empty page, to DONE on the first empty page, to FAILED on any request
    or decoding error and to CANCELLED when the caller sets the cancel event.
    A short page must be followed by an empty one; more data after it means
    rows were skipped, and the fetch fails with PageGap instead of committing it.
    Pages committed before a failure are kept and returned with the result.
    """

    def __init__(self,
                 source_url: str,
                 page_size: int = 1000,
                 session: Optional[requests.Session] = None,
                 timeout: float = 60,
                 limit_param: str = 'limit',
                 offset_param: str = 'offset',
                 extra_params: Optional[Dict[str, Any]] = None,
                 confirm_short_pages: bool = True,
                 max_retries: int = 0,
                 retry_backoff: float = 0.5,
                 cancel_event: Optional[threading.Event] = None):
        """
        Initialize the fetcher.

        Args:
            source_url (str): Address of the tabular CSV resource
            page_size (int): Rows requested per page (`limit`)
            session (requests.Session): Optional session, e.g. a stub in tests
            timeout (float): Per-request timeout in seconds
            limit_param (str): Query parameter carrying the page size
            offset_param (str): Query parameter carrying the row offset
            extra_params (dict): Static query parameters sent with every page
            confirm_short_pages (bool): Confirm a short page with one more request that must come back empty
            max_retries (int): Transport-level retries per page; 0 disables retrying
            retry_backoff (float): Backoff factor between retries
            cancel_event (threading.Event): Stops pagination before the next request once set
        """
        if page_size <= 0:
            raise ValueError(f"Page size must be positive, got {page_size}")

        self.source_url = source_url
        self.page_size = page_size
        self.timeout = timeout
        self.limit_param = limit_param
        self.offset_param = offset_param
        self.extra_params = dict(extra_params or {})
        self.confirm_short_pages = confirm_short_pages
        self.cancel_event = cancel_event
        self.session = session or self._build_session(max_retries, retry_backoff)

        logger.info(f"Initialized PaginatedFetcher for {source_url} (page size {page_size})")

    @staticmethod
    def _build_session(max_retries: int, retry_backoff: float) -> requests.Session:
        session = requests.Session()
        if max_retries > 0:
            retry = Retry(
                total=max_retries,
                backoff_factor=retry_backoff,
                status_forcelist=RETRY_STATUS_CODES,
                allowed_methods=frozenset(['GET']),
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount('http://', adapter)
            session.mount('https://', adapter)
        return session

    def fetch_all(self) -> FetchResult:
        """
        Fetch every page of the source.

        Returns:
            FetchResult: Accumulated records plus the terminal state
        """
        progress = FetchProgress(request=PageRequest(self.page_size, 0))

        while progress.state is FetchState.FETCHING:
            self._step(progress)

        result = progress.to_result()
        if result.incomplete:
            logger.error(
                f"Pagination stopped in state {result.state.value} at offset "
                f"{result.next_offset}: {result.error}. "
                f"Keeping {len(result.records):,} rows from {result.pages_fetched} pages"
            )
        else:
            logger.info(
                f"Pagination complete: {len(result.records):,} rows in {result.pages_fetched} pages"
            )
        return result

    def _step(self, progress: FetchProgress) -> None:
        """Issue one request and apply the resulting transition."""
        request = progress.request
        try:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise FetchCancelled("Fetch cancelled by caller")
            page = self.fetch_page(request)
        except FetchCancelled as e:
            progress.fail(FetchState.CANCELLED, e)
            return
        except (SourceUnavailable, MalformedPage) as e:
            progress.fail(FetchState.FAILED, e)
            return

        if not page:
            progress.state = FetchState.DONE
            return

        if progress.short_page is not None:
            short_offset, short_rows = progress.short_page
            progress.fail(FetchState.FAILED, PageGap(
                f"Page at offset {short_offset} returned {short_rows} of {request.limit} rows "
                f"but offset {request.offset} still has data; the source may cap its page size "
                f"below the requested limit",
                offset=short_offset,
            ))
            return

        progress.records.extend(page)
        progress.pages_fetched += 1
        progress.request = request.next()
        logger.info(
            f"Page {progress.pages_fetched} at offset {request.offset}: "
            f"{len(page)} rows ({len(progress.records):,} total)"
        )

        if len(page) < request.limit:
            if self.confirm_short_pages:
                progress.short_page = (request.offset, len(page))
                logger.info(
                    f"Short page ({len(page)} < {request.limit}) at offset {request.offset}; "
                    f"confirming end of data with one more request"
                )
            else:
                logger.info(f"Short page at offset {request.offset}; treating as end of data")
                progress.state = FetchState.DONE

    def fetch_page(self, request: PageRequest) -> List[Record]:
        """
        Fetch and decode a single page.

        Raises:
            SourceUnavailable: On a non-OK status or a transport error
            MalformedPage: If the body cannot be decoded
        """
        params = dict(self.extra_params)
        params[self.limit_param] = request.limit
        params[self.offset_param] = request.offset
        logger.debug(f"Requesting {self.source_url} with {params}")

        try:
            response = self.session.get(self.source_url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise SourceUnavailable(f"Request at offset {request.offset} failed: {e}") from e

        if response.status_code != requests.codes.ok:
            raise SourceUnavailable(
                f"Source returned HTTP {response.status_code} at offset {request.offset}",
                status_code=response.status_code,
            )

        return parse_page(response.text, request.offset)
