# ========================
# src/utils/data_generator.py
# ========================

"""
Data Generation Utilities

Synthetic baby-name rows with controlled noise, and an offline paginated
source that serves them the way the remote CSV endpoint does.
"""

import csv
import io
import logging
import random
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..babynames.models import RECORD_FIELDS

logger = logging.getLogger(__name__)


class DataGenerator:
    """
    Generator for realistic baby-name test datasets.
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator.

        Args:
            seed (int): Random seed for reproducible data generation
        """
        self.random = random.Random(seed)
        self._initialize_data_patterns()
        logger.info(f"DataGenerator initialized with seed: {seed}")

    def _initialize_data_patterns(self) -> None:
        """Initialize name and county pools."""
        self.names = {
            'F': ["Olivia", "Emma", "Mia", "Sophia", "Isabella", "Ava", "Leah", "Chaya", "Esther", "Sarah"],
            'M': ["Liam", "Noah", "Jacob", "Michael", "Ethan", "Joseph", "Moshe", "David", "Lucas", "Daniel"],
        }
        self.counties = ["Kings", "Queens", "New York", "Suffolk", "Nassau", "Erie", "St Lawrence", "Westchester"]
        self.years = list(range(2007, 2021))

    def generate_rows(self,
                      num_rows: int,
                      duplicate_rate: float = 0.05,
                      case_noise_rate: float = 0.1,
                      missing_rate: float = 0.0) -> List[Dict[str, str]]:
        """
        Generate raw rows as the source would serve them (all values as text).

        Args:
            num_rows (int): Number of distinct rows to generate before duplication
            duplicate_rate (float): Fraction of rows emitted a second time
            case_noise_rate (float): Fraction of rows with mangled name/county case
            missing_rate (float): Fraction of rows with a blank county

        Returns:
            list[dict]: Rows keyed by source column
        """
        rows = []
        for _ in range(num_rows):
            sex = self.random.choice(sorted(self.names))
            row = {
                'year': str(self.random.choice(self.years)),
                'first_name': self.random.choice(self.names[sex]).upper(),
                'county': self.random.choice(self.counties).upper(),
                'sex': sex,
                'name_count': str(self.random.randint(5, 400)),
            }
            if self.random.random() < case_noise_rate:
                row['first_name'] = row['first_name'].lower()
                row['county'] = '  ' + row['county'].swapcase() + ' '
            if self.random.random() < missing_rate:
                row['county'] = ''
            rows.append(row)

            if self.random.random() < duplicate_rate:
                rows.append(dict(row))

        logger.info(f"Generated {len(rows):,} rows ({len(rows) - num_rows:,} duplicates)")
        return rows

    @staticmethod
    def render_csv(rows: Sequence[Dict[str, Any]], columns: Sequence[str] = RECORD_FIELDS) -> str:
        """Render rows as CSV text with a header line."""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction='ignore')
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()


class SyntheticSource:
    """
    An in-process stand-in for a requests.Session talking to a paginated CSV
    endpoint. Answers `get(url, params=..., timeout=...)` with a slice of its
    rows, and can be told to fail at a given request number.
    """

    def __init__(self,
                 rows: Sequence[Dict[str, Any]],
                 limit_param: str = 'limit',
                 offset_param: str = 'offset',
                 fail_on_request: Optional[int] = None,
                 fail_status: int = 503,
                 max_page_size: Optional[int] = None):
        """
        Args:
            rows: Rows served in order
            limit_param (str): Query parameter carrying the page size
            offset_param (str): Query parameter carrying the offset
            fail_on_request (int): 1-based request number answered with fail_status
            fail_status (int): HTTP status of the failing response
            max_page_size (int): Server-side cap; larger limits are truncated
        """
        self.rows = list(rows)
        self.limit_param = limit_param
        self.offset_param = offset_param
        self.fail_on_request = fail_on_request
        self.fail_status = fail_status
        self.max_page_size = max_page_size
        self.requests = []

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> requests.Response:
        params = dict(params or {})
        self.requests.append(params)

        if self.fail_on_request is not None and len(self.requests) == self.fail_on_request:
            return self._response(self.fail_status, f"Service unavailable: {url}")

        limit = int(params[self.limit_param])
        if self.max_page_size is not None:
            limit = min(limit, self.max_page_size)
        offset = int(params[self.offset_param])
        page = self.rows[offset:offset + limit]
        return self._response(requests.codes.ok, DataGenerator.render_csv(page))

    @staticmethod
    def _response(status_code: int, text: str) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response.encoding = 'utf-8'
        response._content = text.encode('utf-8')
        return response
