# ========================
# src/babynames/models.py
# ========================

"""
Data Model

Value types shared by the fetcher, the cleaning steps and the aggregation engine.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

# Columns every page must carry, in export order
RECORD_FIELDS = ('year', 'county', 'sex', 'first_name', 'name_count')


@dataclass(frozen=True)
class Record:
    """One observed (year, county, sex, first_name) combination and its birth count."""
    year: Optional[int]
    county: Optional[str]
    sex: Optional[str]
    first_name: Optional[str]
    name_count: Optional[int]

    def with_changes(self, **changes: Any) -> 'Record':
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in RECORD_FIELDS}


@dataclass(frozen=True)
class PageRequest:
    """A bounded request: `limit` rows starting at `offset`."""
    limit: int
    offset: int = 0

    def __post_init__(self):
        if self.limit <= 0:
            raise ValueError(f"Page size must be positive, got {self.limit}")
        if self.offset < 0:
            raise ValueError(f"Offset must be non-negative, got {self.offset}")

    def next(self) -> 'PageRequest':
        return PageRequest(self.limit, self.offset + self.limit)


class FetchState(Enum):
    FETCHING = 'fetching'
    DONE = 'done'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


@dataclass
class FetchResult:
    """
    Everything the fetcher accumulated, plus how pagination ended.

    `records` always holds the pages committed before the terminal state,
    including when the fetch failed part way through.
    """
    records: List[Record]
    state: FetchState
    pages_fetched: int = 0
    next_offset: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def incomplete(self) -> bool:
        return self.state is not FetchState.DONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'incomplete': self.incomplete,
            'records_fetched': len(self.records),
            'pages_fetched': self.pages_fetched,
            'next_offset': self.next_offset,
            'error': self.error,
            'error_type': self.error_type,
            'status_code': self.status_code,
        }


@dataclass(frozen=True)
class AggregateRow:
    """Group-key values, their summed count and, for ranked tables, the rank."""
    group: Tuple[Any, ...]
    total: int
    rank: Optional[int] = None


@dataclass
class AggregateTable:
    """
    An ordered collection of AggregateRows produced by one grouping.

    Args:
        name (str): Table identifier (e.g. 'by_year')
        key_fields (tuple): Record fields the rows are grouped by
        measure (str): Column name used for the summed total on export
        rows (list): Rows in their final, deterministic order
        ranked (bool): Whether rows carry a rank
    """
    name: str
    key_fields: Tuple[str, ...]
    measure: str
    rows: List[AggregateRow] = field(default_factory=list)
    ranked: bool = False

    def __iter__(self) -> Iterator[AggregateRow]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def columns(self) -> List[str]:
        columns = list(self.key_fields) + [self.measure]
        if self.ranked:
            columns.append('rank')
        return columns

    def grand_total(self) -> int:
        return sum(row.total for row in self.rows)

    def lookup(self, *group: Any) -> Optional[AggregateRow]:
        """Return the row for a group-key tuple, or None."""
        for row in self.rows:
            if row.group == tuple(group):
                return row
        return None

    def to_dicts(self) -> List[Dict[str, Any]]:
        result = []
        for row in self.rows:
            item = dict(zip(self.key_fields, row.group))
            item[self.measure] = row.total
            if self.ranked:
                item['rank'] = row.rank
            result.append(item)
        return result

    def pairs(self) -> List[Tuple[Any, int]]:
        """(key, total) pairs for single-key tables, e.g. (name, weight) for word clouds."""
        if len(self.key_fields) != 1:
            raise ValueError(f"Table '{self.name}' is keyed by {self.key_fields}, not a single field")
        return [(row.group[0], row.total) for row in self.rows]
