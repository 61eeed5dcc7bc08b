# ========================
# src/babynames/transformation.py
# ========================

"""
Data Transformation Module

Grouped sums and ranked top-N selections over a cleaned dataset.
"""

import logging
from collections import defaultdict
from itertools import groupby
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import AggregateRow, AggregateTable, Record

logger = logging.getLogger(__name__)

TABLE_NAMES = ('by_year', 'by_county', 'by_sex', 'top_names_by_year', 'name_weights')


def _sort_value(value: Any) -> Tuple[bool, Any]:
    """Sort key that places missing (None) values after all real ones."""
    return (value is None, value if value is not None else 0)


def _group_sort_key(group: Tuple[Any, ...]) -> Tuple[Tuple[bool, Any], ...]:
    return tuple(_sort_value(value) for value in group)


class AggregationEngine:
    """
    Computes grouped sums of `name_count` over a cleaned dataset.

    Every table is derived independently from the same records. Sums are
    Python integers, so large totals are exact.
    """

    def __init__(self, top_n: int = 10):
        """
        Args:
            top_n (int): Rows kept per year in the top-names table
        """
        self.top_n = self._check_top_n(top_n)
        logger.info(f"AggregationEngine initialized with top_n={top_n}")

    def group_sum(self, records: Iterable[Record], key_fields: Sequence[str]) -> Dict[Tuple[Any, ...], int]:
        """
        Sum `name_count` per distinct key tuple.

        Missing counts contribute nothing; missing key values form their own group.
        """
        totals = defaultdict(int)
        for record in records:
            group = tuple(getattr(record, name) for name in key_fields)
            totals[group] += record.name_count or 0
        return dict(totals)

    def totals_by_year(self, records: Iterable[Record]) -> AggregateTable:
        totals = self.group_sum(records, ('year',))
        rows = [AggregateRow(group, total) for group, total in
                sorted(totals.items(), key=lambda item: _group_sort_key(item[0]))]
        return AggregateTable('by_year', ('year',), 'total_names', rows)

    def totals_by_county(self, records: Iterable[Record]) -> AggregateTable:
        """Descending by total; ties broken by county name ascending."""
        totals = self.group_sum(records, ('county',))
        return AggregateTable('by_county', ('county',), 'total_names', self._by_total_desc(totals))

    def totals_by_sex(self, records: Iterable[Record]) -> AggregateTable:
        totals = self.group_sum(records, ('sex',))
        rows = [AggregateRow(group, total) for group, total in
                sorted(totals.items(), key=lambda item: _group_sort_key(item[0]))]
        return AggregateTable('by_sex', ('sex',), 'total_names', rows)

    def top_names_by_year(self, records: Iterable[Record], top_n: Optional[int] = None) -> AggregateTable:
        """
        The `top_n` most frequent names of every year.

        Within a year rows are ordered by total descending, then first name
        ascending, and that order decides which names survive a tie at the
        cut-off. Ranks run 1..N per year.
        """
        top_n = self.top_n if top_n is None else self._check_top_n(top_n)
        totals = self.group_sum(records, ('year', 'first_name'))

        ordered = sorted(
            totals.items(),
            key=lambda item: (_sort_value(item[0][0]), -item[1], _sort_value(item[0][1])),
        )

        rows = []
        for _, year_items in groupby(ordered, key=lambda item: item[0][0]):
            for rank, (group, total) in enumerate(year_items, start=1):
                if rank > top_n:
                    break
                rows.append(AggregateRow(group, total, rank))

        return AggregateTable('top_names_by_year', ('year', 'first_name'), 'total_count', rows, ranked=True)

    def name_weights(self, records: Iterable[Record]) -> AggregateTable:
        """Global total per first name across all years, heaviest first."""
        totals = self.group_sum(records, ('first_name',))
        return AggregateTable('name_weights', ('first_name',), 'total_count', self._by_total_desc(totals))

    @staticmethod
    def _check_top_n(top_n: int) -> int:
        if top_n <= 0:
            raise ValueError(f"top_n must be positive, got {top_n}")
        return top_n

    @staticmethod
    def _by_total_desc(totals: Dict[Tuple[Any, ...], int]) -> List[AggregateRow]:
        ordered = sorted(totals.items(), key=lambda item: (-item[1], _group_sort_key(item[0])))
        return [AggregateRow(group, total) for group, total in ordered]

    def aggregate_all(self, records: Sequence[Record]) -> Dict[str, AggregateTable]:
        """
        Build all five tables from the same cleaned records.

        Returns:
            dict: Table name -> AggregateTable, in TABLE_NAMES order
        """
        records = list(records)
        tables = {
            'by_year': self.totals_by_year(records),
            'by_county': self.totals_by_county(records),
            'by_sex': self.totals_by_sex(records),
            'top_names_by_year': self.top_names_by_year(records),
            'name_weights': self.name_weights(records),
        }
        self._log_summary(tables)
        return tables

    def _log_summary(self, tables: Dict[str, AggregateTable]) -> None:
        for name, table in tables.items():
            logger.info(f"{name}: {len(table)} rows")
