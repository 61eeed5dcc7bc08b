# ========================
# src/babynames/cleaning.py
# ========================

"""
Data Cleaning Module

Normalizes free-text fields, surfaces unexpected category codes and removes
exact-duplicate records.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from .models import RECORD_FIELDS, Record

logger = logging.getLogger(__name__)

DEFAULT_SEX_CODES = frozenset({'F', 'M'})


def normalize_text(value: Optional[str]) -> Optional[str]:
    """
    Put a free-text value into canonical case form.

    Splits on whitespace, capitalizes the first character of each token,
    lowercases the rest and rejoins with single spaces. The result only
    depends on the lowercased input, so case-insensitively equal strings
    normalize identically, and normalizing twice changes nothing.

    >>> normalize_text('  st.   LAWRENCE ')
    'St. Lawrence'
    """
    if value is None:
        return None
    return ' '.join(_capitalize(token) for token in value.split())


def _capitalize(token: str) -> str:
    lowered = token.lower()
    return lowered[:1].title() + lowered[1:]


class RecordCleaner:
    """
    Applies the text normalizer to `first_name` and `county` of each record
    and counts category codes outside the expected set. Codes are never
    rewritten: an unexpected `sex` value is reported and kept as-is so it
    forms its own group downstream.
    """

    TEXT_FIELDS = ('first_name', 'county')

    def __init__(self, expected_sex_codes: Iterable[str] = DEFAULT_SEX_CODES):
        self.expected_sex_codes = frozenset(expected_sex_codes)
        self.records_processed = 0
        self.unexpected_categories = Counter()
        logger.info(f"RecordCleaner initialized (expected sex codes: {sorted(self.expected_sex_codes)})")

    def clean_record(self, record: Record) -> Record:
        self.records_processed += 1
        self._check_category(record.sex)
        return record.with_changes(**{
            name: normalize_text(getattr(record, name)) for name in self.TEXT_FIELDS
        })

    def clean_records(self, records: Iterable[Record]) -> List[Record]:
        return [self.clean_record(record) for record in records]

    def _check_category(self, sex: Optional[str]) -> None:
        # Missing values are counted by the deduplicator, not here
        if sex is None or sex in self.expected_sex_codes:
            return
        if sex not in self.unexpected_categories:
            logger.warning(f"Unexpected sex code {sex!r}; it will be aggregated as its own group")
        self.unexpected_categories[sex] += 1

    def get_statistics(self) -> Dict[str, Any]:
        """Get cleaning statistics."""
        return {
            'records_processed': self.records_processed,
            'unexpected_sex_codes': dict(self.unexpected_categories),
            'unexpected_sex_code_rows': sum(self.unexpected_categories.values()),
        }


class RecordDeduplicator:
    """
    Removes exact-duplicate records, keeping the first occurrence of each.

    Surviving records stay in input order. Duplicate and missing-value counts
    are observational only.
    """

    def __init__(self):
        self.records_in = 0
        self.duplicates_removed = 0
        self.missing_values = Counter()

    def deduplicate(self, records: Iterable[Record]) -> List[Record]:
        """
        Args:
            records: Records in a deterministic order

        Returns:
            list[Record]: One representative per group of identical records
        """
        seen = set()
        unique = []

        for record in records:
            self.records_in += 1
            for name in RECORD_FIELDS:
                if getattr(record, name) is None:
                    self.missing_values[name] += 1

            if record in seen:
                self.duplicates_removed += 1
                continue
            seen.add(record)
            unique.append(record)

        logger.info(
            f"Deduplication: {len(unique):,} unique records, "
            f"{self.duplicates_removed:,} duplicates removed"
        )
        if self.missing_values:
            logger.info(f"Missing values by field: {dict(self.missing_values)}")

        return unique

    def get_statistics(self) -> Dict[str, Any]:
        """Get deduplication statistics."""
        return {
            'records_in': self.records_in,
            'duplicates_removed': self.duplicates_removed,
            'records_out': self.records_in - self.duplicates_removed,
            'missing_values': {name: self.missing_values.get(name, 0) for name in RECORD_FIELDS},
            'missing_value_total': sum(self.missing_values.values()),
        }
