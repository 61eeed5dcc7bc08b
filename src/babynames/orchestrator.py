# ========================
# src/babynames/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Runs fetch, normalization, deduplication and aggregation in a fixed order and
hands the cleaned dataset and aggregate tables to reporting collaborators.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import requests

from .cleaning import DEFAULT_SEX_CODES, RecordCleaner, RecordDeduplicator
from .ingestion import PaginatedFetcher
from .models import AggregateTable, FetchResult, Record
from .transformation import AggregationEngine
from ..utils.config import Config
from ..utils.performance_monitor import monitor_performance

logger = logging.getLogger(__name__)

UNDERCOUNT_NOTE = (
    "The source omits combinations below an undisclosed minimum frequency, "
    "so totals undercount rare names."
)
INCOMPLETE_NOTE = (
    "Fetching stopped before the end of the source; every total is a lower bound."
)


@dataclass
class PipelineResult:
    """The cleaned dataset, every aggregate table and the run's quality metadata."""
    dataset: List[Record]
    tables: Dict[str, AggregateTable]
    fetch: FetchResult
    quality: Dict[str, Any] = field(default_factory=dict)
    performance: Dict[str, Any] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)

    @property
    def incomplete(self) -> bool:
        return self.fetch.incomplete

    @property
    def error(self) -> Optional[str]:
        return self.fetch.error

    @property
    def status_code(self) -> Optional[int]:
        return self.fetch.status_code

    def dataset_total(self) -> int:
        return sum(record.name_count or 0 for record in self.dataset)

    def to_dict(self, include_rows: bool = False) -> Dict[str, Any]:
        """
        JSON-ready view of the result.

        Args:
            include_rows (bool): Include the cleaned dataset and table rows
        """
        result = {
            'pipeline_status': 'incomplete' if self.incomplete else 'completed',
            'incomplete': self.incomplete,
            'fetch': self.fetch.to_dict(),
            'records': len(self.dataset),
            'total_names': self.dataset_total(),
            'tables': {name: len(table) for name, table in self.tables.items()},
            'data_quality_stats': self.quality,
            'performance': self.performance,
            'notes': self.notes,
        }
        if include_rows:
            result['dataset'] = [record.to_dict() for record in self.dataset]
            result['table_rows'] = {name: table.to_dicts() for name, table in self.tables.items()}
        return result


class NamesPipeline:
    """
    Orchestrates one pipeline run.
    Fetcher -> RecordCleaner -> RecordDeduplicator -> AggregationEngine.
    """

    def __init__(self,
                 source_url: str,
                 page_size: int = 1000,
                 top_n: int = 10,
                 expected_sex_codes: Iterable[str] = DEFAULT_SEX_CODES,
                 fetcher: Optional[PaginatedFetcher] = None,
                 **fetcher_options: Any):
        """
        Initialize the pipeline.

        Args:
            source_url (str): Address of the remote CSV resource
            page_size (int): Rows per page request
            top_n (int): Names kept per year in the top-names table
            expected_sex_codes: Closed set of documented sex codes
            fetcher (PaginatedFetcher): Pre-built fetcher; overrides the source settings
            **fetcher_options: Extra PaginatedFetcher arguments (session, timeout, ...)
        """
        self.fetcher = fetcher or PaginatedFetcher(source_url, page_size, **fetcher_options)
        self.expected_sex_codes = frozenset(expected_sex_codes)
        self.engine = AggregationEngine(top_n=top_n)

        logger.info("NamesPipeline initialized:")
        logger.info(f"  Source: {self.fetcher.source_url}")
        logger.info(f"  Page size: {self.fetcher.page_size}")
        logger.info(f"  Top N: {top_n}")

    @classmethod
    def from_config(cls,
                    config: Optional[Config] = None,
                    session: Optional[requests.Session] = None,
                    cancel_event: Optional[threading.Event] = None) -> 'NamesPipeline':
        config = config or Config()
        options = config.fetcher_options()
        source_url = options.pop('source_url')
        page_size = options.pop('page_size')
        return cls(
            source_url,
            page_size=page_size,
            top_n=config.TOP_N,
            expected_sex_codes=config.EXPECTED_SEX_CODES,
            session=session,
            cancel_event=cancel_event,
            **options
        )

    def run(self) -> PipelineResult:
        """
        Execute the complete pipeline.

        Fetch failures do not raise: the result carries whatever was fetched,
        flagged as incomplete, and the aggregates are computed over it.

        Returns:
            PipelineResult: Dataset, tables and metadata
        """
        logger.info(f"Starting pipeline for '{self.fetcher.source_url}'...")
        cleaner = RecordCleaner(self.expected_sex_codes)
        deduplicator = RecordDeduplicator()

        with monitor_performance("NamesPipeline") as monitor:
            fetch = self.fetcher.fetch_all()
            monitor.add_checkpoint('fetch', len(fetch.records), {'pages': fetch.pages_fetched})

            normalized = cleaner.clean_records(fetch.records)
            dataset = deduplicator.deduplicate(normalized)
            monitor.add_checkpoint('clean', len(dataset))

            tables = self.engine.aggregate_all(dataset)
            monitor.add_checkpoint('aggregate', len(dataset), {'tables': len(tables)})

        notes = [UNDERCOUNT_NOTE]
        if fetch.incomplete:
            notes.append(INCOMPLETE_NOTE)

        result = PipelineResult(
            dataset=dataset,
            tables=tables,
            fetch=fetch,
            quality={**deduplicator.get_statistics(), **cleaner.get_statistics()},
            performance=monitor.summary,
            notes=notes,
        )
        self._log_final_summary(result)
        return result

    def _log_final_summary(self, result: PipelineResult) -> None:
        """Log final pipeline summary."""
        quality = result.quality

        logger.info("=" * 60)
        logger.info("PIPELINE EXECUTION SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Fetch state: {result.fetch.state.value} ({result.fetch.pages_fetched} pages)")
        logger.info(f"Rows fetched: {len(result.fetch.records):,}")
        logger.info(f"Duplicates removed: {quality['duplicates_removed']:,}")
        logger.info(f"Missing values: {quality['missing_value_total']:,}")
        logger.info(f"Clean records: {len(result.dataset):,}")
        logger.info(f"Total names: {result.dataset_total():,}")
        for name, table in result.tables.items():
            logger.info(f"  • {name}: {len(table)} rows")
        if result.incomplete:
            logger.warning(
                f"Dataset is INCOMPLETE ({result.fetch.error_type}: {result.error}); "
                f"aggregates are lower bounds"
            )
        logger.info("=" * 60)
