# ========================
# src/babynames/__init__.py
# ========================

"""
Baby Names Pipeline Package

Core components of the paginated ingestion and aggregation pipeline:
- ingestion: Limit/offset pagination over a remote CSV source
- cleaning: Text normalization and duplicate removal
- transformation: Grouped sums and top-N rankings
- storage: CSV/JSON export
- orchestrator: Pipeline coordination
"""

from .models import Record, PageRequest, FetchState, FetchResult, AggregateRow, AggregateTable
from .errors import PipelineError, SourceUnavailable, MalformedPage, PageGap, FetchCancelled
from .ingestion import PaginatedFetcher, parse_page
from .cleaning import normalize_text, RecordCleaner, RecordDeduplicator
from .transformation import AggregationEngine
from .storage import DataSaver
from .orchestrator import NamesPipeline, PipelineResult

__all__ = [
    'Record',
    'PageRequest',
    'FetchState',
    'FetchResult',
    'AggregateRow',
    'AggregateTable',
    'PipelineError',
    'SourceUnavailable',
    'MalformedPage',
    'PageGap',
    'FetchCancelled',
    'PaginatedFetcher',
    'parse_page',
    'normalize_text',
    'RecordCleaner',
    'RecordDeduplicator',
    'AggregationEngine',
    'DataSaver',
    'NamesPipeline',
    'PipelineResult'
]

__version__ = "1.0.0"
