#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for the Baby Names Pipeline

Fetches the full dataset page by page, cleans it, computes the aggregate
tables and exports them for chart and word-cloud tooling.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from src.babynames import DataSaver, NamesPipeline
from src.utils import Config, DataGenerator, SyntheticSource, setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch, clean and aggregate baby-name counts")
    parser.add_argument('--source-url', help="CSV resource to paginate over")
    parser.add_argument('--page-size', type=int, help="Rows per page request")
    parser.add_argument('--top-n', type=int, help="Names kept per year in the top-names table")
    parser.add_argument('--output-dir', help="Directory for exported tables")
    parser.add_argument('--no-export', action='store_true', help="Skip writing output files")
    parser.add_argument('--synthetic', type=int, metavar='ROWS',
                        help="Run offline against a generated source with this many rows")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main execution function."""
    args = parse_args(argv)

    overrides = {
        'source_url': args.source_url,
        'page_size': args.page_size,
        'top_n': args.top_n,
        'output_dir': args.output_dir,
    }
    config = Config({key: value for key, value in overrides.items() if value is not None})

    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file="pipeline.log",
        log_dir=config.LOG_DIR
    )

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("BABY NAMES PIPELINE - MAIN EXECUTION")
    logger.info("=" * 60)

    invalid = config.invalid_settings()
    if invalid:
        logger.error(f"Invalid configuration: {invalid}")
        return 1

    try:
        config.ensure_directories()

        session = None
        if args.synthetic:
            logger.info(f"Using synthetic source with {args.synthetic:,} rows")
            rows = DataGenerator(seed=42).generate_rows(args.synthetic)
            session = SyntheticSource(rows, limit_param=config.LIMIT_PARAM, offset_param=config.OFFSET_PARAM)

        pipeline = NamesPipeline.from_config(config, session=session)
        result = pipeline.run()

        saved_files = {}
        if not args.no_export:
            saved_files = DataSaver(config.OUTPUT_DIR).save_all_data(result)

        _print_execution_summary(result, saved_files, config.TOP_N)

        # Partial data is still exported, but the exit status reports it
        return 2 if result.incomplete else 0

    except Exception as e:
        logger.error(f"Pipeline execution failed: {e}", exc_info=True)
        return 1


def _print_execution_summary(result, saved_files: dict, top_n: int) -> None:
    """Print final execution summary."""
    quality = result.quality

    print("\n" + "=" * 70)
    print("PIPELINE EXECUTION SUMMARY")
    print("=" * 70)

    print("📥 Fetch:")
    print(f"   • State: {result.fetch.state.value}")
    print(f"   • Pages: {result.fetch.pages_fetched:,}")
    print(f"   • Rows fetched: {len(result.fetch.records):,}")
    if result.incomplete:
        print(f"   • ⚠ INCOMPLETE: {result.error} (status {result.status_code})")

    print("\n🧹 Cleaning:")
    print(f"   • Duplicates removed: {quality['duplicates_removed']:,}")
    print(f"   • Missing values: {quality['missing_value_total']:,}")
    print(f"   • Unexpected sex codes: {quality['unexpected_sex_codes'] or 'none'}")
    print(f"   • Clean records: {len(result.dataset):,}")

    print("\n📊 Aggregates:")
    for row in result.tables['by_year']:
        print(f"   • {row.group[0]}: {row.total:,} names")
    weights = result.tables['name_weights'].pairs()[:top_n]
    if weights:
        print(f"   • Most frequent names: {', '.join(name or '?' for name, _ in weights)}")

    if saved_files:
        print("\n📁 Generated Outputs:")
        for output_type, file_path in saved_files.items():
            print(f"   • {output_type.replace('_', ' ').title()}: {Path(file_path).name}")

    for note in result.notes:
        print(f"\nNote: {note}")

    print("=" * 70)


if __name__ == '__main__':
    sys.exit(main())
