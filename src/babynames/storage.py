# ========================
# src/babynames/storage.py
# ========================

"""
Data Storage Module

Exports a pipeline result to CSV and JSON files for offline chart and
word-cloud tooling.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from .models import RECORD_FIELDS, AggregateTable

logger = logging.getLogger(__name__)


class DataSaver:
    """
    Saves the cleaned dataset and aggregate tables of a PipelineResult.
    """

    TABLE_FILES = {
        'by_year': 'names_by_year.csv',
        'by_county': 'names_by_county.csv',
        'by_sex': 'names_by_sex.csv',
        'top_names_by_year': 'top_names_by_year.csv',
        'name_weights': 'name_weights.csv',
    }

    def __init__(self, output_dir: str = "data/processed"):
        """
        Initialize the data saver.

        Args:
            output_dir (str): Directory to save output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"DataSaver initialized with output directory: {self.output_dir}")

    def save_all_data(self, result) -> Dict[str, str]:
        """
        Save all outputs of a pipeline run.

        Args:
            result: PipelineResult to export

        Returns:
            dict: Mapping of output type to saved file path
        """
        saved_files = {}

        try:
            saved_files['dataset'] = self.save_dataset(result.dataset)
            for name, table in result.tables.items():
                saved_files[name] = self.save_table(table)
            saved_files['summary'] = self._save_summary(result.to_dict())
            saved_files['data_dictionary'] = self.create_data_dictionary()

            logger.info(f"All data saved successfully to {len(saved_files)} files")
            return saved_files

        except OSError as e:
            logger.error(f"Error saving data: {e}")
            raise

    def save_dataset(self, records) -> str:
        """Save the cleaned dataset."""
        file_path = self.output_dir / "baby_names_clean.csv"
        self._write_csv(file_path, list(RECORD_FIELDS), [record.to_dict() for record in records])
        return str(file_path)

    def save_table(self, table: AggregateTable) -> str:
        """Save one aggregate table in its computed order."""
        file_path = self.output_dir / self.TABLE_FILES.get(table.name, f"{table.name}.csv")
        self._write_csv(file_path, table.columns, table.to_dicts())
        return str(file_path)

    def _save_summary(self, summary_data: Dict[str, Any]) -> str:
        """Save run summary as JSON."""
        file_path = self.output_dir / "pipeline_summary.json"

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(summary_data, f, indent=2, ensure_ascii=False, default=str)

        logger.info(f"Summary saved to {file_path}")
        return str(file_path)

    def _write_csv(self, file_path: Path, headers: List[str], data_items: List[Dict]) -> None:
        """Write data to CSV file."""
        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=headers)
            writer.writeheader()
            writer.writerows(data_items)

        logger.info(f"Saved {len(data_items)} records to {file_path}")

    def create_data_dictionary(self) -> str:
        """Create a data dictionary explaining all output files."""
        file_path = self.output_dir / "DATA_DICTIONARY.md"

        content = """# Data Dictionary

Outputs of one baby-names pipeline run.

## Known limitations

- The source omits (year, county, sex, name) combinations below an undisclosed
  minimum frequency. Totals therefore undercount rare names.
- When `incomplete` is true in `pipeline_summary.json`, fetching stopped early
  and every total is a lower bound.

## Files

### baby_names_clean.csv
Cleaned records: names and counties in canonical case, exact duplicates removed.

| Column | Type | Description |
|--------|------|-------------|
| year | integer | Year of birth |
| county | string | County of birth |
| sex | string | Sex code as supplied by the source |
| first_name | string | Given name |
| name_count | integer | Births with this combination |

### names_by_year.csv / names_by_county.csv / names_by_sex.csv
Total births per year (ascending year), per county (descending total, ties by
county name) and per sex code.

| Column | Type | Description |
|--------|------|-------------|
| year / county / sex | mixed | Group key |
| total_names | integer | Sum of name_count |

### top_names_by_year.csv
The most frequent names of each year. Ties at the cut-off are broken by name.

| Column | Type | Description |
|--------|------|-------------|
| year | integer | Year of birth |
| first_name | string | Given name |
| total_count | integer | Births with this name in the year, all counties |
| rank | integer | 1 = most frequent within the year |

### name_weights.csv
Total births per name across all years, heaviest first (word-cloud weights).

| Column | Type | Description |
|--------|------|-------------|
| first_name | string | Given name |
| total_count | integer | Births with this name |

### pipeline_summary.json
Fetch status (`incomplete`, `error`, `status_code`), data quality counts and
performance figures for the run.
"""

        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content)

        logger.info(f"Data dictionary created at {file_path}")
        return str(file_path)
