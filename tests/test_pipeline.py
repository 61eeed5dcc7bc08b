# ========================
# tests/test_pipeline.py
# ========================

import unittest
import csv
import json
import os
import shutil
import sys
import tempfile

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.babynames.cleaning import RecordCleaner, RecordDeduplicator, normalize_text
from src.babynames.models import FetchState, Record
from src.babynames.orchestrator import INCOMPLETE_NOTE, NamesPipeline
from src.babynames.storage import DataSaver
from src.babynames.transformation import TABLE_NAMES, AggregationEngine
from src.utils.config import Config
from src.utils.data_generator import DataGenerator, SyntheticSource

SOURCE_URL = "https://example.org/resource/names.csv"


class TestFieldNormalizer(unittest.TestCase):

    def test_normalization_cases(self):
        cases = [
            ('MIA', 'Mia'),
            ('mia', 'Mia'),
            ('mIA', 'Mia'),
            ('NEW YORK', 'New York'),
            ('  st   LAWRENCE  ', 'St Lawrence'),
            ('mary-jane', 'Mary-jane'),
            ("o'BRIEN", "O'brien"),
            ('', ''),
            (None, None),
        ]
        for value, expected in cases:
            self.assertEqual(normalize_text(value), expected, f"Failed for: {value!r}")

    def test_idempotent(self):
        for value in ['KINGS', 'st. lawrence', 'JOSÉ', 'ß', 'İSTANBUL', 'a  b\tc', 'x1Y2']:
            once = normalize_text(value)
            self.assertEqual(normalize_text(once), once, f"Not idempotent for: {value!r}")

    def test_case_insensitive_inputs_agree(self):
        self.assertEqual(normalize_text('queens'), normalize_text('QUEENS'))
        self.assertEqual(normalize_text('new york'), normalize_text('New YORK'))


class TestRecordCleaner(unittest.TestCase):

    def setUp(self):
        self.cleaner = RecordCleaner()

    def test_normalizes_name_and_county_only(self):
        record = Record(2007, 'KINGS', 'F', 'MIA', 50)
        cleaned = self.cleaner.clean_record(record)
        self.assertEqual(cleaned, Record(2007, 'Kings', 'F', 'Mia', 50))

    def test_unexpected_sex_code_is_reported_not_coerced(self):
        records = [Record(2007, 'Kings', 'X', 'Mia', 5), Record(2007, 'Kings', 'f', 'Mia', 5),
                   Record(2008, 'Kings', 'X', 'Ava', 5), Record(2008, 'Kings', None, 'Ava', 5)]
        cleaned = self.cleaner.clean_records(records)

        self.assertEqual([r.sex for r in cleaned], ['X', 'f', 'X', None])
        stats = self.cleaner.get_statistics()
        self.assertEqual(stats['unexpected_sex_codes'], {'X': 2, 'f': 1})
        self.assertEqual(stats['unexpected_sex_code_rows'], 3)
        self.assertEqual(stats['records_processed'], 4)


class TestRecordDeduplicator(unittest.TestCase):

    def test_exact_duplicates_removed(self):
        records = [Record(2007, 'Kings', 'F', 'Mia', 50), Record(2007, 'Kings', 'F', 'Mia', 50)]
        deduplicator = RecordDeduplicator()

        unique = deduplicator.deduplicate(records)

        self.assertEqual(unique, [Record(2007, 'Kings', 'F', 'Mia', 50)])
        self.assertEqual(deduplicator.get_statistics()['duplicates_removed'], 1)

    def test_rows_differing_in_any_field_are_kept(self):
        records = [
            Record(2020, 'X', 'F', 'Emma', 30),
            Record(2020, 'Y', 'F', 'Emma', 30),
            Record(2020, 'X', 'F', 'Emma', 31),
        ]
        self.assertEqual(RecordDeduplicator().deduplicate(records), records)

    def test_order_is_stable_and_idempotent(self):
        a, b, c = Record(1, 'A', 'F', 'N', 1), Record(2, 'B', 'M', 'N', 2), Record(3, 'C', 'F', 'N', 3)
        once = RecordDeduplicator().deduplicate([b, a, b, c, a])
        self.assertEqual(once, [b, a, c])
        self.assertEqual(RecordDeduplicator().deduplicate(once), once)

    def test_missing_values_counted(self):
        records = [Record(2007, None, 'F', 'Mia', None), Record(2007, None, 'F', 'Mia', None)]
        deduplicator = RecordDeduplicator()
        deduplicator.deduplicate(records)

        stats = deduplicator.get_statistics()
        self.assertEqual(stats['missing_values']['county'], 2)
        self.assertEqual(stats['missing_values']['name_count'], 2)
        self.assertEqual(stats['missing_values']['year'], 0)
        self.assertEqual(stats['missing_value_total'], 4)
        self.assertEqual(stats['records_out'], 1)


class TestAggregationEngine(unittest.TestCase):

    def setUp(self):
        self.engine = AggregationEngine(top_n=2)
        self.records = [
            Record(2019, 'Kings', 'F', 'Emma', 30),
            Record(2019, 'Queens', 'F', 'Emma', 20),
            Record(2019, 'Kings', 'F', 'Mia', 50),
            Record(2019, 'Kings', 'M', 'Noah', 50),
            Record(2019, 'Erie', 'M', 'Liam', 10),
            Record(2020, 'Queens', 'F', 'Ava', 40),
            Record(2020, 'Queens', 'M', 'Liam', 40),
            Record(2020, 'Kings', 'M', 'Zane', 40),
            Record(2020, 'Erie', 'U', 'Ava', 5),
        ]
        self.dataset_total = sum(r.name_count for r in self.records)

    def test_sum_invariant_holds_for_every_table(self):
        tables = AggregationEngine(top_n=1000).aggregate_all(self.records)
        for name in ('by_year', 'by_county', 'by_sex', 'top_names_by_year', 'name_weights'):
            self.assertEqual(tables[name].grand_total(), self.dataset_total, f"Sum mismatch in {name}")

    def test_by_year(self):
        table = self.engine.totals_by_year(self.records)
        self.assertEqual([(row.group, row.total) for row in table], [((2019,), 160), ((2020,), 125)])
        self.assertEqual(table.to_dicts()[0], {'year': 2019, 'total_names': 160})

    def test_by_county_sorted_desc_with_name_ties(self):
        records = [Record(2020, 'Queens', 'F', 'A', 10), Record(2020, 'Erie', 'F', 'B', 10),
                   Record(2020, 'Kings', 'F', 'C', 25)]
        table = self.engine.totals_by_county(records)
        self.assertEqual(table.pairs(), [('Kings', 25), ('Erie', 10), ('Queens', 10)])

    def test_by_sex_includes_unexpected_codes(self):
        table = self.engine.totals_by_sex(self.records)
        self.assertEqual(table.pairs(), [('F', 140), ('M', 140), ('U', 5)])

    def test_top_n_breaks_ties_by_name(self):
        table = self.engine.top_names_by_year(self.records)
        rows = [(row.group, row.total, row.rank) for row in table]
        self.assertEqual(rows, [
            ((2019, 'Emma'), 50, 1),
            ((2019, 'Mia'), 50, 2),
            ((2020, 'Ava'), 45, 1),
            ((2020, 'Liam'), 40, 2),
        ])
        self.assertEqual(table.columns, ['year', 'first_name', 'total_count', 'rank'])

    def test_top_n_selection_property(self):
        records = DataGenerator(seed=7).generate_rows(500)
        dataset = [Record(int(r['year']), r['county'], r['sex'], r['first_name'], int(r['name_count']))
                   for r in records]
        engine = AggregationEngine(top_n=3)
        full = engine.group_sum(dataset, ('year', 'first_name'))
        table = engine.top_names_by_year(dataset)

        for year in {key[0] for key in full}:
            selected = [row for row in table if row.group[0] == year]
            self.assertLessEqual(len(selected), 3)
            totals = [row.total for row in selected]
            self.assertEqual(totals, sorted(totals, reverse=True))
            for row in selected:
                self.assertEqual(full[row.group], row.total)
            chosen = {row.group for row in selected}
            unselected = [total for key, total in full.items() if key[0] == year and key not in chosen]
            if unselected:
                self.assertLessEqual(max(unselected), min(totals))

    def test_same_name_in_different_counties_sums(self):
        records = [Record(2020, 'X', 'F', 'Emma', 30), Record(2020, 'Y', 'F', 'Emma', 30)]
        table = self.engine.top_names_by_year(records)
        self.assertEqual(table.lookup(2020, 'Emma').total, 60)

    def test_name_weights(self):
        table = self.engine.name_weights(self.records)
        self.assertEqual(table.pairs(), [
            ('Emma', 50), ('Liam', 50), ('Mia', 50), ('Noah', 50), ('Ava', 45), ('Zane', 40),
        ])

    def test_missing_keys_group_last(self):
        records = [Record(None, None, 'F', 'Mia', 3), Record(2020, 'Kings', 'F', 'Mia', 3)]
        table = self.engine.totals_by_year(records)
        self.assertEqual([row.group for row in table], [(2020,), (None,)])

        table = self.engine.totals_by_county(records)
        self.assertEqual([row.group for row in table], [('Kings',), (None,)])

    def test_missing_counts_contribute_nothing(self):
        records = [Record(2020, 'Kings', 'F', 'Mia', None), Record(2020, 'Kings', 'F', 'Ava', 4)]
        self.assertEqual(self.engine.totals_by_year(records).grand_total(), 4)

    def test_large_sums_are_exact(self):
        big = 10 ** 20
        records = [Record(2020, 'Kings', 'F', 'Mia', big), Record(2020, 'Queens', 'F', 'Mia', 1)]
        self.assertEqual(self.engine.totals_by_year(records).lookup(2020).total, big + 1)

    def test_invalid_top_n(self):
        with self.assertRaises(ValueError):
            AggregationEngine(top_n=0)

    def test_explicit_top_n_is_validated_not_defaulted(self):
        for top_n in (0, -1):
            with self.assertRaises(ValueError):
                self.engine.top_names_by_year(self.records, top_n=top_n)

        table = self.engine.top_names_by_year(self.records, top_n=1)
        self.assertTrue(all(row.rank == 1 for row in table))


class TestNamesPipeline(unittest.TestCase):

    def make_pipeline(self, source, **kwargs):
        return NamesPipeline(SOURCE_URL, page_size=kwargs.pop('page_size', 50), session=source, **kwargs)

    def test_duplicate_rows_counted_once(self):
        rows = [{'year': '2007', 'county': 'KINGS', 'sex': 'F', 'first_name': 'MIA', 'name_count': '50'}] * 2
        result = self.make_pipeline(SyntheticSource(rows)).run()

        self.assertFalse(result.incomplete)
        self.assertEqual(len(result.dataset), 1)
        self.assertEqual(result.tables['by_year'].lookup(2007).total, 50)
        self.assertEqual(result.quality['duplicates_removed'], 1)

    def test_case_variants_become_duplicates_after_normalization(self):
        rows = [
            {'year': '2007', 'county': 'KINGS', 'sex': 'F', 'first_name': 'MIA', 'name_count': '50'},
            {'year': '2007', 'county': ' kings', 'sex': 'F', 'first_name': 'mia', 'name_count': '50'},
        ]
        result = self.make_pipeline(SyntheticSource(rows)).run()
        self.assertEqual(result.dataset, [Record(2007, 'Kings', 'F', 'Mia', 50)])

    def test_end_to_end_with_generated_source(self):
        rows = DataGenerator(seed=42).generate_rows(300, duplicate_rate=0.1, missing_rate=0.05)
        result = self.make_pipeline(SyntheticSource(rows), page_size=64, top_n=5).run()

        self.assertFalse(result.incomplete)
        self.assertEqual(result.fetch.state, FetchState.DONE)
        self.assertEqual(len(result.fetch.records), len(rows))
        self.assertEqual(list(result.tables), list(TABLE_NAMES))
        for name in ('by_year', 'by_county', 'by_sex', 'name_weights'):
            self.assertEqual(result.tables[name].grand_total(), result.dataset_total(), f"Sum mismatch in {name}")
        self.assertGreater(result.quality['duplicates_removed'], 0)
        self.assertGreater(result.quality['missing_values']['county'], 0)
        for record in result.dataset:
            self.assertEqual(record.first_name, normalize_text(record.first_name))
        self.assertEqual(len(result.notes), 1)

    def test_incomplete_flag_propagates(self):
        rows = DataGenerator(seed=1).generate_rows(100, duplicate_rate=0.0)
        source = SyntheticSource(rows, fail_on_request=3, fail_status=500)
        result = self.make_pipeline(source, page_size=20).run()

        self.assertTrue(result.incomplete)
        self.assertEqual(len(result.fetch.records), 40)
        self.assertEqual(result.status_code, 500)
        self.assertIn(INCOMPLETE_NOTE, result.notes)
        self.assertEqual(result.tables['by_year'].grand_total(), result.dataset_total())

        summary = result.to_dict()
        self.assertTrue(summary['incomplete'])
        self.assertEqual(summary['pipeline_status'], 'incomplete')
        self.assertEqual(summary['fetch']['status_code'], 500)

    def test_from_config(self):
        config = Config({'page_size': 7, 'top_n': 3, 'order_by': ''})
        source = SyntheticSource(DataGenerator(seed=3).generate_rows(20),
                                 limit_param=config.LIMIT_PARAM, offset_param=config.OFFSET_PARAM)
        pipeline = NamesPipeline.from_config(config, session=source)

        self.assertEqual(pipeline.fetcher.page_size, 7)
        self.assertEqual(pipeline.engine.top_n, 3)
        result = pipeline.run()
        self.assertFalse(result.incomplete)
        self.assertEqual(source.requests[0], {'$limit': 7, '$offset': 0})


class TestDataSaver(unittest.TestCase):

    def setUp(self):
        self.output_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.output_dir, ignore_errors=True)

    def test_save_all_data(self):
        rows = DataGenerator(seed=5).generate_rows(60)
        result = NamesPipeline(SOURCE_URL, page_size=25, top_n=3, session=SyntheticSource(rows)).run()

        saved_files = DataSaver(self.output_dir).save_all_data(result)

        for key in ('dataset', 'summary', 'data_dictionary', *TABLE_NAMES):
            self.assertIn(key, saved_files)
            self.assertTrue(os.path.exists(saved_files[key]), f"Missing output: {key}")

        with open(saved_files['top_names_by_year'], newline='', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            self.assertEqual(reader.fieldnames, ['year', 'first_name', 'total_count', 'rank'])
            self.assertEqual(len(list(reader)), len(result.tables['top_names_by_year']))

        with open(saved_files['dataset'], newline='', encoding='utf-8') as f:
            self.assertEqual(len(list(csv.DictReader(f))), len(result.dataset))

        with open(saved_files['summary'], encoding='utf-8') as f:
            summary = json.load(f)
        self.assertFalse(summary['incomplete'])
        self.assertEqual(summary['records'], len(result.dataset))


class TestConfig(unittest.TestCase):

    def test_defaults_are_valid(self):
        config = Config()
        self.assertEqual(config.invalid_settings(), [])

    def test_overrides_and_validation(self):
        config = Config({'page_size': 0, 'log_level': 'LOUD'})
        self.assertEqual(config.PAGE_SIZE, 0)
        self.assertIn('page_size', config.invalid_settings())
        self.assertIn('log_level', config.invalid_settings())

    def test_round_trip_through_file(self):
        config = Config({'top_n': 25})
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'config.json')
            config.save_to_file(path)
            loaded = Config.load_from_file(path)
        self.assertEqual(loaded.TOP_N, 25)


if __name__ == '__main__':
    unittest.main()
