# ========================
# tests/test_utils.py
# ========================

import unittest
import tempfile
import shutil
import json
import os
import sys
import uuid
from pathlib import Path
from unittest import mock

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.merger.progress import ProgressTracker
from src.utils.config import Config
from src.utils.data_generator import BASE_COLUMNS, DataGenerator
from src.utils.job_metadata import JobMetadataManager
from src.utils.performance_monitor import PerformanceMonitor, monitor_performance


class TestConfig(unittest.TestCase):
    """Test configuration defaults and overrides."""

    def test_defaults(self):
        config = Config()
        self.assertEqual(config.CHUNK_SIZE_BYTES, 1024 * 1024)
        self.assertEqual(config.SAMPLE_ROWS, 1000)
        self.assertEqual(config.SUMMARY_COLUMN_LIMIT, 10)
        self.assertEqual(config.GROWTH_POINTS, 20)
        self.assertEqual(config.ACCEPTED_EXTENSIONS, ['.csv'])
        self.assertTrue(all(config.validate_config().values()))

    def test_environment_overrides(self):
        env = {'MERGE_CHUNK_SIZE_BYTES': '4096', 'MERGE_ACCEPTED_EXTENSIONS': '.CSV, .tsv'}
        with mock.patch.dict(os.environ, env):
            config = Config()

        self.assertEqual(config.CHUNK_SIZE_BYTES, 4096)
        self.assertEqual(config.ACCEPTED_EXTENSIONS, ['.csv', '.tsv'])

    def test_dict_overrides(self):
        config = Config({'sample_rows': 50, 'unknown_key': 1})
        self.assertEqual(config.SAMPLE_ROWS, 50)
        self.assertFalse(hasattr(config, 'UNKNOWN_KEY'))

    def test_dict_overrides_are_coerced(self):
        config = Config({'SAMPLE_ROWS': '25', 'accepted_extensions': '.csv,.TXT'})
        self.assertEqual(config.SAMPLE_ROWS, 25)
        self.assertEqual(config.ACCEPTED_EXTENSIONS, ['.csv', '.txt'])

    def test_invalid_values_flagged(self):
        config = Config({'chunk_size_bytes': 0, 'delimiter': ';;'})
        validations = config.validate_config()
        self.assertFalse(validations['chunk_size'])
        self.assertFalse(validations['delimiter'])

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'config.json')
            Config({'growth_points': 7}).save_to_file(path)
            self.assertEqual(Config.load_from_file(path).GROWTH_POINTS, 7)


class TestProgressTracker(unittest.TestCase):
    """Test the monotonic progress value."""

    def test_never_decreases(self):
        tracker = ProgressTracker()
        tracker.advance_to(40)
        tracker.advance_to(10)
        self.assertEqual(tracker.value, 40)

    def test_clamped(self):
        tracker = ProgressTracker()
        tracker.advance_to(150)
        self.assertEqual(tracker.value, 100)

    def test_increment_respects_ceiling(self):
        tracker = ProgressTracker()
        tracker.increment(30, ceiling=20)
        self.assertEqual(tracker.value, 20)
        tracker.increment(5, ceiling=20)
        self.assertEqual(tracker.value, 20)

    def test_observers_notified_on_change_only(self):
        seen = []
        tracker = ProgressTracker([seen.append])
        tracker.advance_to(10)
        tracker.advance_to(10)
        tracker.complete()
        self.assertEqual(seen, [10, 100])


class TestPerformanceMonitor(unittest.TestCase):
    """Test performance monitoring."""

    def test_tracks_rows_per_file(self):
        with monitor_performance("Test", log_chunk_interval=2) as monitor:
            monitor.begin_file("one.csv", 100)
            monitor.update_progress(10)
            monitor.update_progress(5)
            monitor.end_file()
            monitor.begin_file("two.csv", 50)
            monitor.update_progress(3)

        self.assertEqual(monitor.rows_processed, 18)
        self.assertEqual(monitor.chunks_processed, 3)
        self.assertEqual([entry['name'] for entry in monitor.file_timings], ['one.csv', 'two.csv'])
        self.assertEqual([entry['rows'] for entry in monitor.file_timings], [15, 3])
        self.assertIsNotNone(monitor.end_time)

    def test_summary(self):
        monitor = PerformanceMonitor("Test")
        monitor.start_monitoring()
        monitor.update_progress(100)
        summary = monitor.stop_monitoring()

        self.assertEqual(summary['rows_processed'], 100)
        self.assertEqual(summary['files'], [])
        self.assertGreater(summary['peak_memory_mb'], 0)

    def test_end_file_without_begin(self):
        self.assertIsNone(PerformanceMonitor("Test").end_file())


class TestDataGenerator(unittest.TestCase):
    """Test the sample data generator."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_column_layouts(self):
        generator = DataGenerator(seed=1)
        self.assertEqual(generator.column_layout(0), BASE_COLUMNS)
        self.assertEqual(len(generator.column_layout(1)), len(BASE_COLUMNS) + 1)
        self.assertNotIn('customer_email', generator.column_layout(2))
        self.assertEqual(generator.column_layout(3), list(reversed(BASE_COLUMNS)))
        self.assertEqual(generator.column_layout(2, drift=False), BASE_COLUMNS)

    def test_generate_dataset(self):
        path = os.path.join(self.temp_dir, 'sales.csv')
        stats = DataGenerator(seed=1).generate_dataset(path, 25)

        with open(path) as f:
            lines = f.read().splitlines()
        self.assertEqual(lines[0], ','.join(BASE_COLUMNS))
        self.assertEqual(len(lines), 26)
        self.assertEqual(stats['total_rows'], 25)
        self.assertEqual(stats['file_size'], os.path.getsize(path))

    def test_seed_is_reproducible(self):
        first = os.path.join(self.temp_dir, 'first.csv')
        second = os.path.join(self.temp_dir, 'second.csv')
        DataGenerator(seed=3).generate_dataset(first, 20)
        DataGenerator(seed=3).generate_dataset(second, 20)
        self.assertEqual(Path(first).read_bytes(), Path(second).read_bytes())

    def test_generate_file_batch(self):
        batch = DataGenerator(seed=1).generate_file_batch(self.temp_dir, 3, 10)
        names = [Path(entry['file_path']).name for entry in batch]
        self.assertEqual(names, ['sales_part_01.csv', 'sales_part_02.csv', 'sales_part_03.csv'])


class TestJobMetadataManager(unittest.TestCase):
    """Test persistence and discovery of merge jobs."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.manager = JobMetadataManager(
            metadata_file=str(self.temp_dir / 'jobs.json'),
            export_dir=str(self.temp_dir / 'merged'),
        )

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_and_load(self):
        jobs = {
            'done': {'status': 'ready'},
            'running': {'status': 'ingesting'},
        }
        self.manager.save_job_metadata(jobs)
        loaded = self.manager.load_job_metadata()

        self.assertEqual(loaded['done']['status'], 'ready')
        self.assertEqual(loaded['running']['status'], 'failed')
        self.assertEqual(loaded['running']['error'], 'Interrupted by server restart')

    def test_missing_or_corrupt_metadata(self):
        self.assertEqual(self.manager.load_job_metadata(), {})
        (self.temp_dir / 'jobs.json').write_text('{not json')
        self.assertEqual(self.manager.load_job_metadata(), {})

    def test_discover_existing_jobs(self):
        job_id = str(uuid.uuid4())
        job_dir = self.temp_dir / 'merged' / job_id
        job_dir.mkdir(parents=True)
        (job_dir / 'merged_data_1700000000000.csv').write_text('a\r\n1\r\n')
        summary = {'stats': {'file_breakdown': [{'name': 'one.csv', 'size_mb': 0.0, 'rows': 1}]}}
        (job_dir / 'merge_summary.json').write_text(json.dumps(summary))
        (self.temp_dir / 'merged' / 'not-a-job').mkdir()

        discovered = self.manager.discover_existing_jobs()

        self.assertEqual(list(discovered), [job_id])
        job = discovered[job_id]
        self.assertEqual(job['status'], 'ready')
        self.assertEqual(job['filenames'], ['one.csv'])
        self.assertTrue(job['saved_files']['merged'].endswith('merged_data_1700000000000.csv'))


if __name__ == '__main__':
    unittest.main()
