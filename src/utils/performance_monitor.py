# ========================
# src/utils/performance_monitor.py
# ========================

"""
Performance Monitoring Utilities

Measures a merge while it runs: wall time and row throughput per input file
and overall, and the peak resident memory of the process.
"""

import os
import time
import logging
from contextlib import contextmanager
from typing import Dict, Any, List, Optional

import psutil

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class PerformanceMonitor:
    """
    Collects timing and memory figures for one merge.

    Rows are reported per parsed chunk through ``update_progress``; each input
    file is bracketed by ``begin_file``/``end_file`` so its own throughput is
    kept alongside the totals.
    """

    def __init__(self, name: str = "Merge", log_chunk_interval: int = 100):
        """
        Args:
            name (str): Label used in log messages
            log_chunk_interval (int): Log a progress line every N chunks
        """
        self.name = name
        self.log_chunk_interval = max(1, log_chunk_interval)
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.rows_processed = 0
        self.chunks_processed = 0
        self.peak_memory_mb = 0.0
        self.file_timings: List[Dict[str, Any]] = []

        self._process = psutil.Process(os.getpid())
        self._current_file: Optional[Dict[str, Any]] = None

    def start_monitoring(self) -> None:
        self.start_time = time.perf_counter()
        self.peak_memory_mb = self._sample_memory()
        logger.debug(f"{self.name} - monitoring started at {self.peak_memory_mb:.2f} MB resident")

    def begin_file(self, file_name: str, size_bytes: int = 0) -> None:
        """Start timing one input file."""
        self._current_file = {
            'name': file_name,
            'size_bytes': size_bytes,
            'rows': 0,
            'started': time.perf_counter(),
        }

    def update_progress(self, rows_in_chunk: int) -> None:
        """Record the rows of one parsed chunk."""
        self.rows_processed += rows_in_chunk
        self.chunks_processed += 1
        if self._current_file is not None:
            self._current_file['rows'] += rows_in_chunk

        if self.chunks_processed % self.log_chunk_interval == 0:
            current = self._sample_memory()
            logger.info(
                f"{self.name} - {self.chunks_processed:,} chunks, {self.rows_processed:,} rows, "
                f"{self.throughput():,.0f} rows/sec, {current:.2f} MB resident"
            )

    def end_file(self) -> Optional[Dict[str, Any]]:
        """Stop timing the current file and return its timing record."""
        if self._current_file is None:
            return None

        entry = self._current_file
        self._current_file = None
        seconds = time.perf_counter() - entry.pop('started')
        entry['seconds'] = seconds
        entry['rows_per_second'] = entry['rows'] / seconds if seconds > 0 else 0.0
        self.file_timings.append(entry)
        self._sample_memory()

        logger.debug(
            f"{self.name} - '{entry['name']}': {entry['rows']:,} rows in {seconds:.3f}s "
            f"({entry['rows_per_second']:,.0f} rows/sec)"
        )
        return entry

    def throughput(self) -> float:
        elapsed = self.elapsed()
        return self.rows_processed / elapsed if elapsed > 0 else 0.0

    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time

    def stop_monitoring(self) -> Dict[str, Any]:
        """
        Stop monitoring and return the summary.

        Returns:
            dict: Totals, peak memory and per-file timings
        """
        if self._current_file is not None:
            self.end_file()
        self.end_time = time.perf_counter()
        self._sample_memory()

        summary = {
            'name': self.name,
            'elapsed_seconds': self.elapsed(),
            'rows_processed': self.rows_processed,
            'chunks_processed': self.chunks_processed,
            'rows_per_second': self.throughput(),
            'peak_memory_mb': self.peak_memory_mb,
            'files': list(self.file_timings),
        }
        logger.info(
            f"{self.name} - {self.rows_processed:,} rows from {len(self.file_timings)} files in "
            f"{summary['elapsed_seconds']:.2f}s ({summary['rows_per_second']:,.0f} rows/sec), "
            f"peak memory {self.peak_memory_mb:.2f} MB"
        )
        return summary

    def _sample_memory(self) -> float:
        try:
            current = self._process.memory_info().rss / BYTES_PER_MB
        except psutil.Error as e:
            logger.debug(f"Could not read process memory: {e}")
            return self.peak_memory_mb
        self.peak_memory_mb = max(self.peak_memory_mb, current)
        return current


@contextmanager
def monitor_performance(name: str = "Merge", log_chunk_interval: int = 100):
    """
    Context manager wrapping a monitored block.

    Yields:
        PerformanceMonitor: Started monitor, stopped on exit
    """
    monitor = PerformanceMonitor(name, log_chunk_interval)
    monitor.start_monitoring()
    try:
        yield monitor
    finally:
        monitor.stop_monitoring()


class SystemResourceMonitor:
    """Host-wide resource figures reported by the health endpoint."""

    @staticmethod
    def get_system_stats() -> Dict[str, Any]:
        stats = {}
        try:
            memory = psutil.virtual_memory()
            stats['cpu_count'] = psutil.cpu_count()
            stats['cpu_percent'] = psutil.cpu_percent(interval=None)
            stats['memory_available_gb'] = round(memory.available / (1024 ** 3), 2)
            stats['memory_used_percent'] = memory.percent
            stats['process_memory_mb'] = round(psutil.Process(os.getpid()).memory_info().rss / BYTES_PER_MB, 2)
        except (psutil.Error, OSError) as e:
            logger.warning(f"Could not get system stats: {e}")
        return stats
