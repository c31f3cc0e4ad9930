# ========================
# src/merger/orchestrator.py
# ========================

"""
Merge Orchestrator Module

Coordinates one merge operation: ingestion of every file, aggregation of the
merge statistics and summarization of the merged dataset. The operation is an
explicit state machine:

    IDLE -> INGESTING -> AGGREGATING -> SUMMARIZING -> READY
                 \\
                  -> FAILED

The merge is a generator with a suspension point after every chunk, so it can
be driven synchronously, from an asyncio event loop, or step by step.
"""

import asyncio
import dataclasses
import logging
import threading
from typing import Any, Dict, Generator, Iterable, List, Optional, Sequence

from .accumulation import MergeAccumulator
from .errors import InputRejected, MergeCancelled, MergeInProgressError
from .models import InputFile, MergeResult, MergeState, MergeStats, VisualizationSummary
from .progress import ProgressObserver, ProgressTracker
from .statistics import StatisticsEngine
from ..utils.config import Config
from ..utils.performance_monitor import monitor_performance

logger = logging.getLogger(__name__)

# Progress bands: ingestion fills 0-90, aggregation ends at 95, summary at 100
INGEST_PROGRESS_CEILING = 90.0
AGGREGATE_PROGRESS = 95.0
# Share of a file's band its own parsing may report before the file completes
FILE_PROGRESS_SHARE = 0.9


def validate_input_files(files: Iterable[InputFile],
                         accepted_extensions: Sequence[str] = ('.csv',)) -> List[InputFile]:
    """
    Keep only files with a recognized tabular extension.

    Args:
        files: Candidate input files
        accepted_extensions: Lower-case extensions including the dot

    Returns:
        list[InputFile]: Accepted files, renumbered in their original order

    Raises:
        InputRejected: If no acceptable file remains
    """
    files = list(files)
    extensions = {extension.lower() for extension in accepted_extensions}
    accepted = [f for f in files if f.extension in extensions]
    rejected = [f.name for f in files if f.extension not in extensions]

    if rejected:
        logger.warning(f"Ignoring files with unsupported extensions: {rejected}")
    if not accepted:
        allowed = ', '.join(sorted(extensions))
        raise InputRejected(f"Please upload {allowed} files only", rejected_files=rejected)

    return [dataclasses.replace(f, position=index) for index, f in enumerate(accepted)]


class CSVMerger:
    """
    Merges delimited files into one dataset and derives its statistics.

    A merger runs at most one merge at a time. Starting a new merge discards
    the previous result; a cancelled merge restores it.
    """

    def __init__(self,
                 config: Optional[Config] = None,
                 chunk_size: Optional[int] = None):
        """
        Initialize the merger.

        Args:
            config (Config): Configuration object
            chunk_size (int): Bytes read per chunk, overrides the configuration
        """
        self.config = config or Config()
        self.chunk_size = chunk_size or self.config.CHUNK_SIZE_BYTES
        self.rows_per_percent = self.config.PROGRESS_ROWS_PER_PERCENT
        self.statistics = StatisticsEngine(
            sample_rows=self.config.SAMPLE_ROWS,
            column_limit=self.config.SUMMARY_COLUMN_LIMIT,
            growth_points=self.config.GROWTH_POINTS,
        )

        self._state = MergeState.IDLE
        self._result: Optional[MergeResult] = None
        self._error: Optional[Exception] = None
        self._observers: List[ProgressObserver] = []
        self._progress = ProgressTracker()
        self._run_lock = threading.Lock()
        self._cancel_requested = threading.Event()
        self.current_file: Optional[InputFile] = None

        logger.info(f"CSVMerger initialized with chunk size: {self.chunk_size:,} bytes")

    @property
    def state(self) -> MergeState:
        return self._state

    @property
    def progress(self) -> float:
        return self._progress.value

    @property
    def result(self) -> Optional[MergeResult]:
        """Result of the last completed merge, only available in READY."""
        return self._result if self._state is MergeState.READY else None

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def subscribe(self, observer: ProgressObserver) -> None:
        """Register a callback receiving every progress change."""
        self._observers.append(observer)
        self._progress.subscribe(observer)

    def cancel(self) -> None:
        """
        Request cancellation; honoured at the next chunk or file boundary.
        A request made before a merge starts cancels that merge.
        """
        logger.info("Cancellation requested")
        self._cancel_requested.set()

    def reset(self) -> None:
        """Discard the previous result and return to IDLE."""
        if self.is_running:
            raise MergeInProgressError("Cannot reset while a merge is running")
        self._cancel_requested.clear()
        self._result = None
        self._error = None
        self._progress = ProgressTracker(self._observers)
        self._transition(MergeState.IDLE)

    def merge(self, files: Iterable[InputFile]) -> MergeResult:
        """
        Run a complete merge synchronously.

        Args:
            files: Input files in merge order

        Returns:
            MergeResult: Merged dataset, statistics and visualization summary
        """
        steps = self.iter_merge(files)
        while True:
            try:
                next(steps)
            except StopIteration as stop:
                return stop.value

    async def merge_async(self, files: Iterable[InputFile]) -> MergeResult:
        """
        Run a merge from an event loop, yielding control after every chunk.
        Cancelling the awaiting task rolls the merge back.
        """
        steps = self.iter_merge(files)
        try:
            while True:
                try:
                    next(steps)
                except StopIteration as stop:
                    return stop.value
                await asyncio.sleep(0)
        finally:
            steps.close()

    def iter_merge(self, files: Iterable[InputFile]) -> Generator[float, None, MergeResult]:
        """
        Generator form of the merge. Yields the current progress after every
        chunk and stage; returns the MergeResult.

        Raises:
            MergeInProgressError: If another merge is running on this merger
            ParseError: If a file is malformed (state becomes FAILED)
            MergeCancelled: If cancelled (previous state is restored)
        """
        files = list(files)
        if not self._run_lock.acquire(blocking=False):
            raise MergeInProgressError("A merge is already running on this merger")

        snapshot = (self._state, self._result, self._error, self._progress)
        self._result = None
        self._error = None
        self._progress = ProgressTracker(self._observers)
        finished = False

        try:
            logger.info(f"Starting merge of {len(files)} files...")
            with monitor_performance("Merge", self.config.LOG_CHUNK_INTERVAL) as monitor:
                result = yield from self._run(files, monitor)

            self._result = result
            self._transition(MergeState.READY)
            self._progress.complete()
            finished = True
            logger.info("Merge finished successfully.")
            self._log_final_summary(result)
            return result

        except MergeCancelled:
            logger.warning("Merge cancelled; restoring previous state")
            raise
        except Exception as e:
            logger.error(f"Merge failed: {e}")
            self._error = e
            self._result = None
            self._transition(MergeState.FAILED)
            finished = True
            raise
        finally:
            self.current_file = None
            if not finished:
                self._restore(snapshot)
            self._cancel_requested.clear()
            self._run_lock.release()

    def _run(self, files: List[InputFile], monitor) -> Generator[float, None, MergeResult]:
        accumulator = MergeAccumulator(
            chunk_size=self.chunk_size,
            encoding=self.config.ENCODING,
            delimiter=self.config.DELIMITER,
        )

        self._check_cancelled()
        if not files:
            logger.info("No files supplied; nothing to merge")
            return MergeResult(
                schema=[],
                dataset=accumulator.handoff(),
                stats=MergeStats.empty(),
                visualization=VisualizationSummary(),
            )

        share = INGEST_PROGRESS_CEILING / len(files)
        for index, input_file in enumerate(files):
            self._check_cancelled()
            self.current_file = input_file
            self._transition(MergeState.INGESTING, f"file {index + 1} of {len(files)}: {input_file.name}")

            ceiling = index * share + share * FILE_PROGRESS_SHARE

            def on_batch(rows: int, ceiling: float = ceiling) -> None:
                self._progress.increment(rows / self.rows_per_percent, ceiling)
                monitor.update_progress(rows)

            monitor.begin_file(input_file.name, input_file.size)
            yield from self._ingest(accumulator, input_file, on_batch)
            monitor.end_file()
            self._progress.advance_to((index + 1) * share)
            yield self._progress.value

        self._check_cancelled()
        self.current_file = None
        self._transition(MergeState.AGGREGATING)
        stats = accumulator.finalize()
        self._progress.advance_to(AGGREGATE_PROGRESS)
        yield self._progress.value

        self._check_cancelled()
        self._transition(MergeState.SUMMARIZING)
        dataset = accumulator.handoff()
        visualization = self.statistics.summarize(dataset, accumulator.schema)

        return MergeResult(
            schema=accumulator.schema,
            dataset=dataset,
            stats=stats,
            visualization=visualization,
            warnings=list(accumulator.warnings),
        )

    def _ingest(self, accumulator: MergeAccumulator, input_file: InputFile, on_batch):
        steps = accumulator.iter_ingest_file(input_file, on_batch)
        try:
            while True:
                try:
                    next(steps)
                except StopIteration as stop:
                    return stop.value
                yield self._progress.value
                self._check_cancelled()
        finally:
            steps.close()

    def _check_cancelled(self) -> None:
        if self._cancel_requested.is_set():
            raise MergeCancelled("Merge cancelled")

    def _transition(self, state: MergeState, detail: str = "") -> None:
        previous = self._state
        self._state = state
        suffix = f" ({detail})" if detail else ""
        logger.info(f"Merge state: {previous.value} -> {state.value}{suffix}")

    def _restore(self, snapshot) -> None:
        state, result, error, progress = snapshot
        self._result = result
        self._error = error
        self._progress = progress
        self._transition(state, "rolled back")

    def _log_final_summary(self, result: MergeResult) -> None:
        """Log final merge summary."""
        stats = result.stats
        logger.info("=" * 60)
        logger.info("MERGE SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Files merged: {stats.total_files}")
        logger.info(f"Total rows: {stats.total_rows:,}")
        logger.info(f"Columns: {stats.total_columns}")
        logger.info(f"Total size: {stats.total_size_mb} MB")
        for file_stat in stats.file_breakdown:
            logger.info(f"  - {file_stat.name}: {file_stat.rows:,} rows, {file_stat.size_mb} MB")
        if result.warnings:
            logger.info(f"Files with schema differences: {len(result.warnings)}")
        logger.info("=" * 60)

    def status(self) -> Dict[str, Any]:
        """Snapshot of the merger for observers."""
        return {
            'state': self._state.value,
            'progress': round(self.progress, 2),
            'current_file': self.current_file.name if self.current_file else None,
            'error': str(self._error) if self._error else None,
        }
