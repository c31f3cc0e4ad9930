#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for the CSV Merge Engine

Merges the CSV files given on the command line, or a generated batch of
sample files when none are given, then writes the merged CSV and a JSON
summary of the merge statistics.

Usage:
    python main.py [file1.csv file2.csv ...]
"""

import sys
import logging
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from src.merger import CSVExporter, CSVMerger, InputFile, MergeError, validate_input_files
from src.utils import Config, setup_logging, DataGenerator


def main(argv=None):
    """Main execution function."""
    argv = sys.argv[1:] if argv is None else argv
    config = Config()

    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file="merge.log",
        log_dir="logs"
    )

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("CSV MERGE ENGINE - MAIN EXECUTION")
    logger.info("=" * 60)

    try:
        config.ensure_directories()

        # Step 1: Collect input files
        if argv:
            paths = [Path(arg) for arg in argv]
        else:
            logger.info("Step 1: No input files given, generating sample files...")
            generator = DataGenerator(seed=42)  # Reproducible data
            batch = generator.generate_file_batch(
                output_dir=config.SAMPLE_DIR,
                num_files=config.DEFAULT_SAMPLE_FILES,
                rows_per_file=config.DEFAULT_SAMPLE_ROWS_PER_FILE,
            )
            paths = [Path(entry['file_path']) for entry in batch]

        missing = [str(path) for path in paths if not path.is_file()]
        if missing:
            logger.error(f"Input files not found: {missing}")
            return 1

        files = validate_input_files(
            [InputFile.from_path(path, position) for position, path in enumerate(paths)],
            config.ACCEPTED_EXTENSIONS,
        )

        # Step 2: Merge
        logger.info(f"Step 2: Merging {len(files)} files...")
        merger = CSVMerger(config=config)
        result = merger.merge(files)

        # Step 3: Export
        logger.info("Step 3: Exporting merged data...")
        exporter = CSVExporter(output_dir=config.EXPORT_DIR)
        merged_path = exporter.save(result.dataset, result.schema)
        summary_path = exporter.save_summary(result)

        logger.info("=" * 60)
        logger.info("MERGE COMPLETED SUCCESSFULLY")
        logger.info("=" * 60)
        logger.info(f"Merged CSV: {merged_path}")
        logger.info(f"Summary: {summary_path}")

        logger.info("\nColumn analysis (sampled):")
        for column in result.visualization.column_stats:
            logger.info(
                f"  - {column.column}: {column.total_values} values, "
                f"{column.numeric_count} numeric, avg {column.avg_value}, "
                f"{column.null_count} empty"
            )
        for warning in result.warnings:
            logger.info(
                f"  ! {warning.file_name}: dropped {warning.dropped_columns}, "
                f"emptied {warning.missing_columns}"
            )
        return 0

    except MergeError as e:
        logger.error(f"Merge failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
