# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the merge engine with environment support.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def _split_list(value: str):
    return [item.strip().lower() for item in value.split(',') if item.strip()]


class Config:
    """
    Configuration class for the merge engine.
    Supports environment variables and default values.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides
        """
        # Ingestion Configuration
        self.CHUNK_SIZE_BYTES = int(os.getenv('MERGE_CHUNK_SIZE_BYTES', str(1024 * 1024)))
        self.ENCODING = os.getenv('MERGE_ENCODING', 'utf-8-sig')
        self.DELIMITER = os.getenv('MERGE_DELIMITER', ',')
        self.ACCEPTED_EXTENSIONS = _split_list(os.getenv('MERGE_ACCEPTED_EXTENSIONS', '.csv'))

        # Statistics & Sampling
        self.SAMPLE_ROWS = int(os.getenv('MERGE_SAMPLE_ROWS', '1000'))
        self.SUMMARY_COLUMN_LIMIT = int(os.getenv('MERGE_SUMMARY_COLUMNS', '10'))
        self.GROWTH_POINTS = int(os.getenv('MERGE_GROWTH_POINTS', '20'))
        self.PREVIEW_ROWS = int(os.getenv('MERGE_PREVIEW_ROWS', '10'))

        # Progress Reporting
        self.PROGRESS_ROWS_PER_PERCENT = int(os.getenv('MERGE_PROGRESS_ROWS_PER_PERCENT', '10000'))

        # File Paths
        self.EXPORT_DIR = os.getenv('MERGE_EXPORT_DIR', 'data/merged')
        self.UPLOAD_DIR = os.getenv('MERGE_UPLOAD_DIR', 'data/uploaded')
        self.SAMPLE_DIR = os.getenv('MERGE_SAMPLE_DIR', 'data/raw')
        self.JOB_METADATA_FILE = os.getenv('MERGE_JOB_METADATA_FILE', 'data/job_metadata.json')

        # Data Generation Settings
        self.DEFAULT_SAMPLE_FILES = int(os.getenv('SAMPLE_FILES', '3'))
        self.DEFAULT_SAMPLE_ROWS_PER_FILE = int(os.getenv('SAMPLE_ROWS_PER_FILE', '5000'))

        # API Settings
        self.API_PORT = int(os.getenv('API_PORT', '8000'))
        self.MAX_CONCURRENT_MERGES = int(os.getenv('MAX_CONCURRENT_MERGES', '3'))

        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        self.LOG_CHUNK_INTERVAL = int(os.getenv('LOG_CHUNK_INTERVAL', '100'))

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """
        Apply overrides. Keys are case-insensitive; unknown keys are ignored
        and values are coerced to the type of the setting they replace.
        """
        for key, value in config_dict.items():
            name = key.upper()
            if not hasattr(self, name):
                logger.debug(f"Ignoring unknown configuration key: {key}")
                continue

            current = getattr(self, name)
            if isinstance(current, list) and isinstance(value, str):
                value = _split_list(value)
            elif isinstance(current, int) and not isinstance(value, bool):
                value = int(value)
            setattr(self, name, value)

    def get_data_paths(self) -> Dict[str, Path]:
        """Directories and files the engine reads from or writes to."""
        return {
            'export_dir': Path(self.EXPORT_DIR),
            'upload_dir': Path(self.UPLOAD_DIR),
            'sample_dir': Path(self.SAMPLE_DIR),
            'job_metadata_file': Path(self.JOB_METADATA_FILE),
        }

    def ensure_directories(self) -> None:
        """Create the configured directories (and the metadata file's parent)."""
        for name, path in self.get_data_paths().items():
            directory = path if name.endswith('_dir') else path.parent
            directory.mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        valid_log_levels = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        return {
            'chunk_size': self.CHUNK_SIZE_BYTES > 0,
            'sample_rows': self.SAMPLE_ROWS > 0,
            'summary_columns': self.SUMMARY_COLUMN_LIMIT > 0,
            'growth_points': self.GROWTH_POINTS > 0,
            'progress_rows': self.PROGRESS_ROWS_PER_PERCENT > 0,
            'delimiter': len(self.DELIMITER) == 1,
            'extensions': bool(self.ACCEPTED_EXTENSIONS) and all(
                ext.startswith('.') for ext in self.ACCEPTED_EXTENSIONS
            ),
            'api_port': 1000 <= self.API_PORT <= 65535,
            'max_concurrent_merges': self.MAX_CONCURRENT_MERGES > 0,
            'log_level': self.LOG_LEVEL.upper() in valid_log_levels,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Settings as a plain dictionary (upper-case attributes only)."""
        return {key: value for key, value in vars(self).items() if key.isupper()}

    def save_to_file(self, file_path: str) -> None:
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_from_file(cls, file_path: str) -> 'Config':
        with open(file_path, 'r') as f:
            return cls(json.load(f))

    def __str__(self) -> str:
        lines = ["Configuration Settings:"]
        lines.extend(f"  {key}: {value}" for key, value in sorted(self.to_dict().items()))
        return "\n".join(lines)
