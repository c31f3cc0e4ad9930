# ========================
# src/utils/job_metadata.py
# ========================

"""
Job Metadata Management

Handles persistent storage and discovery of merge job metadata.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)

SUMMARY_FILE_NAME = "merge_summary.json"


class JobMetadataManager:
    """Manages persistent merge job metadata storage."""

    def __init__(self,
                 metadata_file: str = "data/job_metadata.json",
                 export_dir: str = "data/merged"):
        self.metadata_file = Path(metadata_file)
        self.export_dir = Path(export_dir)
        self.metadata_file.parent.mkdir(parents=True, exist_ok=True)

    def save_job_metadata(self, job_status_dict: Dict[str, Dict[str, Any]]) -> None:
        """Save all job metadata to persistent storage."""
        try:
            with open(self.metadata_file, 'w') as f:
                json.dump(job_status_dict, f, indent=2, default=str)
            logger.debug(f"Saved job metadata for {len(job_status_dict)} jobs")
        except OSError as e:
            logger.error(f"Failed to save job metadata: {e}")

    def load_job_metadata(self) -> Dict[str, Dict[str, Any]]:
        """Load job metadata from persistent storage."""
        if not self.metadata_file.exists():
            return {}
        try:
            with open(self.metadata_file, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load job metadata: {e}")
            return {}

        # Jobs interrupted by a restart can never finish
        for job in data.values():
            if job.get('status') in ('queued', 'ingesting', 'aggregating', 'summarizing'):
                job['status'] = 'failed'
                job['error'] = 'Interrupted by server restart'

        logger.info(f"Loaded metadata for {len(data)} persisted jobs")
        return data

    def discover_existing_jobs(self) -> Dict[str, Dict[str, Any]]:
        """Discover completed merges from job-specific export directories."""
        discovered_jobs = {}

        if not self.export_dir.exists():
            return discovered_jobs

        for job_dir in self.export_dir.iterdir():
            if not (job_dir.is_dir() and self._is_valid_uuid(job_dir.name)):
                continue

            summary_file = job_dir / SUMMARY_FILE_NAME
            merged_files = sorted(job_dir.glob("merged_data_*.csv"))
            if not summary_file.exists() or not merged_files:
                continue

            job_id = job_dir.name
            completed_at = datetime.fromtimestamp(summary_file.stat().st_mtime).isoformat()
            job = {
                'job_id': job_id,
                'filenames': [],
                'status': 'ready',
                'progress': 100.0,
                'created_at': completed_at,
                'completed_at': completed_at,
                'output_dir': str(job_dir),
                'saved_files': {
                    'merged': str(merged_files[-1]),
                    'summary': str(summary_file),
                },
                'discovered_on_startup': True,
            }

            try:
                with open(summary_file, 'r') as f:
                    job['results'] = json.load(f)
                job['filenames'] = [
                    entry['name'] for entry in job['results'].get('stats', {}).get('file_breakdown', [])
                ]
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Could not read summary for job {job_id}: {e}")

            discovered_jobs[job_id] = job

        if discovered_jobs:
            logger.info(f"Discovered {len(discovered_jobs)} existing jobs from {self.export_dir}")

        return discovered_jobs

    def _is_valid_uuid(self, uuid_string: str) -> bool:
        """Check if string is a valid UUID."""
        try:
            uuid.UUID(uuid_string)
            return True
        except ValueError:
            return False
