# ========================
# api_server.py
# ========================

"""
FastAPI Server for the CSV Merge Engine

Provides REST API endpoints for uploading several CSV files, merging them in
the background, following progress, and downloading the merged result.
"""

import asyncio
import logging
import shutil
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional

from fastapi import FastAPI, File, UploadFile, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
import uvicorn

from src.merger import (
    CSVExporter,
    CSVMerger,
    InputFile,
    InputRejected,
    MergeCancelled,
    ParseError,
    validate_input_files,
)
from src.utils.config import Config
from src.utils.logging_setup import setup_logging
from src.utils.job_metadata import JobMetadataManager
from src.utils.performance_monitor import SystemResourceMonitor

# Configuration
config = Config()

# Setup logging
setup_logging(log_level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize job metadata manager
job_metadata_manager = JobMetadataManager(
    metadata_file=config.JOB_METADATA_FILE,
    export_dir=config.EXPORT_DIR,
)

# Initialize FastAPI app
app = FastAPI(
    title="CSV Merge API",
    description="Upload CSV files, merge them into one dataset and inspect merge statistics",
    version="1.0.0"
)

# Add CORS middleware to allow frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

UPLOAD_DIR = Path(config.UPLOAD_DIR)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
EXPORT_DIR = Path(config.EXPORT_DIR)

# Constants
JOB_NOT_FOUND_MSG = "Job not found"
JOB_NOT_READY_MSG = "Merge not completed yet"
ACTIVE_STATUSES = ('queued', 'ingesting', 'aggregating', 'summarizing')


def initialize_job_status() -> Dict[str, Dict[str, Any]]:
    """Initialize job status by loading from metadata and discovering existing jobs."""
    job_status = job_metadata_manager.load_job_metadata()

    # Discovered jobs are only added when metadata does not know them
    for job_id, job_data in job_metadata_manager.discover_existing_jobs().items():
        if job_id not in job_status:
            job_status[job_id] = job_data
            logger.info(f"Added discovered job {job_id}: {job_data['filenames']}")

    if job_status:
        job_metadata_manager.save_job_metadata(job_status)

    return job_status


# Global state for tracking jobs
job_status: Dict[str, Dict[str, Any]] = initialize_job_status()
active_mergers: Dict[str, CSVMerger] = {}
# Guards job registration against concurrent cancel and delete requests
jobs_lock = threading.Lock()
executor = ThreadPoolExecutor(max_workers=config.MAX_CONCURRENT_MERGES)  # Limit concurrent merges


def persist_job_status():
    """Save current job status to persistent storage."""
    job_metadata_manager.save_job_metadata(job_status)


class MergeJobManager:
    """Manages background merge jobs."""

    @staticmethod
    def run_merge(job_id: str, input_files: List[InputFile], output_dir: str) -> None:
        """Run a merge job in a worker thread."""
        with jobs_lock:
            job = job_status.get(job_id)
            if job is None or job['status'] == 'cancelled':
                logger.info(f"Merge job {job_id} was cancelled or deleted before it started")
                return

            merger = CSVMerger(config=config, chunk_size=job.get('chunk_size'))
            merger.subscribe(lambda progress: job.update(progress=round(progress, 2)))
            active_mergers[job_id] = merger
            job['started_at'] = datetime.now().isoformat()
            job['status'] = 'ingesting'

        try:
            logger.info(f"Starting merge job {job_id}")
            result = merger.merge(input_files)

            with jobs_lock:
                deleted = job_id not in job_status
            if deleted:
                logger.info(f"Merge job {job_id} was deleted while running; skipping export")
                return

            exporter = CSVExporter(output_dir=output_dir)
            merged_path = exporter.save(result.dataset, result.schema)
            summary_path = exporter.save_summary(result)

            job['status'] = merger.state.value
            job['progress'] = merger.progress
            job['results'] = result.to_dict(preview_rows=config.PREVIEW_ROWS)
            job['saved_files'] = {'merged': str(merged_path), 'summary': str(summary_path)}
            job['completed_at'] = datetime.now().isoformat()
            logger.info(f"Merge job {job_id} completed successfully")

        except MergeCancelled:
            logger.info(f"Merge job {job_id} cancelled")
            job['status'] = 'cancelled'
            job['cancelled_at'] = datetime.now().isoformat()

        except ParseError as e:
            logger.error(f"Merge job {job_id} failed on '{e.file_name}': {e.message}")
            job['status'] = 'failed'
            job['error'] = str(e)
            job['error_file'] = e.file_name
            job['failed_at'] = datetime.now().isoformat()

        except Exception as e:
            logger.error(f"Merge job {job_id} failed: {e}")
            job['status'] = 'failed'
            job['error'] = str(e)
            job['failed_at'] = datetime.now().isoformat()

        finally:
            with jobs_lock:
                active_mergers.pop(job_id, None)
                deleted = job_id not in job_status
            # A delete request on a running job leaves the file cleanup to the worker
            if deleted:
                _remove_job_files(job)
            persist_job_status()


def _save_upload(upload: UploadFile, destination: Path) -> None:
    with open(destination, "wb") as buffer:
        shutil.copyfileobj(upload.file, buffer)


def _remove_job_files(job: Dict[str, Any]) -> None:
    for key in ('upload_dir', 'output_dir'):
        directory = job.get(key)
        if directory and Path(directory).exists():
            shutil.rmtree(directory)


def _get_job(job_id: str) -> Dict[str, Any]:
    if job_id not in job_status:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)
    return job_status[job_id]


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "CSV Merge API",
        "version": "1.0.0",
        "endpoints": {
            "merge": "/merge - Upload CSV files and start a merge",
            "status": "/status/{job_id} - Check merge progress and results",
            "jobs": "/jobs - List all merge jobs",
            "cancel": "/jobs/{job_id}/cancel - Cancel a running merge",
            "download": "/download/{job_id}?file_type=merged|summary - Download merge output",
            "health": "/health - Health check",
            "api_docs": "/docs - API documentation"
        },
        "api_docs_url": "/docs",
        "accepted_extensions": config.ACCEPTED_EXTENSIONS
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "active_jobs": len([j for j in job_status.values() if j['status'] in ACTIVE_STATUSES]),
        "system": SystemResourceMonitor.get_system_stats()
    }


@app.post("/merge")
async def merge_files(
    files: List[UploadFile] = File(...),
    chunk_size: Optional[int] = Query(None, description="Bytes read per chunk", ge=1024, le=64 * 1024 * 1024)
):
    """
    Upload CSV files and start merging them in the background.

    Args:
        files: CSV files, merged in upload order
        chunk_size: Bytes read per chunk (defaults to the configured value)

    Returns:
        dict: Job ID and status information
    """
    job_id = str(uuid.uuid4())
    job_upload_dir = UPLOAD_DIR / job_id
    job_upload_dir.mkdir(parents=True, exist_ok=True)

    try:
        loop = asyncio.get_event_loop()
        saved = []
        for position, upload in enumerate(files):
            destination = job_upload_dir / f"{position:03d}_{Path(upload.filename or 'upload').name}"
            await loop.run_in_executor(None, _save_upload, upload, destination)
            saved.append(InputFile(
                name=upload.filename or destination.name,
                size=destination.stat().st_size,
                position=position,
                opener=lambda destination=destination: open(destination, "rb"),
            ))

        accepted = validate_input_files(saved, config.ACCEPTED_EXTENSIONS)

    except InputRejected as e:
        shutil.rmtree(job_upload_dir, ignore_errors=True)
        logger.warning(f"Upload rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        shutil.rmtree(job_upload_dir, ignore_errors=True)
        logger.error(f"Upload failed: {e}")
        raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")

    output_dir = EXPORT_DIR / job_id

    job_status[job_id] = {
        'job_id': job_id,
        'filenames': [f.name for f in accepted],
        'rejected_files': [f.name for f in saved if f.extension not in config.ACCEPTED_EXTENSIONS],
        'status': 'queued',
        'progress': 0.0,
        'created_at': datetime.now().isoformat(),
        'upload_dir': str(job_upload_dir),
        'output_dir': str(output_dir),
        'chunk_size': chunk_size,
        'total_size': sum(f.size for f in accepted)
    }
    persist_job_status()

    executor.submit(MergeJobManager.run_merge, job_id, accepted, str(output_dir))
    logger.info(f"Started merge job {job_id} for {len(accepted)} files")

    return {
        "job_id": job_id,
        "filenames": job_status[job_id]['filenames'],
        "status": "queued",
        "message": "Files uploaded successfully. Merge started.",
        "estimated_processing_info": "Use /status/{job_id} to check progress"
    }


@app.get("/status/{job_id}")
async def get_job_status(job_id: str):
    """
    Get the status of a merge job.

    Args:
        job_id: Unique job identifier

    Returns:
        dict: Job status, progress and results
    """
    job = _get_job(job_id).copy()

    merger = active_mergers.get(job_id)
    if merger is not None:
        live = merger.status()
        job['status'] = live['state']
        job['progress'] = live['progress']
        job['current_file'] = live['current_file']

    return job


@app.get("/jobs")
async def list_jobs(
    status: Optional[str] = Query(None, description="Filter by status: queued, ingesting, ready, failed, cancelled"),
    limit: int = Query(50, description="Maximum number of jobs to return", ge=1, le=100)
):
    """
    List merge jobs with optional filtering.

    Args:
        status: Filter jobs by status
        limit: Maximum number of jobs to return

    Returns:
        dict: List of jobs
    """
    jobs = list(job_status.values())

    if status:
        jobs = [job for job in jobs if job['status'] == status]

    # Newest first
    jobs.sort(key=lambda x: x['created_at'], reverse=True)
    jobs = jobs[:limit]

    return {
        "jobs": jobs,
        "total_count": len(job_status),
        "filtered_count": len(jobs)
    }


@app.post("/jobs/{job_id}/cancel")
async def cancel_job(job_id: str):
    """
    Cancel a queued or running merge. The merge stops at the next chunk
    boundary and leaves no partial output.
    """
    job = _get_job(job_id)
    if job['status'] not in ACTIVE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Job is not running (status: {job['status']})")

    with jobs_lock:
        merger = active_mergers.get(job_id)
        if merger is not None:
            merger.cancel()
        else:
            job['status'] = 'cancelled'
            job['cancelled_at'] = datetime.now().isoformat()
    if merger is None:
        persist_job_status()

    logger.info(f"Cancellation requested for job {job_id}")
    return {"job_id": job_id, "message": "Cancellation requested"}


@app.get("/download/{job_id}")
async def download_results(job_id: str,
                           file_type: str = Query("merged", description="Type of file to download: merged or summary")):
    """
    Download the merged CSV or the JSON summary of a completed merge.

    Args:
        job_id: Unique job identifier
        file_type: 'merged' or 'summary'

    Returns:
        FileResponse: The requested file
    """
    job = _get_job(job_id)
    if job['status'] != 'ready':
        raise HTTPException(status_code=400, detail=JOB_NOT_READY_MSG)

    saved_files = job.get('saved_files', {})
    if file_type not in saved_files:
        available_types = list(saved_files.keys())
        raise HTTPException(
            status_code=404,
            detail=f"File type '{file_type}' not found. Available types: {available_types}"
        )

    file_path = Path(saved_files[file_type])
    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found on disk")

    media_type = 'text/csv' if file_path.suffix == '.csv' else 'application/json'
    return FileResponse(path=file_path, filename=file_path.name, media_type=media_type)


@app.delete("/jobs/{job_id}")
async def delete_job(job_id: str):
    """
    Delete a job and its associated files. A running merge is cancelled first.
    """
    job = _get_job(job_id)

    with jobs_lock:
        merger = active_mergers.get(job_id)
        if merger is not None:
            merger.cancel()
        job_status.pop(job_id, None)

    try:
        # The worker of a running merge removes the files once it has stopped
        if merger is None:
            _remove_job_files(job)
        persist_job_status()

        logger.info(f"Deleted job {job_id} and associated files")
        return {"message": f"Job {job_id} and associated files deleted successfully"}

    except OSError as e:
        logger.error(f"Failed to delete job {job_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete job: {str(e)}")


def start_server(host: str = "0.0.0.0", port: int = config.API_PORT, reload: bool = False):
    """Start the FastAPI server."""
    logger.info(f"Starting CSV Merge API server on {host}:{port}")
    uvicorn.run(
        "api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server(reload=True)
