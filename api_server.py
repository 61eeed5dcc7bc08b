# ========================
# api_server.py
# ========================

"""
FastAPI Server for the Baby Names Pipeline

Runs pipeline jobs in the background and serves the cleaned dataset and the
aggregate tables to reporting and visualization clients.
"""

import logging
import shutil
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
import uvicorn

from src.babynames import DataSaver, NamesPipeline, PipelineResult
from src.babynames.transformation import TABLE_NAMES
from src.utils.config import Config
from src.utils.data_generator import DataGenerator, SyntheticSource
from src.utils.logging_setup import setup_logging

# Setup logging
config = Config()
setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Baby Names Pipeline API",
    description="Fetch, clean and aggregate a paginated baby-names dataset",
    version="1.0.0"
)

# Add CORS middleware to allow dashboard access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory job state; nothing survives a restart
job_status: Dict[str, Dict[str, Any]] = {}
job_results: Dict[str, PipelineResult] = {}
cancel_events: Dict[str, threading.Event] = {}

# Constants
JOB_NOT_FOUND_MSG = "Job not found"
JOB_NOT_COMPLETED_MSG = "Job not completed yet"
DATASET_TABLE = "dataset"


class PipelineJobManager:
    """Manages background pipeline jobs."""

    @staticmethod
    def run_pipeline(job_id: str,
                     job_config: Config,
                     synthetic_rows: Optional[int] = None) -> None:
        """Run one pipeline job and record its outcome."""
        job = job_status.get(job_id)
        if job is None:
            logger.info(f"Pipeline job {job_id} was deleted before it started")
            return

        try:
            logger.info(f"Starting pipeline job {job_id}")
            job['status'] = 'processing'
            job['started_at'] = datetime.now().isoformat()

            session = None
            if synthetic_rows:
                rows = DataGenerator(seed=42).generate_rows(synthetic_rows)
                session = SyntheticSource(
                    rows, limit_param=job_config.LIMIT_PARAM, offset_param=job_config.OFFSET_PARAM
                )

            pipeline = NamesPipeline.from_config(job_config, session=session, cancel_event=cancel_events.get(job_id))
            result = pipeline.run()

            if job_id not in job_status:
                logger.info(f"Pipeline job {job_id} was deleted while running; discarding results")
                return

            saved_files = DataSaver(job['output_dir']).save_all_data(result)

            job_results[job_id] = result
            job['status'] = 'completed'
            job['incomplete'] = result.incomplete
            job['completed_at'] = datetime.now().isoformat()
            job['results'] = {**result.to_dict(), 'saved_files': saved_files}

            logger.info(f"Pipeline job {job_id} completed (incomplete={result.incomplete})")

        except Exception as e:
            logger.error(f"Pipeline job {job_id} failed: {e}")
            job['status'] = 'failed'
            job['error'] = str(e)
            job['failed_at'] = datetime.now().isoformat()

        finally:
            cancel_events.pop(job_id, None)


def _get_finished_job(job_id: str) -> Dict[str, Any]:
    if job_id not in job_status:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)

    job = job_status[job_id]
    if job['status'] != 'completed' or job_id not in job_results:
        raise HTTPException(status_code=400, detail=JOB_NOT_COMPLETED_MSG)
    return job


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Baby Names Pipeline API",
        "version": "1.0.0",
        "endpoints": {
            "run_pipeline": "/run-pipeline - Fetch and aggregate the source",
            "status": "/status/{job_id} - Check job status",
            "jobs": "/jobs - List all jobs",
            "results": "/results/{job_id} - Run summary and quality metadata",
            "table": "/results/{job_id}/{table} - Rows of one aggregate table",
            "download": "/download/{job_id}?file_type=... - Exported file",
            "health": "/health - Health check",
            "api_docs": "/docs - API documentation"
        },
        "tables": [DATASET_TABLE, *TABLE_NAMES]
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "active_jobs": len([j for j in job_status.values() if j['status'] == 'processing'])
    }


@app.post("/run-pipeline")
async def run_pipeline(
    background_tasks: BackgroundTasks,
    page_size: Optional[int] = Query(None, description="Rows per page request", ge=1, le=50000),
    top_n: Optional[int] = Query(None, description="Names kept per year in the top-names table", ge=1, le=1000),
    synthetic_rows: Optional[int] = Query(None, description="Run against a generated source with this many rows", ge=1, le=1000000)
):
    """
    Start a pipeline job.

    Args:
        page_size: Rows per page request (defaults to configuration)
        top_n: Top-N size (defaults to configuration)
        synthetic_rows: Use an offline generated source instead of the remote one

    Returns:
        dict: Job ID and status information
    """
    try:
        job_id = str(uuid.uuid4())
        overrides = {'page_size': page_size, 'top_n': top_n}
        job_config = Config({**config.to_dict(), **{k: v for k, v in overrides.items() if v is not None}})

        job_status[job_id] = {
            'job_id': job_id,
            'status': 'queued',
            'created_at': datetime.now().isoformat(),
            'source_url': 'synthetic' if synthetic_rows else job_config.SOURCE_URL,
            'output_dir': str(Path(job_config.OUTPUT_DIR) / job_id),
            'page_size': job_config.PAGE_SIZE,
            'top_n': job_config.TOP_N,
            'type': 'synthetic' if synthetic_rows else 'remote'
        }
        cancel_events[job_id] = threading.Event()

        background_tasks.add_task(PipelineJobManager.run_pipeline, job_id, job_config, synthetic_rows)

        logger.info(f"Queued pipeline job {job_id}")

        return {
            "job_id": job_id,
            "status": "queued",
            "message": "Pipeline started successfully.",
            "parameters": {
                "page_size": job_config.PAGE_SIZE,
                "top_n": job_config.TOP_N,
                "synthetic_rows": synthetic_rows
            },
            "estimated_processing_info": "Use /status/{job_id} to check progress"
        }

    except Exception as e:
        logger.error(f"Failed to start pipeline: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to start pipeline: {str(e)}")


@app.get("/status/{job_id}")
async def get_job_status(job_id: str):
    """Get the status of a pipeline job."""
    if job_id not in job_status:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)
    return job_status[job_id]


@app.get("/jobs")
async def list_jobs(
    status: Optional[str] = Query(None, description="Filter by status: queued, processing, completed, failed"),
    limit: int = Query(50, description="Maximum number of jobs to return", ge=1, le=100)
):
    """List pipeline jobs, newest first."""
    jobs = list(job_status.values())

    if status:
        jobs = [job for job in jobs if job['status'] == status]

    jobs.sort(key=lambda x: x['created_at'], reverse=True)
    jobs = jobs[:limit]

    return {
        "jobs": jobs,
        "total_count": len(job_status),
        "filtered_count": len(jobs)
    }


@app.get("/results/{job_id}")
async def get_results(job_id: str, include_rows: bool = Query(False, description="Include dataset and table rows")):
    """Run summary, completeness flag and data quality metadata of a finished job."""
    _get_finished_job(job_id)
    return job_results[job_id].to_dict(include_rows=include_rows)


@app.get("/results/{job_id}/{table}")
async def get_table(job_id: str, table: str):
    """
    Rows of one aggregate table (or the cleaned dataset).

    The `incomplete` flag travels with the rows so clients can caveat totals.
    """
    _get_finished_job(job_id)
    result = job_results[job_id]

    if table == DATASET_TABLE:
        rows = [record.to_dict() for record in result.dataset]
    elif table in result.tables:
        rows = result.tables[table].to_dicts()
    else:
        raise HTTPException(
            status_code=404,
            detail=f"Table '{table}' not found. Available tables: {[DATASET_TABLE, *result.tables]}"
        )

    return {
        "job_id": job_id,
        "table": table,
        "incomplete": result.incomplete,
        "row_count": len(rows),
        "rows": rows
    }


@app.get("/download/{job_id}")
async def download_results(job_id: str, file_type: str = Query(..., description="Type of file to download")):
    """Download an exported file of a finished job."""
    job = _get_finished_job(job_id)

    saved_files = job['results']['saved_files']
    if file_type not in saved_files:
        raise HTTPException(
            status_code=404,
            detail=f"File type '{file_type}' not found. Available types: {list(saved_files.keys())}"
        )

    file_path = Path(saved_files[file_type])
    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found on disk")

    return FileResponse(
        path=file_path,
        filename=f"{job_id}_{file_type}{file_path.suffix}",
        media_type='application/octet-stream'
    )


@app.delete("/jobs/{job_id}")
async def delete_job(job_id: str):
    """
    Cancel a job if it is still fetching, then forget it and its files.
    """
    if job_id not in job_status:
        raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)

    cancel_event = cancel_events.pop(job_id, None)
    if cancel_event is not None:
        cancel_event.set()
    job = job_status.pop(job_id)
    job_results.pop(job_id, None)

    try:
        output_dir = Path(job['output_dir'])
        if output_dir.exists():
            shutil.rmtree(output_dir)
    except OSError as e:
        logger.error(f"Failed to delete files of job {job_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete job files: {str(e)}")

    logger.info(f"Deleted job {job_id}")
    return {"message": f"Job {job_id} deleted successfully"}


def start_server(host: str = "0.0.0.0", port: int = config.API_PORT, reload: bool = False):
    """Start the FastAPI server."""
    logger.info(f"Starting Baby Names Pipeline API server on {host}:{port}")
    uvicorn.run(
        "api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server()
