"""
HTTP service for submitting resumes and browsing analyses.

Run with:
    uvicorn --factory resume_analyzer.api:create_app
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from .config import AnalyzerConfig
from .errors import PipelineError, RecordNotFoundError, ValidationError
from .listing import get_record, list_all
from .logging_setup import configure_logging
from .models import AnalysisRecord
from .pipeline import PipelineStage, ResumeAnalysisPipeline, SubmissionInput

logger = logging.getLogger(__name__)


def get_pipeline(request: Request) -> ResumeAnalysisPipeline:
    return request.app.state.pipeline


async def read_submission(
    file: UploadFile,
    company_name: str,
    job_title: str,
    job_description: str,
) -> SubmissionInput:
    """Build pipeline input from the multipart form."""
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Please upload a resume")
    return SubmissionInput(
        document=content,
        filename=file.filename or "resume.pdf",
        company_name=company_name,
        job_title=job_title,
        job_description=job_description,
    )


def create_app(
    pipeline: Optional[ResumeAnalysisPipeline] = None,
    config: Optional[AnalyzerConfig] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Without an explicit pipeline, one is built from ``config`` (or the
    environment) and its Redis connection is closed on shutdown.
    """
    owns_pipeline = pipeline is None
    if pipeline is None:
        config = config or AnalyzerConfig.from_env()
        configure_logging(config.log_level)
        pipeline = ResumeAnalysisPipeline.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_pipeline:
            await pipeline.records.close()

    app = FastAPI(title="Resume Analyzer API", lifespan=lifespan)
    app.state.pipeline = pipeline
    # In-flight streamed submissions keep running if the client disconnects
    app.state.background_tasks = set()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        status_code = 422 if isinstance(exc, ValidationError) else 502
        return JSONResponse(
            status_code=status_code,
            content={"stage": exc.stage, "detail": exc.message},
        )

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    # ==========================
    # SYSTEM ENDPOINTS
    # ==========================

    @app.get("/health")
    async def health_check(pipeline: ResumeAnalysisPipeline = Depends(get_pipeline)):
        """Health check endpoint for frontend and orchestration."""
        redis_ok = await pipeline.records.healthcheck()
        return {
            "status": "healthy" if redis_ok else "degraded",
            "redis": redis_ok,
            "timestamp": datetime.now().isoformat(),
        }

    # ==========================
    # RESUME ENDPOINTS
    # ==========================

    @app.post("/resumes", response_model=AnalysisRecord, status_code=201)
    async def submit_resume(
        file: UploadFile = File(...),
        company_name: str = Form(""),
        job_title: str = Form(""),
        job_description: str = Form(""),
        pipeline: ResumeAnalysisPipeline = Depends(get_pipeline),
    ):
        """Upload a resume and wait for its analysis."""
        submission = await read_submission(file, company_name, job_title, job_description)
        return await pipeline.submit(submission)

    @app.post("/resumes/stream")
    async def submit_resume_stream(
        request: Request,
        file: UploadFile = File(...),
        company_name: str = Form(""),
        job_title: str = Form(""),
        job_description: str = Form(""),
        pipeline: ResumeAnalysisPipeline = Depends(get_pipeline),
    ):
        """Upload a resume and stream stage progress as server-sent events."""
        submission = await read_submission(file, company_name, job_title, job_description)
        queue: asyncio.Queue = asyncio.Queue()

        async def on_progress(stage: str, percent: int, message: str):
            payload = {"stage": stage, "percent": percent, "message": message}
            await queue.put({"event": "progress", "data": json.dumps(payload)})

        async def run_submission():
            try:
                record = await pipeline.with_progress_callback(on_progress).submit(
                    submission
                )
                await queue.put({"event": "complete", "data": record.model_dump_json()})
            except PipelineError as e:
                payload = {"stage": e.stage, "detail": e.message}
                await queue.put({"event": "error", "data": json.dumps(payload)})
            except Exception as e:
                logger.exception("Streamed submission crashed")
                payload = {"stage": PipelineStage.FAILED.value, "detail": str(e)}
                await queue.put({"event": "error", "data": json.dumps(payload)})
            finally:
                await queue.put(None)

        task = asyncio.create_task(run_submission())
        request.app.state.background_tasks.add(task)
        task.add_done_callback(request.app.state.background_tasks.discard)

        async def event_generator():
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event

        return EventSourceResponse(event_generator())

    @app.get("/resumes", response_model=list[AnalysisRecord])
    async def list_resumes(pipeline: ResumeAnalysisPipeline = Depends(get_pipeline)):
        """List every stored analysis, skipping corrupt entries."""
        return await list_all(pipeline.records, pipeline.config.record_key_prefix)

    @app.get("/resumes/{record_id}", response_model=AnalysisRecord)
    async def get_resume(
        record_id: str, pipeline: ResumeAnalysisPipeline = Depends(get_pipeline)
    ):
        record = await get_record(
            pipeline.records, record_id, pipeline.config.record_key_prefix
        )
        if record is None:
            raise HTTPException(status_code=404, detail="Resume not found")
        return record

    @app.post("/resumes/{record_id}/analyze", response_model=AnalysisRecord)
    async def reanalyze_resume(
        record_id: str, pipeline: ResumeAnalysisPipeline = Depends(get_pipeline)
    ):
        """Run analysis again for a stored resume."""
        return await pipeline.reanalyze(record_id)

    return app
