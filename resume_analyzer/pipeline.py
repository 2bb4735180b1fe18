"""
Resume ingestion and analysis pipeline.

A submission moves through a fixed sequence of stages:

    upload original -> convert to preview -> upload preview
    -> persist unanalyzed record -> analyze -> parse -> persist analyzed record

Each stage awaits the previous one. Any stage failure stops the submission
with a PipelineError naming the stage. The unanalyzed record is written
before the analysis call, so a failed analysis leaves a record that can be
found and re-analyzed later.
"""

import asyncio
import copy
import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from .analysis import (
    AnalysisResponse,
    AnalysisService,
    LangChainAnalysisService,
    build_chat_model,
    extract_feedback_text,
    parse_feedback,
)
from .config import AnalyzerConfig
from .errors import (
    AnalysisError,
    ConversionError,
    PersistenceError,
    PipelineError,
    RecordNotFoundError,
    UploadError,
    ValidationError,
)
from .instructions import prepare_instructions
from .listing import get_record
from .models import AnalysisRecord
from .preview import PdfPreviewConverter, PreviewConverter, preview_filename
from .records import RecordStore, RedisRecordStore, record_key
from .storage import DocumentStore, MinioDocumentStore, UploadedDocument
from .utils import generate_id

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, str], Union[None, Awaitable[None]]]


class PipelineStage(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    CONVERTING = "converting"
    UPLOADING_PREVIEW = "uploading_preview"
    PERSISTING = "persisting"
    ANALYZING = "analyzing"
    PARSING = "parsing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


STAGE_PROGRESS = {
    PipelineStage.UPLOADING: (10, "Uploading the resume..."),
    PipelineStage.CONVERTING: (25, "Converting to image..."),
    PipelineStage.UPLOADING_PREVIEW: (40, "Uploading image..."),
    PipelineStage.PERSISTING: (50, "Preparing data..."),
    PipelineStage.ANALYZING: (60, "Analyzing resume..."),
    PipelineStage.PARSING: (85, "Reading feedback..."),
    PipelineStage.FINALIZING: (95, "Saving analysis..."),
    PipelineStage.DONE: (100, "Analysis complete!"),
}


class SubmissionInput(BaseModel):
    """User inputs for one analysis request."""

    document: bytes
    filename: str = "resume.pdf"
    company_name: str = ""
    job_title: str = ""
    job_description: str = ""


class ResumeAnalysisPipeline:
    """Orchestrates one resume submission from upload to analyzed record."""

    def __init__(
        self,
        documents: DocumentStore,
        records: RecordStore,
        analyzer: AnalysisService,
        converter: PreviewConverter,
        config: Optional[AnalyzerConfig] = None,
    ):
        self.documents = documents
        self.records = records
        self.analyzer = analyzer
        self.converter = converter
        self.config = config or AnalyzerConfig()
        self.progress_callback: Optional[ProgressCallback] = None

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "ResumeAnalysisPipeline":
        """Build a pipeline wired to S3, Redis and the configured chat model."""
        documents = MinioDocumentStore.from_config(config)
        return cls(
            documents=documents,
            records=RedisRecordStore.from_config(config),
            analyzer=LangChainAnalysisService(build_chat_model(config), documents),
            converter=PdfPreviewConverter(config.preview_resolution),
            config=config,
        )

    def set_progress_callback(self, callback: Optional[ProgressCallback]):
        """Set a callback (plain or coroutine function) to receive progress updates."""
        self.progress_callback = callback

    def with_progress_callback(
        self, callback: Optional[ProgressCallback]
    ) -> "ResumeAnalysisPipeline":
        """Copy of this pipeline sharing its clients but reporting to ``callback``."""
        clone = copy.copy(self)
        clone.progress_callback = callback
        return clone

    async def _report_progress(self, stage: PipelineStage, message: Optional[str] = None):
        """Log the stage and forward it to the progress callback, if any."""
        percent, default_message = STAGE_PROGRESS.get(stage, (100, ""))
        message = message or default_message
        logger.info(f"[{percent}%] {stage.value}: {message}")
        if not self.progress_callback:
            return
        try:
            result = self.progress_callback(stage.value, percent, message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error in progress callback: {e}")

    async def submit(self, submission: SubmissionInput) -> AnalysisRecord:
        """
        Run a submission end to end.

        Returns:
            The analyzed record, already persisted

        Raises:
            PipelineError: UploadError, ConversionError, PersistenceError,
                AnalysisError or ValidationError, naming the failed stage
        """
        logger.info(f"Starting analysis of {submission.filename}")
        try:
            record = await self._ingest(submission)
            return await self._analyze(record)
        except PipelineError as e:
            await self._report_failure(e)
            raise

    async def reanalyze(self, record_id: str) -> AnalysisRecord:
        """
        Run analysis again for a stored record, reusing its uploaded document.

        Raises:
            RecordNotFoundError: No decodable record has this id
            PipelineError: AnalysisError, ValidationError or PersistenceError
        """
        record = await get_record(self.records, record_id, self.config.record_key_prefix)
        if record is None:
            raise RecordNotFoundError(record_id)

        logger.info(f"Re-analyzing record {record_id}")
        try:
            return await self._analyze(record)
        except PipelineError as e:
            await self._report_failure(e)
            raise

    async def _ingest(self, submission: SubmissionInput) -> AnalysisRecord:
        """Upload both files and persist the unanalyzed record."""
        await self._report_progress(PipelineStage.UPLOADING)
        uploaded = await self._upload(
            PipelineStage.UPLOADING,
            submission.document,
            submission.filename,
            "Failed to upload the resume",
        )

        await self._report_progress(PipelineStage.CONVERTING)
        try:
            conversion = await self.converter.convert(
                submission.document, submission.filename
            )
        except Exception as e:
            raise ConversionError(
                PipelineStage.CONVERTING, f"Failed to convert resume to image: {e}", e
            ) from e
        if not conversion.ok:
            reason = f": {conversion.error}" if conversion.error else ""
            raise ConversionError(
                PipelineStage.CONVERTING, f"Failed to convert resume to image{reason}"
            )

        await self._report_progress(PipelineStage.UPLOADING_PREVIEW)
        preview = await self._upload(
            PipelineStage.UPLOADING_PREVIEW,
            conversion.file,
            conversion.filename or preview_filename(submission.filename),
            "Failed to upload the image",
        )

        await self._report_progress(PipelineStage.PERSISTING)
        record = AnalysisRecord(
            id=generate_id(),
            documentPath=uploaded.path,
            previewImagePath=preview.path,
            companyName=submission.company_name,
            jobTitle=submission.job_title,
            jobDescription=submission.job_description,
        )
        await self._save(record, PipelineStage.PERSISTING)
        return record

    async def _analyze(self, record: AnalysisRecord) -> AnalysisRecord:
        """Request feedback for a persisted record and persist the result."""
        await self._report_progress(PipelineStage.ANALYZING)
        instructions = prepare_instructions(record.jobTitle, record.jobDescription)
        response = await self._request_feedback(record.documentPath, instructions)

        await self._report_progress(PipelineStage.PARSING)
        try:
            feedback = parse_feedback(extract_feedback_text(response))
        except ValueError as e:
            raise ValidationError(
                PipelineStage.PARSING, f"Invalid feedback payload: {e}", e
            ) from e

        await self._report_progress(PipelineStage.FINALIZING)
        analyzed = record.with_feedback(feedback)
        await self._save(analyzed, PipelineStage.FINALIZING)

        await self._report_progress(PipelineStage.DONE)
        return analyzed

    async def _request_feedback(
        self, document_path: str, instructions: str
    ) -> AnalysisResponse:
        timeout = self.config.analysis_timeout_seconds
        try:
            call = self.analyzer.feedback(document_path, instructions)
            if timeout:
                response = await asyncio.wait_for(call, timeout)
            else:
                response = await call
        except asyncio.TimeoutError as e:
            raise AnalysisError(
                PipelineStage.ANALYZING, f"Analysis timed out after {timeout}s", e
            ) from e
        except Exception as e:
            raise AnalysisError(
                PipelineStage.ANALYZING, f"Analysis request failed: {e}", e
            ) from e

        if response is None:
            raise AnalysisError(PipelineStage.ANALYZING, "Failed to analyze resume")
        return response

    async def _upload(
        self, stage: PipelineStage, content: bytes, filename: str, failure: str
    ) -> UploadedDocument:
        try:
            uploaded = await self.documents.upload(content, filename)
        except Exception as e:
            raise UploadError(stage, f"{failure}: {e}", e) from e
        if not uploaded:
            raise UploadError(stage, failure)
        return uploaded

    async def _save(self, record: AnalysisRecord, stage: PipelineStage):
        key = record_key(record.id, self.config.record_key_prefix)
        try:
            saved = await self.records.set(key, record.model_dump_json())
        except Exception as e:
            raise PersistenceError(
                stage, f"Failed to save record {record.id}: {e}", e
            ) from e
        if not saved:
            raise PersistenceError(stage, f"Failed to save record {record.id}")

    async def _report_failure(self, error: PipelineError):
        logger.error(f"Pipeline failed at {error.stage}: {error.message}")
        await self._report_progress(PipelineStage.FAILED, str(error))
