"""
Exception hierarchy for the resume analyzer.

Every pipeline failure carries the stage it happened in and the underlying
cause, so callers can report where a submission stopped.
"""

from typing import Optional


class ResumeAnalyzerError(Exception):
    """Base class for all resume analyzer errors."""


class PipelineError(ResumeAnalyzerError):
    """A submission stopped at a pipeline stage."""

    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None):
        self.stage = str(getattr(stage, "value", stage))
        self.message = message
        self.cause = cause
        super().__init__(f"[{self.stage}] {message}")


class UploadError(PipelineError):
    """The document store returned no handle for an upload."""


class ConversionError(PipelineError):
    """The preview image could not be produced."""


class AnalysisError(PipelineError):
    """The analysis service returned no response."""


class ValidationError(PipelineError):
    """The analysis response is not a valid Feedback payload."""


class PersistenceError(PipelineError):
    """The record store reported a failed write."""


class RecordNotFoundError(ResumeAnalyzerError):
    """No decodable record exists for the requested id."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")
