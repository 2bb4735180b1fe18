"""
AI Resume Analyzer

Upload a resume with a target job description and receive a scored,
category-by-category evaluation that is stored for later browsing.
"""

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
from .listing import get_record, list_all
from .models import AnalysisRecord, CategoryFeedback, Feedback, Tip
from .pipeline import PipelineStage, ResumeAnalysisPipeline, SubmissionInput

__version__ = "1.0.0"

__all__ = [
    "ResumeAnalysisPipeline",
    "SubmissionInput",
    "PipelineStage",
    "AnalyzerConfig",
    "AnalysisRecord",
    "Feedback",
    "CategoryFeedback",
    "Tip",
    "prepare_instructions",
    "list_all",
    "get_record",
    "PipelineError",
    "UploadError",
    "ConversionError",
    "AnalysisError",
    "ValidationError",
    "PersistenceError",
    "RecordNotFoundError",
]
