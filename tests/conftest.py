"""Shared fixtures: in-memory stand-ins for the storage, model and preview clients."""

import fnmatch
import json
from typing import Optional

import pytest

from resume_analyzer.analysis import AnalysisMessage, AnalysisResponse
from resume_analyzer.config import AnalyzerConfig
from resume_analyzer.pipeline import ResumeAnalysisPipeline, SubmissionInput
from resume_analyzer.preview import ConversionResult
from resume_analyzer.records import RecordItem
from resume_analyzer.storage import UploadedDocument


class InMemoryDocumentStore:
    """Document store keeping uploads in a dict; can refuse chosen filenames."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_filenames: set[str] = set()

    async def upload(self, content: bytes, filename: str) -> Optional[UploadedDocument]:
        if filename in self.fail_filenames:
            return None
        path = f"uploads/{len(self.objects)}/{filename}"
        self.objects[path] = content
        return UploadedDocument(path=path)

    async def read(self, path: str) -> Optional[bytes]:
        return self.objects.get(path)


class InMemoryRecordStore:
    """Record store on a dict that also logs every write."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.writes: list[tuple[str, str]] = []
        self.accept_writes = True
        self.healthy = True

    async def set(self, key: str, value: str) -> bool:
        if not self.accept_writes:
            return False
        self.writes.append((key, value))
        self.data[key] = value
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def list(self, pattern: str, return_values: bool = False) -> list[RecordItem]:
        return [
            RecordItem(key=key, value=value if return_values else None)
            for key, value in self.data.items()
            if fnmatch.fnmatchcase(key, pattern)
        ]

    async def healthcheck(self) -> bool:
        return self.healthy

    async def close(self):
        pass


class StubAnalysisService:
    """Returns a canned response; records calls and a snapshot of the store."""

    def __init__(self, records: InMemoryRecordStore):
        self.records = records
        self.response: Optional[AnalysisResponse] = None
        self.error: Optional[Exception] = None
        self.calls: list[tuple[str, str]] = []
        self.store_at_call: dict[str, str] = {}

    def reply_with(self, content):
        self.response = AnalysisResponse(message=AnalysisMessage(content=content))

    async def feedback(self, document_path: str, instructions: str):
        self.calls.append((document_path, instructions))
        self.store_at_call = dict(self.records.data)
        if self.error:
            raise self.error
        return self.response


class StubConverter:
    def __init__(self):
        self.result = ConversionResult(file=b"\x89PNG preview", filename="resume.png")

    async def convert(self, content: bytes, filename: str) -> ConversionResult:
        return self.result


@pytest.fixture
def feedback_payload() -> dict:
    return {
        "overallScore": 82,
        "toneAndStyle": {"score": 90, "tips": []},
        "content": {
            "score": 75,
            "tips": [
                {
                    "type": "improve",
                    "tip": "Add metrics",
                    "explanation": "Quantify impact.",
                }
            ],
        },
        "structure": {"score": 80, "tips": []},
        "skills": {"score": 85, "tips": []},
    }


@pytest.fixture
def feedback_json(feedback_payload) -> str:
    return json.dumps(feedback_payload)


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def analyzer(records, feedback_json) -> StubAnalysisService:
    service = StubAnalysisService(records)
    service.reply_with(feedback_json)
    return service


@pytest.fixture
def converter() -> StubConverter:
    return StubConverter()


@pytest.fixture
def pipeline(documents, records, analyzer, converter) -> ResumeAnalysisPipeline:
    return ResumeAnalysisPipeline(
        documents=documents,
        records=records,
        analyzer=analyzer,
        converter=converter,
        config=AnalyzerConfig(),
    )


@pytest.fixture
def submission() -> SubmissionInput:
    return SubmissionInput(
        document=b"%PDF-1.7 five pages",
        filename="resume.pdf",
        company_name="Acme",
        job_title="Backend Engineer",
        job_description="Go, distributed systems...",
    )
