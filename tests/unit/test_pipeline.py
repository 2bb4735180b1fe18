"""Unit tests for the ingestion and analysis pipeline."""

import asyncio
import json

import pytest

from resume_analyzer.config import AnalyzerConfig
from resume_analyzer.errors import (
    AnalysisError,
    ConversionError,
    PersistenceError,
    RecordNotFoundError,
    UploadError,
    ValidationError,
)
from resume_analyzer.models import AnalysisRecord
from resume_analyzer.pipeline import PipelineStage, ResumeAnalysisPipeline
from resume_analyzer.preview import ConversionResult


def stored(records, record_id) -> dict:
    return json.loads(records.data[f"resume:{record_id}"])


@pytest.mark.unit
def test_submit_persists_analyzed_record(pipeline, submission, records):
    record = asyncio.run(pipeline.submit(submission))

    assert record.feedback.overallScore == 82
    assert len(record.feedback.content.tips) == 1
    assert record.companyName == "Acme"

    persisted = AnalysisRecord.model_validate_json(records.data[f"resume:{record.id}"])
    assert persisted == record
    assert persisted.feedback.content.tips[0].explanation == "Quantify impact."


@pytest.mark.unit
def test_submit_writes_unanalyzed_then_analyzed(pipeline, submission, records):
    record = asyncio.run(pipeline.submit(submission))

    keys = [key for key, _ in records.writes]
    assert keys == [f"resume:{record.id}", f"resume:{record.id}"]
    assert json.loads(records.writes[0][1])["feedback"] == ""
    assert json.loads(records.writes[1][1])["feedback"]["overallScore"] == 82


@pytest.mark.unit
def test_record_is_durable_before_analysis(pipeline, submission, analyzer):
    record = asyncio.run(pipeline.submit(submission))

    snapshot = json.loads(analyzer.store_at_call[f"resume:{record.id}"])
    assert snapshot["feedback"] == ""
    assert snapshot["documentPath"] == record.documentPath


@pytest.mark.unit
def test_analysis_uses_document_not_preview(pipeline, submission, analyzer):
    record = asyncio.run(pipeline.submit(submission))

    document_path, instructions = analyzer.calls[0]
    assert document_path == record.documentPath
    assert document_path != record.previewImagePath
    assert "Backend Engineer" in instructions
    assert "Go, distributed systems..." in instructions


@pytest.mark.unit
def test_original_upload_failure_writes_nothing(pipeline, submission, documents, records, analyzer):
    documents.fail_filenames.add("resume.pdf")

    with pytest.raises(UploadError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "uploading"
    assert records.writes == []
    assert analyzer.calls == []


@pytest.mark.unit
def test_conversion_failure_carries_cause(pipeline, submission, converter, records):
    converter.result = ConversionResult(error="encrypted PDF")

    with pytest.raises(ConversionError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "converting"
    assert "encrypted PDF" in str(exc_info.value)
    assert records.writes == []


@pytest.mark.unit
def test_preview_upload_failure(pipeline, submission, documents, records):
    documents.fail_filenames.add("resume.png")

    with pytest.raises(UploadError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "uploading_preview"
    assert records.writes == []


@pytest.mark.unit
def test_missing_analysis_leaves_unanalyzed_record(pipeline, submission, analyzer, records):
    analyzer.response = None

    with pytest.raises(AnalysisError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "analyzing"
    assert len(records.data) == 1
    (value,) = records.data.values()
    assert json.loads(value)["feedback"] == ""


@pytest.mark.unit
def test_analysis_exception_becomes_analysis_error(pipeline, submission, analyzer):
    analyzer.error = RuntimeError("rate limited")

    with pytest.raises(AnalysisError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert isinstance(exc_info.value.cause, RuntimeError)
    assert "rate limited" in exc_info.value.message


@pytest.mark.unit
def test_analysis_timeout(documents, records, analyzer, converter, submission):
    async def hang(document_path, instructions):
        await asyncio.sleep(10)

    analyzer.feedback = hang
    pipeline = ResumeAnalysisPipeline(
        documents, records, analyzer, converter,
        config=AnalyzerConfig(analysis_timeout_seconds=0.01),
    )

    with pytest.raises(AnalysisError, match="timed out"):
        asyncio.run(pipeline.submit(submission))

    (value,) = records.data.values()
    assert json.loads(value)["feedback"] == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p.update(overallScore=101),
        lambda p: p["content"].update(score=-5),
        lambda p: p["content"]["tips"][0].update(type="neutral"),
        lambda p: p.pop("skills"),
        lambda p: p["skills"].pop("tips"),
    ],
)
def test_invalid_feedback_is_never_persisted(pipeline, submission, analyzer, records, feedback_payload, mutate):
    mutate(feedback_payload)
    analyzer.reply_with(json.dumps(feedback_payload))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "parsing"
    assert len(records.writes) == 1
    (value,) = records.data.values()
    assert json.loads(value)["feedback"] == ""


@pytest.mark.unit
def test_malformed_json_is_validation_error(pipeline, submission, analyzer):
    analyzer.reply_with("Sorry, I cannot rate this resume.")

    with pytest.raises(ValidationError):
        asyncio.run(pipeline.submit(submission))


@pytest.mark.unit
def test_content_parts_response(pipeline, submission, analyzer, feedback_json):
    analyzer.reply_with([{"type": "text", "text": feedback_json}])

    record = asyncio.run(pipeline.submit(submission))
    assert record.feedback.overallScore == 82


@pytest.mark.unit
def test_plain_mapping_response(pipeline, submission, analyzer, feedback_json):
    analyzer.response = {"message": {"content": feedback_json}}

    record = asyncio.run(pipeline.submit(submission))
    assert record.feedback.overallScore == 82


@pytest.mark.unit
def test_malformed_mapping_response_is_validation_error(pipeline, submission, analyzer):
    analyzer.response = {"reply": "no message key"}

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "parsing"


async def raise_connection_error(*args):
    raise ConnectionError("store down")


@pytest.mark.unit
def test_raising_upload_becomes_upload_error(pipeline, submission, documents, records):
    documents.upload = raise_connection_error
    seen = []
    pipeline.set_progress_callback(lambda stage, percent, message: seen.append(stage))

    with pytest.raises(UploadError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "uploading"
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert seen[-1] == "failed"
    assert records.writes == []


@pytest.mark.unit
def test_raising_preview_upload_names_preview_stage(pipeline, submission, documents):
    original_upload = documents.upload

    async def fail_preview(content, filename):
        if filename.endswith(".png"):
            raise ConnectionError("store down")
        return await original_upload(content, filename)

    documents.upload = fail_preview

    with pytest.raises(UploadError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "uploading_preview"
    assert "store down" in exc_info.value.message


@pytest.mark.unit
def test_raising_converter_becomes_conversion_error(pipeline, submission, converter):
    async def crash(content, filename):
        raise RuntimeError("renderer crashed")

    converter.convert = crash
    seen = []
    pipeline.set_progress_callback(lambda stage, percent, message: seen.append(stage))

    with pytest.raises(ConversionError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "converting"
    assert isinstance(exc_info.value.cause, RuntimeError)
    assert seen[-1] == "failed"


@pytest.mark.unit
def test_raising_record_write_becomes_persistence_error(pipeline, submission, records, analyzer):
    records.set = raise_connection_error

    with pytest.raises(PersistenceError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "persisting"
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert analyzer.calls == []



@pytest.mark.unit
def test_failed_final_write_is_persistence_error(pipeline, submission, records):
    original_set = records.set

    async def fail_second_write(key, value):
        if records.writes:
            return False
        return await original_set(key, value)

    records.set = fail_second_write

    with pytest.raises(PersistenceError) as exc_info:
        asyncio.run(pipeline.submit(submission))

    assert exc_info.value.stage == "finalizing"


@pytest.mark.unit
def test_progress_reports_every_stage_in_order(pipeline, submission):
    seen = []
    pipeline.set_progress_callback(lambda stage, percent, message: seen.append(stage))

    asyncio.run(pipeline.submit(submission))

    assert seen == [
        PipelineStage.UPLOADING.value,
        PipelineStage.CONVERTING.value,
        PipelineStage.UPLOADING_PREVIEW.value,
        PipelineStage.PERSISTING.value,
        PipelineStage.ANALYZING.value,
        PipelineStage.PARSING.value,
        PipelineStage.FINALIZING.value,
        PipelineStage.DONE.value,
    ]


@pytest.mark.unit
def test_progress_reports_failure(pipeline, submission, documents):
    documents.fail_filenames.add("resume.pdf")
    seen = []

    async def on_progress(stage, percent, message):
        seen.append((stage, message))

    pipeline.set_progress_callback(on_progress)

    with pytest.raises(UploadError):
        asyncio.run(pipeline.submit(submission))

    assert seen[-1][0] == "failed"
    assert "Failed to upload the resume" in seen[-1][1]


@pytest.mark.unit
def test_broken_progress_callback_does_not_stop_pipeline(pipeline, submission):
    def explode(stage, percent, message):
        raise RuntimeError("display gone")

    pipeline.set_progress_callback(explode)

    record = asyncio.run(pipeline.submit(submission))
    assert record.is_analyzed


@pytest.mark.unit
def test_with_progress_callback_leaves_original_untouched(pipeline):
    clone = pipeline.with_progress_callback(print)

    assert clone.progress_callback is print
    assert pipeline.progress_callback is None
    assert clone.records is pipeline.records


@pytest.mark.unit
def test_submissions_get_distinct_ids(pipeline, submission):
    async def submit_twice():
        return await asyncio.gather(pipeline.submit(submission), pipeline.submit(submission))

    first, second = asyncio.run(submit_twice())
    assert first.id != second.id


@pytest.mark.unit
def test_reanalyze_recovers_unanalyzed_record(pipeline, submission, analyzer, records, feedback_json):
    analyzer.response = None
    with pytest.raises(AnalysisError):
        asyncio.run(pipeline.submit(submission))
    (key,) = records.data
    record_id = key.removeprefix("resume:")

    analyzer.reply_with(feedback_json)
    record = asyncio.run(pipeline.reanalyze(record_id))

    assert record.id == record_id
    assert stored(records, record_id)["feedback"]["overallScore"] == 82


@pytest.mark.unit
def test_reanalyze_unknown_record(pipeline):
    with pytest.raises(RecordNotFoundError):
        asyncio.run(pipeline.reanalyze("does-not-exist"))
