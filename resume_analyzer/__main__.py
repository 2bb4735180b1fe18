"""
CLI entry point for the resume analyzer.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from .config import AnalyzerConfig
from .errors import PipelineError, RecordNotFoundError
from .listing import get_record, list_all
from .logging_setup import configure_logging
from .models import AnalysisRecord
from .pipeline import ResumeAnalysisPipeline, SubmissionInput
from .records import RecordStore, RedisRecordStore
from .utils import format_size


def print_record(record: AnalysisRecord, verbose: bool = False):
    """Print a record summary (and tips when verbose)."""
    title = " / ".join(part for part in (record.companyName, record.jobTitle) if part)
    print(f"{record.id}  {title or '(untitled)'}")
    if not record.is_analyzed:
        print("  Status: not analyzed")
        return

    feedback = record.feedback
    print(f"  Overall Score: {feedback.overallScore}/100")
    strengths = len(feedback.tips_by_type("good"))
    improvements = len(feedback.tips_by_type("improve"))
    print(f"  Tips: {strengths} strengths, {improvements} to improve")
    for name, category in feedback.categories.items():
        print(f"    {name}: {category.score}/100")
        if verbose:
            for tip in category.tips:
                marker = "✓" if tip.type == "good" else "⚠"
                print(f"      {marker} {tip.tip}")
                print(f"        {tip.explanation}")


async def _submit(pipeline: ResumeAnalysisPipeline, args) -> AnalysisRecord:
    resume_path = Path(args.resume)
    content = resume_path.read_bytes()
    print(f"Submitting {resume_path.name} ({format_size(len(content))})")

    job_description = args.job_description
    if args.job_description_file:
        job_description = Path(args.job_description_file).read_text(encoding="utf-8")

    def on_progress(stage: str, percent: int, message: str):
        print(f"  [{percent:3d}%] {message}")

    pipeline.set_progress_callback(on_progress)
    return await pipeline.submit(
        SubmissionInput(
            document=content,
            filename=resume_path.name,
            company_name=args.company,
            job_title=args.job_title,
            job_description=job_description,
        )
    )


async def _browse(records: RecordStore, args, prefix: str) -> int:
    if args.command == "list":
        found = await list_all(records, prefix)
        if not found:
            print("No resumes found")
        for record in found:
            print_record(record)
        return 0

    record = await get_record(records, args.record_id, prefix)
    if record is None:
        print(f"✗ Resume not found: {args.record_id}", file=sys.stderr)
        return 1
    print_record(record, verbose=True)
    return 0


async def _run(args, config: AnalyzerConfig) -> int:
    # Read-only commands need Redis only, not S3 or a model API key
    if args.command in ("list", "show"):
        records = RedisRecordStore.from_config(config)
        try:
            return await _browse(records, args, config.record_key_prefix)
        finally:
            await records.close()

    pipeline = ResumeAnalysisPipeline.from_config(config)
    try:
        if args.command == "submit":
            record = await _submit(pipeline, args)
        else:
            record = await pipeline.reanalyze(args.record_id)
        print(f"\n✓ Analysis complete: {record.id}")
        print_record(record, verbose=True)

    except RecordNotFoundError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    except PipelineError as e:
        print(f"✗ Failed during {e.stage}: {e.message}", file=sys.stderr)
        return 1
    finally:
        await pipeline.records.close()

    return 0


def main(argv=None) -> int:
    """Run the resume analyzer from command line."""
    parser = argparse.ArgumentParser(
        prog="resume-analyzer",
        description="AI Resume Analyzer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s submit resume.pdf --company Acme --job-title "Backend Engineer"
  %(prog)s submit resume.pdf --job-description-file jobs/backend.txt
  %(prog)s list
  %(prog)s show 3f2b9c1e-...
  %(prog)s serve --port 8000
        """,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Print the effective configuration before running",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    submit = subparsers.add_parser("submit", help="Upload and analyze a resume")
    submit.add_argument("resume", help="Path to the resume PDF")
    submit.add_argument("--company", default="", help="Company name")
    submit.add_argument("--job-title", default="", help="Job title")
    submit.add_argument("--job-description", default="", help="Job description text")
    submit.add_argument(
        "--job-description-file",
        help="Read the job description from a text file",
    )

    subparsers.add_parser("list", help="List stored analyses")

    show = subparsers.add_parser("show", help="Show one analysis")
    show.add_argument("record_id")

    reanalyze = subparsers.add_parser("reanalyze", help="Analyze a stored resume again")
    reanalyze.add_argument("record_id")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    config = AnalyzerConfig.from_env(log_level=args.log_level)
    configure_logging(config.log_level)
    if args.show_config:
        config.print_config_summary()

    if args.command == "serve":
        import uvicorn

        from .api import create_app

        uvicorn.run(create_app(config=config), host=args.host, port=args.port)
        return 0

    return asyncio.run(_run(args, config))


if __name__ == "__main__":
    sys.exit(main())
