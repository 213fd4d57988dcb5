"""
Command line entry point.

Usage:
    gradeai analyze test.jpg --child-name Mia --grade-level 5 --language de
    gradeai analyze test.pdf --vision
    gradeai analyze test.jpg --mock --json
    gradeai providers
    gradeai ocr test.jpg
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gradeai.ai.orchestrator import ParallelOrchestrator
from gradeai.ai.provider_factory import create_analysis_providers, get_provider_status
from gradeai.config.logging_config import setup_logging_from_settings
from gradeai.config.settings import Settings, get_settings
from gradeai.core.exceptions import GradeAIError
from gradeai.core.models import NormalizedAnalysis, StudentProfile, UploadRecord, UserProfile, VisionConsensus
from gradeai.ocr.cascade import CascadingTextResolver
from gradeai.ocr.visual_evidence import VisualEvidenceExtractor
from gradeai.pipeline.analyzer import UploadAnalysisPipeline, run_with_deadline
from gradeai.storage.upload_store import JsonUploadStore
from gradeai.vision.pdf_reader import load_page_images

console = Console()


def build_text_resolver(settings: Settings) -> CascadingTextResolver:
    """
    Google Vision first with Tesseract as fallback.

    Without Google credentials Tesseract is the only engine.
    """
    from gradeai.ocr.tesseract import TesseractOcr

    tesseract = TesseractOcr.from_settings(settings)
    if settings.google_credentials_json or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS"):
        from gradeai.ocr.google_vision import GoogleVisionOcr

        return CascadingTextResolver.from_settings(GoogleVisionOcr(settings.google_credentials_json), tesseract, settings)

    console.print("[yellow]No Google Vision credentials, using Tesseract only[/yellow]")
    return CascadingTextResolver.from_settings(tesseract, None, settings)


def build_pipeline(settings: Settings, store: JsonUploadStore, mock_mode: bool) -> UploadAnalysisPipeline:
    resolver = build_text_resolver(settings)
    extractor = VisualEvidenceExtractor(
        resolver.primary,
        max_width=settings.evidence_max_width,
        crop_timeout=settings.crop_ocr_timeout_seconds,
    )
    providers = create_analysis_providers(settings, mock_mode=mock_mode)
    orchestrator = ParallelOrchestrator.from_settings(providers, settings)
    return UploadAnalysisPipeline(store, resolver, extractor, orchestrator, settings)


# ==================== OUTPUT ====================

def print_analysis(analysis: NormalizedAnalysis) -> None:
    summary = analysis.summary
    metadata = analysis.metadata

    table = Table(title=f"Analysis: {summary.child_name or 'Student'}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Grade", summary.overall_grade or "-")
    if metadata.numeric_grade is not None:
        table.add_row("Numeric grade", f"{metadata.numeric_grade:.1f}")
    table.add_row("Subject", summary.subject or "-")
    if summary.overall_score or summary.max_score:
        table.add_row("Score", f"{summary.overall_score:g} / {summary.max_score:g}")
    table.add_row("Confidence", f"{(summary.confidence or 0) * 100:.0f}%")
    table.add_row("Model", metadata.ai_model or "-")
    if metadata.consensus_score is not None:
        table.add_row("Consensus", f"{metadata.consensus_score}%")
    console.print(table)

    if summary.executive_summary:
        console.print(Panel(summary.executive_summary, title="Summary"))

    for title, items in (("Strengths", analysis.strengths), ("Weaknesses", analysis.weaknesses)):
        if items:
            console.print(f"\n[bold]{title}:[/bold]")
            for item in items:
                console.print(f"  • {item}")

    if analysis.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for rec in sorted(analysis.recommendations, key=lambda r: r.priority):
            timeframe = f" [dim]({rec.timeframe})[/dim]" if rec.timeframe else ""
            console.print(f"  {rec.priority}. {rec.action}{timeframe}")

    warnings = (metadata.document_checks or {}).get("warnings", [])
    for warning in warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


def print_vision_consensus(consensus: VisionConsensus) -> None:
    report = consensus.final_result
    table = Table(title="Vision consensus")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Student", report.student.name or "-")
    table.add_row("Subject", report.test.subject or "-")
    table.add_row("Grade", report.grade.value or "-")
    table.add_row("Grade agreement", consensus.grade_agreement.value)
    table.add_row("Succeeded", ", ".join(consensus.providers_succeeded) or "-")
    table.add_row("Failed", ", ".join(consensus.providers_failed) or "-")
    table.add_row("Confidence", f"{consensus.overall_confidence:.0f}%")
    console.print(table)
    for warning in consensus.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


def print_token_usage(providers) -> None:
    table = Table(title="Token usage")
    table.add_column("Provider", style="cyan")
    table.add_column("Calls")
    table.add_column("Prompt")
    table.add_column("Completion")
    table.add_column("Total", style="green")
    for provider in providers:
        usage = provider.get_token_usage()
        table.add_row(
            provider.display_name,
            str(usage["calls"]),
            str(usage["prompt_tokens"]),
            str(usage["completion_tokens"]),
            str(usage["total_tokens"]),
        )
    console.print(table)


# ==================== COMMANDS ====================

def command_analyze(args) -> int:
    """Register a file as an upload and analyze it."""
    settings = get_settings()
    path = Path(args.file)
    pages = load_page_images(path)

    store = JsonUploadStore(settings.data_dir)
    record = store.create_upload(UploadRecord(
        file_name=path.name,
        mime_type="application/pdf" if path.suffix.lower() == ".pdf" else "image/png",
        child=StudentProfile(name=args.child_name, grade_level=args.grade_level),
        user=UserProfile(language=args.language),
        pages=[f"page_{p.page_number}" for p in pages],
    ))

    pipeline = build_pipeline(settings, store, mock_mode=args.mock)
    if not args.json:
        console.print(f"[bold]Analyzing[/bold] {path.name} ({len(pages)} page(s)), upload {record.upload_id}")

    result = asyncio.run(run_with_deadline(pipeline, record.upload_id, pages, use_vision=args.vision))

    if args.json:
        print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))
    elif args.vision:
        print_vision_consensus(result)
    else:
        print_analysis(result)

    if not args.json:
        print_token_usage(pipeline.orchestrator.providers)
    return 0


def command_providers(args) -> int:
    """List registered providers and their configuration state."""
    status = get_provider_status(get_settings())

    table = Table(title="Analysis providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Enabled")
    table.add_column("API key")
    table.add_column("Active", style="green")
    table.add_column("Variable", style="dim")

    for provider_id, info in status.items():
        table.add_row(
            f"{info['display_name']} ({provider_id})",
            str(info["model"]),
            "yes" if info["enabled"] else "no",
            "set" if info["configured"] else "[red]missing[/red]",
            "yes" if info["active"] else "no",
            str(info["env_var"]),
        )

    console.print(table)
    return 0


def command_ocr(args) -> int:
    """Run text recognition and visual evidence only."""
    settings = get_settings()
    pages = load_page_images(Path(args.file))
    resolver = build_text_resolver(settings)
    extractor = VisualEvidenceExtractor(
        resolver.primary,
        max_width=settings.evidence_max_width,
        crop_timeout=settings.crop_ocr_timeout_seconds,
    )

    async def run():
        return await asyncio.gather(resolver.resolve(pages[0].data), extractor.extract(pages[0].data))

    resolution, evidence = asyncio.run(run())

    table = Table(title="Text recognition")
    table.add_column("Engine", style="cyan")
    table.add_column("Characters")
    table.add_column("Confidence")
    table.add_column("Time")
    for attempt in resolution.attempts:
        marker = " ✓" if attempt.provider == resolution.provider else ""
        table.add_row(
            attempt.provider + marker,
            str(len(attempt.text)),
            f"{attempt.confidence * 100:.0f}%",
            f"{attempt.processing_ms:.0f}ms",
        )
    console.print(table)

    console.print(Panel(
        f"Grade: {evidence.grade_detected if evidence.grade_detected is not None else '-'}\n"
        f"Points: {evidence.points or '-'}\n"
        f"Marks: {', '.join(evidence.marks) or 'none'}\n"
        f"Correction density: {evidence.correction_density}\n"
        f"Answer regions: {len(evidence.answer_regions)}\n"
        f"Teacher comment: {evidence.teacher_comment or '-'}",
        title="Visual evidence",
    ))
    console.print(Panel(resolution.text or "[dim](no text)[/dim]", title=f"Text ({resolution.provider})"))
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="gradeai",
        description="GradeAI - multi-provider analysis of photographed school tests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s analyze test.jpg --child-name Mia --language de
  %(prog)s analyze test.pdf --vision
  %(prog)s analyze test.jpg --mock --json
  %(prog)s providers
  %(prog)s ocr test.jpg

Providers are switched on with GRADEAI_<NAME>_ENABLED and need
GRADEAI_<NAME>_API_KEY (for example GRADEAI_ANTHROPIC_API_KEY).
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a test photo or PDF")
    analyze_parser.add_argument("file", help="Image (.png/.jpg/.webp) or PDF file")
    analyze_parser.add_argument("--child-name", default="Student", help="Child's name")
    analyze_parser.add_argument("--grade-level", help="School grade level (e.g. 5)")
    analyze_parser.add_argument("--language", default="en", help="Report language (en, de, fr, ...)")
    analyze_parser.add_argument("--mock", action="store_true", help="Use canned provider replies (no API calls)")
    analyze_parser.add_argument("--vision", action="store_true", help="Send page images to providers instead of OCR text")
    analyze_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    subparsers.add_parser("providers", help="Show provider configuration")

    ocr_parser = subparsers.add_parser("ocr", help="Run text recognition and visual evidence only")
    ocr_parser.add_argument("file", help="Image or PDF file")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    setup_logging_from_settings(get_settings())

    commands = {
        "analyze": command_analyze,
        "providers": command_providers,
        "ocr": command_ocr,
    }

    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except (GradeAIError, FileNotFoundError) as e:
        console.print(f"[red]Error: {getattr(e, 'message', e)}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
