"""CLI entry point for competitor reports."""

import argparse
import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.status import Status
from rich.table import Table

from . import config, storage
from .batch import BatchResult, run_scheduled_reports
from .dialog import build_dialog_view
from .errors import CompetitorWatcherError
from .export import render_report_html, report_filename
from .formatting import plain_text
from .main import run_report_for_business
from .models import BUSINESS_TYPES
from .report import generate_report_pdf
from .sections import SUBSECTIONS, parse_report

console = Console()


def _write_output(report, fmt: str, output: Path | None, language: str | None) -> Path:
    path = output or config.reports_dir() / report_filename(report.business_name, fmt)
    if fmt == "pdf":
        return generate_report_pdf(report, path, language)
    path.write_text(render_report_html(report, language), encoding="utf-8")
    return path


def cmd_sections(args) -> None:
    text = Path(args.file).read_text(encoding="utf-8")
    parsed = parse_report(text)
    if not parsed.section_keys():
        console.print("[yellow]No known sections found.[/]")
        return

    table = Table(title=str(args.file), show_lines=True)
    table.add_column("Section", style="bold cyan", no_wrap=True)
    table.add_column("Content")
    for key in parsed.section_keys():
        value = getattr(parsed, key)
        if key in SUBSECTIONS:
            content = "\n".join(
                f"[bold]{sub}[/]: " + escape("; ".join(plain_text(i) for i in items)) for sub, items in value.items()
            )
        elif isinstance(value, list):
            content = escape("\n".join(f"- {plain_text(item)}" for item in value))
        else:
            content = escape(plain_text(value))
        table.add_row(key, content)
    console.print(table)


def cmd_render(args) -> None:
    report = SimpleNamespace(
        id=None,
        business_name=args.business,
        ai_analysis=Path(args.file).read_text(encoding="utf-8"),
        competitors=[],
        language=args.language,
        generated_at=storage.utcnow(),
    )
    path = _write_output(report, args.format, args.output, args.language)
    console.print(f"\n[bold green]Done![/] Report saved to [bold]{path}[/]\n")


def cmd_report(args) -> None:
    business = storage.Business(
        name=args.name,
        type=args.type,
        latitude=args.lat,
        longitude=args.lon,
        location_status="validated",
    )

    status = Status("", console=console)
    status.start()

    def on_progress(msg: str):
        status.update(f"[bold cyan]{msg}[/]")

    try:
        report = asyncio.run(run_report_for_business(
            None,
            business=business,
            language=args.language,
            radius=args.radius,
            on_progress=on_progress,
        ))
    finally:
        status.stop()

    view = build_dialog_view(report)
    console.print(
        f"\n[bold]{report.business_name}[/]: {view['stats']['competitors_found']} competitors, "
        f"avg rating {view['stats']['avg_rating']}, sections: {', '.join(s['key'] for s in view['sections'])}"
    )
    path = _write_output(report, args.format, args.output, args.language)
    console.print(f"\n[bold green]Done![/] Report saved to [bold]{path}[/]\n")


def cmd_batch(args) -> None:
    def on_result(result: BatchResult):
        if result.success:
            console.print(f"  [green]DONE[/] {escape(result.business_name)} -> {result.report_id}")
        else:
            console.print(f"  [red]FAILED[/] {escape(result.business_name)}: {escape(result.error or '')}")

    storage.init_db()
    with storage.get_db_session() as session:
        results = asyncio.run(run_scheduled_reports(session, args.language, args.output, on_result))
    succeeded = sum(1 for r in results if r.success)
    console.print(f"\n[bold]Done![/] Success: {succeeded}, Failed: {len(results) - succeeded}")
    if args.output:
        console.print(f"Results written to [bold]{args.output}[/]")


def cmd_init_db(args) -> None:
    storage.init_db()
    console.print(f"[bold green]Database initialized[/] at {config.database_url()}")


def cmd_serve(args) -> None:
    import uvicorn

    uvicorn.run("competitor_watcher.web:app", host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="competitor-watcher",
        description="AI competitor analysis reports for local businesses.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sections", help="Show the sections extracted from an analysis file")
    p.add_argument("file", type=Path)
    p.set_defaults(func=cmd_sections)

    p = sub.add_parser("render", help="Render an analysis file to HTML or PDF")
    p.add_argument("file", type=Path)
    p.add_argument("--business", required=True, help="Business name for the report header")
    p.add_argument("--format", choices=("html", "pdf"), default="html")
    p.add_argument("--output", type=Path, default=None, help="Output path (default: $REPORTS_DIR/report-<business>.<format>)")
    p.add_argument("--language", default="en")
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("report", help="Generate a report for an ad-hoc business (not saved)")
    p.add_argument("--name", required=True)
    p.add_argument("--type", required=True, choices=BUSINESS_TYPES)
    p.add_argument("--lat", type=float, required=True)
    p.add_argument("--lon", type=float, required=True)
    p.add_argument("--radius", type=int, default=config.DEFAULT_RADIUS)
    p.add_argument("--language", default="en")
    p.add_argument("--format", choices=("html", "pdf"), default="html")
    p.add_argument("--output", type=Path, default=None, help="Output path (default: $REPORTS_DIR/report-<business>.<format>)")
    p.set_defaults(func=cmd_report)

    p = sub.add_parser("batch", help="Generate reports for every stored business")
    p.add_argument("--language", default="en")
    p.add_argument("--output", type=Path, default=None, help="CSV file for per-business results")
    p.set_defaults(func=cmd_batch)

    p = sub.add_parser("init-db", help="Create database tables")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("serve", help="Run the web app")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None):
    load_dotenv()

    args = build_parser().parse_args(argv)
    config.configure_logging(args.log_level)

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/]")
        sys.exit(1)
    except (CompetitorWatcherError, OSError) as e:
        console.print(f"\n[bold red]Error:[/] {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
