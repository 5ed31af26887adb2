#!/usr/bin/env python3
"""
Tutor Annotator - places AI annotations into tutorial content trees

Usage:
    python tutor_annotator.py tutorials                              # List tutorials
    python tutor_annotator.py annotations <id>                       # List a tutorial's annotations
    python tutor_annotator.py annotate <id> <action> <text> [question]
                                                                     # action: explain | branch | ask
    python tutor_annotator.py consolidate <id>                       # Fold annotations into the text
    python tutor_annotator.py locate <id> <text>                     # Show where text would be placed
    python tutor_annotator.py info                                   # Show configuration summary
    python tutor_annotator.py help                                   # Show this help
"""

import asyncio
import os
import sys
from pathlib import Path

# Load environment variables from .env file
_env_path = Path(__file__).resolve().parent / ".env"
if _env_path.exists():
    with open(_env_path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key, value)  # Don't override existing

# Force UTF-8 encoding on Windows
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from annotator.config import load_config, resolve_path
from annotator.document import DocumentNotFoundError
from annotator.locator import ValidationError
from annotator.nodes import format_path
from annotator.service import AnnotationService
from llm.src.client import GenerationError
from shared.logging import configure_logging, get_logger, set_session_id

log = get_logger("annotator", "cli")
console = Console(force_terminal=True, legacy_windows=False)


def _build_service() -> AnnotationService:
    config = load_config()
    log_config = config.get("logging", {})
    log_file = resolve_path(log_config["file"]) if log_config.get("file") else None
    configure_logging(log_config.get("level", "INFO"), log_file)
    set_session_id()
    return AnnotationService.from_config(config)


def _run(coro_fn):
    """Run a service coroutine and close the collaborator afterwards."""
    service = _build_service()

    async def _main():
        try:
            return await coro_fn(service)
        finally:
            await service.close()

    return asyncio.run(_main())


def _require_args(count: int, usage: str) -> list[str]:
    args = sys.argv[2:]
    if len(args) < count:
        console.print(f"[red]Usage: python tutor_annotator.py {usage}[/red]")
        sys.exit(2)
    return args


def cmd_tutorials():
    """List tutorials in the content directory."""
    service = _build_service()
    tutorials = service.list_tutorials()

    if not tutorials:
        console.print(Panel(f"[yellow]No tutorials in {service.store.content_dir}[/yellow]"))
        return

    table = Table(title="Tutorials")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Annotations", justify="right")

    for tutorial in tutorials:
        count = len(service.list_annotations(tutorial["id"]))
        table.add_row(tutorial["id"], tutorial["title"], str(count))

    console.print(table)


def cmd_annotations():
    """List annotations of one tutorial."""
    (tutorial_id,) = _require_args(1, "annotations <id>")[:1]
    service = _build_service()
    annotations = service.list_annotations(tutorial_id)

    console.print(Panel(f"[bold]{tutorial_id}:[/bold] {len(annotations)} annotations"))

    table = Table(show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Kind", style="cyan")
    table.add_column("Title", style="magenta")
    table.add_column("Preview", style="white")
    table.add_column("Path", style="dim")

    for i, summary in enumerate(annotations, start=1):
        kind = summary.kind if not summary.subtype else f"{summary.kind}/{summary.subtype}"
        table.add_row(str(i), kind, summary.title or "", summary.content_preview[:60], format_path(summary.path))

    console.print(table)


def cmd_annotate():
    """Generate and insert one annotation."""
    args = _require_args(3, "annotate <id> <action> <text> [question]")
    tutorial_id, action, text = args[:3]
    question = args[3] if len(args) > 3 else None

    console.print(f"\n[bold]Annotating[/bold] \"{text}\" in {tutorial_id} ({action})...")
    outcome = _run(lambda service: service.annotate(tutorial_id, action, text, question=question))

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Annotation", outcome.annotation_id)
    table.add_row("Events", ", ".join(event.value for event in outcome.events))
    if outcome.committed:
        table.add_row("Git", "[green]committed[/green]")
    elif outcome.commit_error:
        table.add_row("Git", f"[yellow]failed: {outcome.commit_error}[/yellow]")
    else:
        table.add_row("Git", "[dim]disabled[/dim]")
    console.print(table)


def cmd_consolidate():
    """Fold all annotations of a tutorial back into its text."""
    (tutorial_id,) = _require_args(1, "consolidate <id>")[:1]

    console.print(f"\n[bold]Consolidating[/bold] {tutorial_id}...")
    outcome = _run(lambda service: service.consolidate(tutorial_id))
    result = outcome.result

    if not outcome.accepted:
        console.print(Panel(
            f"[red bold]Revision rejected[/red bold]\n\n{result.reason}\n\n"
            f"The tutorial was left unchanged. Try again.",
            border_style="red",
        ))
        return

    if result.before == 0:
        console.print("[yellow]No annotations to consolidate.[/yellow]")
        return

    console.print(f"[green]Consolidated {result.before} annotations ({result.after} remain).[/green]")
    if outcome.commit_error:
        console.print(f"[yellow]Git failed: {outcome.commit_error}[/yellow]")


def cmd_locate():
    """Show where text would be placed."""
    tutorial_id, text = _require_args(2, "locate <id> <text>")[:2]
    service = _build_service()
    found = service.locate(tutorial_id, text)

    if found is None:
        console.print(f"[yellow]\"{text}\" not found; an annotation would be appended at the end.[/yellow]")
        return

    console.print(f"[green]Found[/green] in {found.slot.value} at [cyan]{format_path(found.path)}[/cyan]")
    console.print(f"  {found.text[:120]}")


def cmd_info():
    """Show configuration summary."""
    info = _build_service().info()

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Content dir", info["content_dir"])
    table.add_row("Tutorials", str(info["tutorials"]))
    table.add_row("Provider", str(info["llm"].get("provider")))
    table.add_row("Model", str(info["llm"].get("model")))
    table.add_row("Git", "enabled" if info["git"]["enabled"] else "disabled")
    console.print(table)


def cmd_help():
    """Show help."""
    console.print(__doc__)


COMMANDS = {
    "tutorials": cmd_tutorials,
    "annotations": cmd_annotations,
    "annotate": cmd_annotate,
    "consolidate": cmd_consolidate,
    "locate": cmd_locate,
    "info": cmd_info,
    "help": cmd_help,
    "--help": cmd_help,
    "-h": cmd_help,
}


def main():
    if len(sys.argv) < 2:
        cmd_help()
        return

    cmd = sys.argv[1].lower()

    if cmd not in COMMANDS:
        console.print(f"[red]Unknown command: {cmd}[/red]")
        cmd_help()
        return

    try:
        COMMANDS[cmd]()
    except (ValidationError, DocumentNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except GenerationError as e:
        console.print(Panel(
            f"[red bold]Generation failed[/red bold]\n\n"
            f"{e}\n\n"
            f"[yellow]To fix this:[/yellow]\n"
            f"  1. Set API keys in .env file:\n"
            f"     ANTHROPIC_API_KEY=sk-...\n"
            f"     OPENROUTER_API_KEY=sk-...\n"
            f"  2. Or set annotator.llm.provider in config.yaml",
            title="LLM Error",
            border_style="red",
        ))
        sys.exit(1)


if __name__ == "__main__":
    main()
