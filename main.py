#!/usr/bin/env python3
"""
Demo Video Automator - CLI Orchestrator

Turns a web application's source tree into recorded demo videos:
Analyze features -> Plan interactions -> Record with cinematic effects
"""
import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import (
    DEFAULT_BASE_URL, DEFAULT_PORT, ALLOWED_HOSTS, OUTPUT_DIR, HEADLESS, LOG_LEVEL
)
from modules.security import is_allowed_base_url

console = Console()


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else LOG_LEVEL,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)]
    )


def resolve_base_url(base_url: str, port: int) -> str:
    if base_url:
        return base_url.rstrip("/")
    if port:
        return f"http://localhost:{port}"
    return DEFAULT_BASE_URL


def print_results(results: list):
    table = Table(title="Recording Complete")
    table.add_column("Feature", style="cyan")
    table.add_column("Source", style="magenta")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Video", style="green")

    for r in results:
        status = "[green]OK[/green]" if r.success else "[red]FAILED[/red]"
        steps = f"{r.steps_completed}/{r.steps_completed + r.steps_skipped + r.steps_failed}"
        table.add_row(r.feature, r.source, status, steps, Path(r.video).name if r.video else "-")

    console.print(table)


@click.group()
@click.version_option(version="1.0.0")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """Demo Video Automator - Record cinematic product demos automatically."""
    setup_logging(verbose)


@cli.command()
@click.option("--project", default=".", type=click.Path(), help="Project root to analyze")
@click.option("--base-url", default=None, help="URL of the running application")
@click.option("--port", default=None, type=int, help=f"Port on localhost (default {DEFAULT_PORT})")
@click.option("--output", default=None, type=click.Path(), help="Output directory")
@click.option("--feature", "features", multiple=True, help="Only record these features")
@click.option("--mode", type=click.Choice(["auto", "interactions"]), default="auto",
              help="How features without a demo script are driven")
@click.option("--config", "config_file", default=None, type=click.Path(),
              help="Record a single demo script instead of a whole project")
@click.option("--headed", is_flag=True, help="Show the browser window")
def record(project: str, base_url: str, port: int, output: str, features: tuple,
           mode: str, config_file: str, headed: bool):
    """Record demo videos for a project."""
    from modules.config_loader import ConfigError, load_config
    from modules.effects import ScriptValidationError
    from modules.extractor import AnalysisError
    from modules.recorder import BrowserLaunchError, DemoRecorder
    from modules.report import write_report

    url = resolve_base_url(base_url, port)
    if not is_allowed_base_url(url, ALLOWED_HOSTS):
        console.print(f"[bold red]Error:[/bold red] Base URL not allowed: {url} "
                      f"(allowed hosts: {', '.join(ALLOWED_HOSTS)})")
        sys.exit(1)

    output_dir = Path(output) if output else OUTPUT_DIR
    recorder = DemoRecorder(url, output_dir=output_dir, headless=HEADLESS and not headed)

    console.print(Panel(
        f"[bold blue]Recording Demos[/bold blue]\n"
        f"Project: {config_file or project}\nBase URL: {url}\nOutput: {output_dir}"
    ))

    try:
        if config_file:
            config = load_config(config_file)
            results = [asyncio.run(recorder.record_config(config))]
        else:
            results = asyncio.run(recorder.record_project(
                project, only=list(features) or None, mode=mode
            ))
    except (AnalysisError, ConfigError, BrowserLaunchError, ScriptValidationError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    print_results(results)
    report = write_report(results, recorder.storage.root, config_file or project, url)

    failed = [r for r in results if not r.success]
    if failed:
        console.print(f"[yellow]{len(failed)} of {len(results)} recordings failed[/yellow]")
    console.print(f"\n[bold green]Report:[/bold green] {report}")


@cli.command()
@click.option("--project", default=".", type=click.Path(), help="Directory to scaffold into")
@click.option("--force", is_flag=True, help="Overwrite an existing demo.json")
def init(project: str, force: bool):
    """Scaffold a sample demo.json script."""
    from modules.config_loader import generate_sample_config

    target = Path(project) / "demo.json"
    try:
        path = generate_sample_config(target, force=force)
    except FileExistsError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print(f"[bold green]Sample config created:[/bold green] {path}")
    console.print(f"[bold green]Next step:[/bold green] python main.py validate --config {path}")


@cli.command()
@click.option("--project", default=".", type=click.Path(), help="Project root to analyze")
def analyze(project: str):
    """Show discovered features and the recording order."""
    from modules.extractor import AnalysisError, CodebaseAnalyzer
    from modules.planner import HierarchyPlanner

    try:
        analysis = CodebaseAnalyzer().analyze(project)
    except AnalysisError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    planner = HierarchyPlanner()
    features = planner.with_dependencies(analysis["features"])

    table = Table(title="Discovered Features")
    table.add_column("Feature", style="cyan")
    table.add_column("Route", style="green")
    table.add_column("Components", justify="right")
    table.add_column("Selectors", justify="right")
    table.add_column("Priority", justify="right")
    table.add_column("Depends On", style="yellow")

    for f in features:
        table.add_row(
            f.name, f.route or "-", str(len(f.components)), str(f.selector_count),
            str(f.priority), ", ".join(f.dependencies) or "-"
        )
    console.print(table)

    paths = planner.plan(features)
    order = " -> ".join(f"{p.feature.name} ({p.duration / 1000:.1f}s)" for p in paths)
    console.print(Panel(order or "No features found", title="Recording Order"))


@cli.command()
@click.option("--project", default=".", type=click.Path(), help="Project root to analyze")
@click.option("--feature", "features", multiple=True, help="Only plan these features")
def plan(project: str, features: tuple):
    """Show the synthesized interaction plan per feature."""
    from modules.extractor import AnalysisError, CodebaseAnalyzer
    from modules.interactions import InteractionSynthesizer

    try:
        analysis = CodebaseAnalyzer().analyze(project)
    except AnalysisError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    synthesizer = InteractionSynthesizer()
    for feature in analysis["features"]:
        if features and feature.name not in features:
            continue
        result = synthesizer.synthesize(feature)

        table = Table(title=f"{feature.name}: {result.description}")
        table.add_column("#", justify="right")
        table.add_column("Action", style="cyan")
        table.add_column("Selector", style="green")
        table.add_column("Priority", justify="right")
        table.add_column("Description")
        for index, step in enumerate(result.steps, 1):
            table.add_row(str(index), step.action.value, step.selector,
                          str(step.priority), step.description)
        console.print(table)
        console.print(f"Estimated duration: {result.estimated_duration / 1000:.1f}s\n")


@cli.command()
@click.option("--config", "config_file", required=True, type=click.Path(),
              help="Path to demo.json")
def validate(config_file: str):
    """Load a demo script and print the validated result."""
    from modules.config_loader import ConfigError, load_config

    try:
        config = load_config(config_file)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print(Panel(
        json.dumps(config.to_dict(), indent=2),
        title=f"Validated: {config.name}",
        border_style="green"
    ))


@cli.command()
@click.option("--output", default=None, type=click.Path(), help="Output directory")
@click.option("--days", default=7, type=click.FloatRange(min=0), show_default=True,
              help="Remove artifacts older than this many days")
def clean(output: str, days: float):
    """Delete old videos and screenshots."""
    from modules.storage import StorageManager

    storage = StorageManager(Path(output) if output else OUTPUT_DIR)
    removed = storage.cleanup(older_than_days=days)
    console.print(f"[bold green]Removed {len(removed)} files[/bold green] from {storage.root}")


if __name__ == "__main__":
    cli()
