"""
enkai v1.0.0: parallel code generation with a concurrency ceiling.

Command: enkai
"""

import asyncio
import sys

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from . import __version__
from .config import Config
from .dispatch.board import TaskBoard
from .dispatch.briefs import format_execution_instructions, format_task_brief
from .dispatch.competition import parse_variants
from .dispatch.dispatcher import Dispatcher, list_templates, load_template, parse_tasks, resolve_tasks
from .dispatch.estimator import estimate_cost
from .dispatch.rendering import DispatchRenderer
from .dispatch.splitter import TaskSplitter
from .dispatch.writer import FileWriter, MemoryWriter
from .errors import EnkaiError
from .logger import setup_logger
from .theme import set_theme

console = Console()
BANNER = (
    f"[bold #7FA6D9]enkai[/bold #7FA6D9] "
    f"[dim]v{__version__} · parallel code generation[/dim]"
)


def _load_config(ctx) -> Config:
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        config = Config.load(obj.get("project_dir", "."), obj.get("config_file"))
        if obj.get("verbose"):
            config.verbose = True
        set_theme(config.theme)
        setup_logger("enkai", verbose=config.verbose, log_file=config.log_file)
        obj["config"] = config
    return obj["config"]


def _fail(message: str) -> None:
    console.print(f"  [red]Error: {message}[/red]")
    sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="enkai")
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--config", "config_file", default=None, help="Explicit config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, project_dir, config_file, verbose):
    """enkai: fan out code generation tasks with a concurrency ceiling."""
    ctx.ensure_object(dict)
    ctx.obj.update(project_dir=project_dir, config_file=config_file, verbose=verbose)


@cli.command()
@click.argument("description")
@click.option("--file", "-f", "target_files", multiple=True, help="Target file (repeatable)")
@click.option("--briefs", is_flag=True, help="Print a markdown brief per task")
@click.option("--instructions", is_flag=True, help="Print manual hand-off instructions")
@click.pass_context
def split(ctx, description, target_files, briefs, instructions):
    """Split DESCRIPTION into independent tasks."""
    try:
        _load_config(ctx)
        result = TaskSplitter().split(description, list(target_files) or None)
    except (EnkaiError, ValueError) as e:
        _fail(str(e))

    DispatchRenderer(console).render_split(result.tasks, result.estimated_time)
    if briefs:
        for task in result.tasks:
            console.print(Markdown(format_task_brief(task)))
    if instructions:
        console.print(Markdown(format_execution_instructions(result)))


@cli.command()
@click.argument("description")
@click.option("--file", "-f", "target_files", multiple=True, help="Target file (repeatable)")
@click.option("--model", "-m", default=None, help="Price tier (economy, premium, flash, pro)")
@click.option("--avg-output", "average_output_tokens", type=int, default=None,
              help="Forecast output tokens per task")
@click.pass_context
def estimate(ctx, description, target_files, model, average_output_tokens):
    """Forecast tokens and cost for DESCRIPTION."""
    try:
        config = _load_config(ctx)
        result = estimate_cost(
            description,
            target_files=list(target_files) or None,
            model=model or config.price_tier,
            average_output_tokens=(
                average_output_tokens if average_output_tokens is not None
                else config.average_output_tokens
            ),
            price_table=config.pricing,
        )
    except (EnkaiError, ValueError) as e:
        _fail(str(e))
    DispatchRenderer(console).render_estimate(result)


def _execute(ctx, tasks, model, concurrency, no_preamble, dry_run, output_root, compete, variants):
    config = _load_config(ctx)
    console.print(BANNER)
    renderer = DispatchRenderer(console)
    writer = MemoryWriter() if dry_run else FileWriter(output_root)
    dispatcher = Dispatcher.from_config(
        config,
        write=writer,
        renderer=renderer,
        board=TaskBoard(),
        model=model,
        concurrency=concurrency,
        use_preamble=False if no_preamble else None,
        compete=compete,
        variants=variants,
    )
    batch = asyncio.run(dispatcher.run(tasks))
    if batch.summary and batch.summary.failure_count:
        sys.exit(2)


def _run_options(f):
    f = click.option("--model", "-m", default=None, help="Model preset for every task")(f)
    f = click.option("--concurrency", "-c", type=click.IntRange(1, 64), default=None,
                     help="Jobs in flight at once")(f)
    f = click.option("--no-preamble", is_flag=True, help="Send prompts without the policy preamble")(f)
    f = click.option("--dry-run", is_flag=True, help="Generate but keep output in memory")(f)
    f = click.option("--output-root", "-o", default=None, help="Resolve relative outputs here")(f)
    f = click.option("--compete/--no-compete", default=None,
                     help="Generate competing variants per task and keep the best")(f)
    f = click.option("--variants", "variant_spec", default=None, metavar="PRESET[@TEMP],...",
                     help="Competing variants, e.g. flash@0.2,flash@0.9,pro")(f)
    return f


def _dispatch(ctx, read_tasks, variant_spec, **options):
    try:
        tasks = read_tasks()
        variants = parse_variants(variant_spec) if variant_spec else None
    except ValueError as e:
        _fail(str(e))
    try:
        _execute(ctx, tasks, variants=variants, **options)
    except EnkaiError as e:
        _fail(str(e))


@cli.command()
@click.argument("template")
@_run_options
@click.pass_context
def run(ctx, template, variant_spec, **options):
    """Run tasks from a JSON TEMPLATE file or a packaged template name."""
    _dispatch(ctx, lambda: resolve_tasks(template), variant_spec, **options)


@cli.command("from-json")
@click.argument("json_text")
@_run_options
@click.pass_context
def from_json(ctx, json_text, variant_spec, **options):
    """Run tasks given inline as a JSON string."""
    _dispatch(ctx, lambda: parse_tasks(json_text), variant_spec, **options)


@cli.command("list")
def list_command():
    """List the packaged task templates."""
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    for column in ("Template", "Tasks", "Files"):
        table.add_column(column)
    for name in list_templates():
        tasks = load_template(name)
        table.add_row(name, str(len(tasks)), ", ".join(t.name for t in tasks))
    console.print(table)
    console.print("\n  [dim]Usage: enkai run <template> [--compete][/dim]")


@cli.command("config")
@click.option("--set", "assignment", nargs=2, default=None, metavar="KEY VALUE",
              help="Validate and persist one setting")
@click.pass_context
def show_config(ctx, assignment):
    """Show the effective configuration, or change one setting."""
    try:
        config = _load_config(ctx)
    except EnkaiError as e:
        _fail(str(e))

    if assignment:
        key, value = assignment
        ok, error = config.set_config_value(key, value)
        if not ok:
            _fail(f"{key}: {error}")
        console.print(f"  [green]{key} = {config.get_config_value(key)}[/green]")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value")
    for key, value in config.summary().items():
        table.add_row(key, str(value))
    console.print(table)

    models = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    for column in ("Preset", "Model", "Concurrency", "Description"):
        models.add_column(column)
    for name, preset in config.models.items():
        marker = "* " if name == config.active_model else "  "
        models.add_row(
            f"{marker}{name}", preset.model,
            str(config.concurrency_for(name)), preset.description,
        )
    console.print(models)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
