"""Command-line interface for the task list."""

import functools
import sys
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from qtask.analysis import write_report
from qtask.config import DEFAULT_CONFIG_FILE, load_config, save_default_config
from qtask.errors import NotFoundError, TaskError
from qtask.exporter import (
    export_filename,
    export_tasks_to_excel,
    read_excel_tasks,
    read_import_file,
    write_export,
)
from qtask.logging_setup import setup_logging
from qtask.manager import TaskManager
from qtask.models import CATEGORIES, PRIORITIES, SORT_KEYS, SORT_ORDERS, STATUSES
from qtask.storage import JsonFileStore
from qtask.visualization import render_statistics, render_task_detail, render_task_table


console = Console()

NOTIFICATIONS = {
    "add": ("Task added", "green"),
    "update": ("Task updated", "green"),
    "delete": ("Task deleted", "yellow"),
    "complete": ("Task completed", "green"),
    "uncomplete": ("Task marked as pending", "yellow"),
    "duplicate": ("Task duplicated", "green"),
}


def announce(action: str, task, tasks) -> None:
    """Observer that prints a short notice for every change."""
    if action == "toggle":
        action = "complete" if task.completed else "uncomplete"

    if action in NOTIFICATIONS:
        label, color = NOTIFICATIONS[action]
        if task is not None and task.is_high_priority() and action in ("add", "update", "complete"):
            label = f"High priority {label.lower()}"
        console.print(f"[{color}]{label}:[/{color}] {escape(task.title)} [dim]({task.id[:13]})[/dim]")
    elif action in ("clear_completed", "clear_all", "import"):
        console.print(f"[green]Done.[/green] [dim]{len(tasks)} task(s) in the list.[/dim]")


def build_manager(config: dict, store_path: Optional[str] = None) -> TaskManager:
    """Create the one TaskManager the CLI works with."""
    store = JsonFileStore(store_path or config["storage_path"])
    manager = TaskManager(store=store, storage_key=config["storage_key"])
    if manager.load_error is not None:
        console.print(f"[yellow]Warning:[/yellow] {manager.load_error}")
        console.print("[dim]Starting with an empty task list.[/dim]")
    return manager


def get_manager(ctx: click.Context) -> TaskManager:
    if ctx.obj.get("manager") is None:
        manager = build_manager(ctx.obj["settings"], ctx.obj.get("store"))
        manager.subscribe(announce)
        ctx.obj["manager"] = manager
    return ctx.obj["manager"]


def resolve_task_id(manager: TaskManager, ref: str) -> str:
    """Accept a full task id or any unique prefix of one."""
    if ref in manager:
        return ref
    matches = [task.id for task in manager if task.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise click.BadParameter(f"'{ref}' matches {len(matches)} tasks; use more characters.")
    raise NotFoundError(ref, f"Task not found: {ref}")


def reports_errors(func):
    """Print task errors with rich and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TaskError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    return wrapper


@click.group()
@click.option(
    "-c", "--config",
    default=DEFAULT_CONFIG_FILE,
    help="Path to configuration file",
    show_default=True,
)
@click.option("--store", default=None, help="Path to the storage file (overrides config)")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config, store, verbose):
    """A small task list manager for the terminal."""
    ctx.ensure_object(dict)
    try:
        settings = load_config(config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    setup_logging("DEBUG" if verbose else settings["log_level"])
    ctx.obj["config"] = config
    ctx.obj["settings"] = settings
    ctx.obj["store"] = store
    ctx.obj.setdefault("manager", None)


@cli.command()
@click.argument("title")
@click.option("-d", "--description", default="", help="Task description")
@click.option("-p", "--priority", type=click.Choice(PRIORITIES), default="medium", show_default=True)
@click.option("-k", "--category", type=click.Choice(CATEGORIES), default="Personal", show_default=True)
@click.pass_context
@reports_errors
def add(ctx, title, description, priority, category):
    """Add a new task."""
    get_manager(ctx).add_task(title, description, priority, category)


@cli.command(name="list")
@click.option("--category", type=click.Choice(CATEGORIES), default=None)
@click.option("--priority", type=click.Choice(PRIORITIES), default=None)
@click.option("--status", type=click.Choice(STATUSES), default=None)
@click.option("-s", "--search", default=None, help="Text to look for")
@click.option("--sort", "sort_by", type=click.Choice(SORT_KEYS), default=None)
@click.option("--order", type=click.Choice(SORT_ORDERS), default=None)
@click.pass_context
@reports_errors
def list_cmd(ctx, category, priority, status, search, sort_by, order):
    """List tasks, optionally filtered and sorted."""
    manager = get_manager(ctx)
    settings = ctx.obj["settings"]
    filters = {"category": category, "priority": priority, "status": status, "search": search}
    tasks = manager.get_filtered_and_sorted_tasks(
        filters,
        sort_by or settings["default_sort"],
        order or settings["default_order"],
    )
    console.out(render_task_table(tasks, title=f"Tasks ({len(tasks)} of {len(manager)})"))


@cli.command()
@click.argument("query")
@click.pass_context
@reports_errors
def search(ctx, query):
    """Search titles, descriptions and categories."""
    tasks = get_manager(ctx).search_tasks(query)
    console.out(render_task_table(tasks, title=f"Results for '{escape(query)}'"))


@cli.command()
@click.argument("task_ref")
@click.pass_context
@reports_errors
def show(ctx, task_ref):
    """Show every detail of one task."""
    manager = get_manager(ctx)
    console.out(render_task_detail(manager.get_task_by_id(resolve_task_id(manager, task_ref))))


@cli.command()
@click.argument("task_ref")
@click.option("-t", "--title", default=None)
@click.option("-d", "--description", default=None)
@click.option("-p", "--priority", type=click.Choice(PRIORITIES), default=None)
@click.option("-k", "--category", type=click.Choice(CATEGORIES), default=None)
@click.pass_context
@reports_errors
def edit(ctx, task_ref, title, description, priority, category):
    """Change fields of a task."""
    manager = get_manager(ctx)
    updates = {
        key: value
        for key, value in (
            ("title", title),
            ("description", description),
            ("priority", priority),
            ("category", category),
        )
        if value is not None
    }
    if not updates:
        console.print("[yellow]Nothing to change.[/yellow]")
        return
    manager.update_task(resolve_task_id(manager, task_ref), updates)


@cli.command()
@click.argument("task_ref")
@click.pass_context
@reports_errors
def done(ctx, task_ref):
    """Mark a task as completed."""
    manager = get_manager(ctx)
    manager.complete_task(resolve_task_id(manager, task_ref))


@cli.command()
@click.argument("task_ref")
@click.pass_context
@reports_errors
def undo(ctx, task_ref):
    """Mark a task as pending again."""
    manager = get_manager(ctx)
    manager.uncomplete_task(resolve_task_id(manager, task_ref))


@cli.command()
@click.argument("task_ref")
@click.pass_context
@reports_errors
def toggle(ctx, task_ref):
    """Flip a task between completed and pending."""
    manager = get_manager(ctx)
    manager.toggle_task_completion(resolve_task_id(manager, task_ref))


@cli.command()
@click.argument("task_ref")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
@reports_errors
def delete(ctx, task_ref, yes):
    """Delete a task."""
    manager = get_manager(ctx)
    task_id = resolve_task_id(manager, task_ref)
    task = manager.get_task_by_id(task_id)
    if not yes and not click.confirm(f'Delete "{task.title}"?'):
        console.print("[dim]Cancelled.[/dim]")
        return
    manager.delete_task(task_id)


@cli.command()
@click.argument("task_ref")
@click.pass_context
@reports_errors
def duplicate(ctx, task_ref):
    """Copy a task as a new pending task."""
    manager = get_manager(ctx)
    manager.duplicate_task(resolve_task_id(manager, task_ref))


@cli.command()
@click.pass_context
def stats(ctx):
    """Show task statistics."""
    console.out(render_statistics(get_manager(ctx).get_statistics()))


@cli.command()
@click.pass_context
def categories(ctx):
    """List the categories in use."""
    names = get_manager(ctx).get_categories()
    if not names:
        console.print("[yellow]No tasks yet.[/yellow]")
        return
    for name in names:
        console.print(f"• {name}")


@cli.command(name="clear-completed")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear_completed(ctx, yes):
    """Remove all completed tasks."""
    manager = get_manager(ctx)
    count = len(manager.get_completed_tasks())
    if count == 0:
        console.print("[yellow]There are no completed tasks to clear.[/yellow]")
        return
    if not yes and not click.confirm(f"Remove {count} completed task(s)?"):
        console.print("[dim]Cancelled.[/dim]")
        return
    cleared = manager.clear_completed_tasks()
    console.print(f"[green]Cleared {cleared} completed task(s).[/green]")


@cli.command(name="clear-all")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear_all(ctx, yes):
    """Remove every task."""
    manager = get_manager(ctx)
    if not yes and not click.confirm(f"Remove all {len(manager)} task(s)?"):
        console.print("[dim]Cancelled.[/dim]")
        return
    cleared = manager.clear_all_tasks()
    console.print(f"[green]Cleared {cleared} task(s).[/green]")


@cli.command()
@click.argument("output", required=False, type=click.Path(dir_okay=False))
@click.option(
    "-f", "--format", "fmt",
    type=click.Choice(["json", "xlsx"], case_sensitive=False),
    default="json",
    show_default=True,
)
@click.pass_context
def export(ctx, output, fmt):
    """Export tasks to a JSON backup or an Excel workbook."""
    manager = get_manager(ctx)
    if len(manager) == 0:
        console.print("[yellow]There are no tasks to export.[/yellow]")
        return

    fmt = fmt.lower()
    if output is None:
        output = export_filename(prefix=ctx.obj["settings"]["export_prefix"], extension=fmt)

    try:
        if fmt == "xlsx":
            path = export_tasks_to_excel(manager.get_all_tasks(), output)
        else:
            path = write_export(manager.export_tasks(), output)
    except OSError as e:
        console.print(f"[red]Export failed:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]Exported {len(manager)} task(s) to:[/green] {path}")


@cli.command(name="import")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@reports_errors
def import_cmd(ctx, input_file):
    """Import tasks from a JSON backup or an Excel workbook."""
    manager = get_manager(ctx)
    with console.status("[bold green]Importing tasks...", spinner="dots"):
        if Path(input_file).suffix.lower() in (".xlsx", ".xlsm"):
            count = manager.import_records(read_excel_tasks(input_file))
        else:
            count = manager.import_tasks(read_import_file(input_file))
    console.print(f"[green]Imported {count} task(s).[/green]")


@cli.command()
@click.pass_context
def validate(ctx):
    """Check the task list for problems."""
    result = get_manager(ctx).validate()
    if result.is_valid:
        console.print("[green]All tasks are valid.[/green]")
        return
    for error in result.errors:
        console.print(f"[red]•[/red] {error}")
    sys.exit(1)


@cli.command()
@click.pass_context
def info(ctx):
    """Show information about the task list."""
    data = get_manager(ctx).get_info()

    table = Table(title="Task List", box=box.SIMPLE)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Version", data["version"])
    table.add_row("Tasks", str(data["totalTasks"]))
    table.add_row("Valid", "[green]yes[/green]" if data["isValid"] else "[red]no[/red]")
    table.add_row("Categories", ", ".join(data["categories"]) or "-")
    table.add_row("Saved data", data["lastSaved"])
    table.add_row("Completion", f"{data['statistics']['completionRate']}%")
    console.print(table)


@cli.command()
@click.option("-o", "--output", default="qtask-report.html", show_default=True,
              type=click.Path(dir_okay=False))
@click.pass_context
def report(ctx, output):
    """Write an HTML report with charts."""
    manager = get_manager(ctx)
    with console.status("[bold green]Building report...", spinner="dots"):
        path = write_report(manager.get_all_tasks(), manager.get_statistics(), output)
    console.print(f"[green]Report written to:[/green] {path}")


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite existing configuration file")
@click.pass_context
def init(ctx, force):
    """Initialize a sample configuration file."""
    config_path = Path(ctx.obj["config"])

    if config_path.exists() and not force:
        console.print(f"[yellow]Configuration file '{ctx.obj['config']}' already exists.[/yellow]")
        console.print("[dim]Use --force to overwrite.[/dim]")
        return

    save_default_config(str(config_path))
    console.print(f"[green]Created sample configuration file:[/green] {ctx.obj['config']}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    try:
        cli(obj={}, args=argv)
        return 0
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
