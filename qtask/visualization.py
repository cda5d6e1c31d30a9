"""Terminal rendering of tasks and statistics with rich."""

from datetime import datetime
from io import StringIO
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from qtask.models import TaskStatistics
from qtask.task import Task


PRIORITY_STYLES = {
    "high": "bold red",
    "medium": "yellow",
    "low": "green",
}


def _render(renderable, width: int = 120) -> str:
    # Capture rich output in a string buffer
    buffer = StringIO()
    console = Console(file=buffer, force_terminal=True, width=width)
    console.print(renderable)
    return buffer.getvalue()


def short_id(task: Task) -> str:
    """Abbreviated id for display; any unique prefix is accepted by the CLI."""
    return task.id[:13]


def build_task_table(tasks: Sequence[Task], title: str = "Tasks",
                     now: Optional[datetime] = None) -> Table:
    """Build a rich table with one row per task."""
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("", justify="center")
    table.add_column("Title", style="cyan")
    table.add_column("Priority")
    table.add_column("Category", style="magenta")
    table.add_column("Created", style="dim")

    for task in tasks:
        status = "[green]✓[/green]" if task.completed else "○"
        title_text = f"[strike]{escape(task.title)}[/strike]" if task.completed else escape(task.title)
        style = PRIORITY_STYLES.get(task.priority, "")
        table.add_row(
            short_id(task),
            status,
            title_text,
            f"[{style}]{task.priority_emoji()} {task.priority}[/{style}]",
            f"{task.category_emoji()} {task.category}",
            task.relative_created_time(now),
        )
    return table


def render_task_table(tasks: Sequence[Task], title: str = "Tasks",
                      now: Optional[datetime] = None) -> str:
    """Render tasks as a table.

    Args:
        tasks: Tasks in display order
        title: Table title
        now: Reference time for relative timestamps

    Returns:
        String representation of the table
    """
    if not tasks:
        return "No tasks to display."
    return _render(build_task_table(tasks, title, now))


def render_task_detail(task: Task) -> str:
    """Render every field of one task in a panel."""
    lines = [
        f"[bold]{escape(task.title)}[/bold]",
        "",
        escape(task.description) or "[dim]No description[/dim]",
        "",
        f"[cyan]ID:[/cyan] {task.id}",
        f"[cyan]Priority:[/cyan] {task.priority_emoji()} {task.priority}",
        f"[cyan]Category:[/cyan] {task.category_emoji()} {task.category}",
        f"[cyan]Status:[/cyan] {'Completed' if task.completed else 'Pending'}",
        f"[cyan]Created:[/cyan] {task.formatted_created_date()} ({task.relative_created_time()})",
        f"[cyan]Updated:[/cyan] {task.format_date(task.updated_at)}",
    ]
    if task.completed_at:
        lines.append(f"[cyan]Completed:[/cyan] {task.formatted_completed_date()}")
    return _render(Panel("\n".join(lines), border_style="blue", box=box.ROUNDED))


def render_statistics(stats: TaskStatistics) -> str:
    """Render statistics summary for a task list.

    Args:
        stats: Statistics computed by TaskManager.get_statistics

    Returns:
        String representation of statistics
    """
    buffer = StringIO()
    console = Console(file=buffer, force_terminal=True, width=80)

    console.print(
        f"[bold cyan]Completion:[/bold cyan] {stats.completed}/{stats.total} "
        f"({stats.completion_rate}%) - {stats.pending} pending",
        highlight=False,
    )
    console.print()

    priority_table = Table(title="By Priority", box=box.SIMPLE)
    priority_table.add_column("Priority", style="cyan")
    priority_table.add_column("Tasks", justify="right", style="green")
    for name in ("high", "medium", "low"):
        style = PRIORITY_STYLES[name]
        priority_table.add_row(f"[{style}]{name}[/{style}]", str(stats.priority.get(name, 0)))
    console.print(priority_table)

    category_table = Table(title="By Category", box=box.SIMPLE)
    category_table.add_column("Category", style="magenta")
    category_table.add_column("Tasks", justify="right", style="green")
    for name, count in sorted(stats.categories.items(), key=lambda item: (-item[1], item[0])):
        category_table.add_row(name, str(count))
    if not stats.categories:
        category_table.add_row("[dim]-[/dim]", "0")
    console.print(category_table)

    return buffer.getvalue()
