"""Analysis and chart helpers for task lists."""

from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from qtask.models import CATEGORIES, TaskStatistics
from qtask.task import Task


TASK_COLUMNS = [
    "id",
    "title",
    "priority",
    "category",
    "completed",
    "created_at",
    "updated_at",
    "completed_at",
]

PRIORITY_COLORS = {
    "high": "#ef4444",
    "medium": "#f59e0b",
    "low": "#10b981",
}


def tasks_to_dataframe(tasks: Sequence[Task]) -> pd.DataFrame:
    """Convert tasks to a DataFrame, one row per task.

    Args:
        tasks: Tasks to convert

    Returns:
        DataFrame with TASK_COLUMNS; timestamps are UTC pandas Timestamps
    """
    if not tasks:
        return pd.DataFrame(columns=TASK_COLUMNS)

    df = pd.DataFrame(
        [
            {
                "id": task.id,
                "title": task.title,
                "priority": task.priority,
                "category": task.category,
                "completed": task.completed,
                "created_at": task.created_at,
                "updated_at": task.updated_at,
                "completed_at": task.completed_at,
            }
            for task in tasks
        ],
        columns=TASK_COLUMNS,
    )
    for column in ("created_at", "updated_at", "completed_at"):
        df[column] = pd.to_datetime(df[column], utc=True)
    return df


def compute_daily_activity(df: pd.DataFrame) -> pd.DataFrame:
    """Count tasks created and completed per calendar day.

    Args:
        df: DataFrame from tasks_to_dataframe

    Returns:
        DataFrame with columns: date, created, completed. Days between the
        first and last activity with no events are filled with zeros.
    """
    if df.empty:
        return pd.DataFrame(columns=["date", "created", "completed"])

    created = df["created_at"].dt.floor("D").value_counts()
    completed = df["completed_at"].dropna().dt.floor("D").value_counts()

    days = created.index.union(completed.index)
    all_days = pd.date_range(start=days.min(), end=days.max(), freq="D")

    activity = pd.DataFrame(
        {
            "created": created.reindex(all_days, fill_value=0).astype(int),
            "completed": completed.reindex(all_days, fill_value=0).astype(int),
        },
        index=all_days,
    )
    activity.index.name = "date"
    return activity.reset_index()


def create_category_chart(stats: TaskStatistics) -> go.Figure:
    """Bar chart of task counts per category."""
    names = [name for name in CATEGORIES if name in stats.categories]
    # Categories outside the known set can only come from hand-edited data
    names += sorted(name for name in stats.categories if name not in CATEGORIES)

    fig = px.bar(
        x=names,
        y=[stats.categories[name] for name in names],
        labels={"x": "Category", "y": "Tasks"},
        title="Tasks by Category",
    )
    fig.update_layout(plot_bgcolor="white", paper_bgcolor="white")
    return fig


def create_priority_chart(stats: TaskStatistics) -> go.Figure:
    """Donut chart of task counts per priority."""
    names = ["high", "medium", "low"]
    fig = go.Figure(
        go.Pie(
            labels=names,
            values=[stats.priority.get(name, 0) for name in names],
            hole=0.5,
            marker=dict(colors=[PRIORITY_COLORS[name] for name in names]),
            sort=False,
        )
    )
    fig.update_layout(
        title=dict(text=f"Priorities ({stats.completion_rate}% complete)"),
        paper_bgcolor="white",
    )
    return fig


def create_activity_plot(activity: pd.DataFrame) -> Optional[go.Figure]:
    """Line chart of tasks created and completed per day.

    Returns:
        Figure, or None when there is no activity to plot
    """
    if activity.empty:
        return None

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=activity["date"],
            y=activity["created"],
            mode="lines+markers",
            name="Created",
            line=dict(color="#3b82f6", width=2),
        )
    )
    fig.add_trace(
        go.Scatter(
            x=activity["date"],
            y=activity["completed"],
            mode="lines+markers",
            name="Completed",
            line=dict(color="#10b981", width=2),
        )
    )
    fig.update_layout(
        title=dict(text="Daily Activity"),
        xaxis_title="",
        yaxis_title="Tasks",
        hovermode="x unified",
        plot_bgcolor="white",
        paper_bgcolor="white",
        legend=dict(orientation="h", yanchor="bottom", y=-0.2, xanchor="center", x=0.5),
    )
    return fig


def write_report(tasks: Sequence[Task], stats: TaskStatistics,
                 output_path: Union[str, Path]) -> Path:
    """Write a standalone HTML report with every chart.

    Args:
        tasks: Tasks to analyze
        stats: Statistics for the same tasks
        output_path: Destination .html file

    Returns:
        Path of the written report
    """
    figures = [create_category_chart(stats), create_priority_chart(stats)]
    activity_plot = create_activity_plot(compute_daily_activity(tasks_to_dataframe(tasks)))
    if activity_plot is not None:
        figures.append(activity_plot)

    parts = [
        "<html><head><meta charset='utf-8'><title>Task Report</title></head><body>",
        f"<h1>Task Report</h1><p>{stats.completed} of {stats.total} tasks completed "
        f"({stats.completion_rate}%).</p>",
    ]
    for index, fig in enumerate(figures):
        parts.append(fig.to_html(full_html=False, include_plotlyjs="cdn" if index == 0 else False))
    parts.append("</body></html>")

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(parts))
    return path
