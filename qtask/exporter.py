"""File import and export for task lists (JSON backups and Excel workbooks)."""

from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional, Union

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from qtask.errors import TaskImportError
from qtask.task import Task, format_timestamp, parse_bool


DEFAULT_EXPORT_PREFIX = "qtask-backup"

EXCEL_COLUMNS = [
    ("id", "ID"),
    ("title", "Title"),
    ("description", "Description"),
    ("priority", "Priority"),
    ("category", "Category"),
    ("completed", "Completed"),
    ("createdAt", "Created At"),
    ("updatedAt", "Updated At"),
    ("completedAt", "Completed At"),
]

DEFAULT_EXCEL_CONFIG = {
    "sheet_name": 0,  # 0 for first sheet, or sheet name
    "header_row": 1,  # 1-indexed row number for headers
    "column_mapping": {field: header for field, header in EXCEL_COLUMNS},
}

REQUIRED_EXCEL_FIELDS = ("title",)


def export_filename(today: Optional[date] = None, prefix: str = DEFAULT_EXPORT_PREFIX,
                    extension: str = "json") -> str:
    """Build the conventional export file name, e.g. 'qtask-backup-2024-05-01.json'."""
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.{extension}"


def write_export(json_data: str, path: Union[str, Path]) -> Path:
    """Write exported JSON to a file and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(json_data)
        f.write("\n")
    return path


def read_import_file(path: Union[str, Path]) -> str:
    """Read an import file as text.

    Raises:
        TaskImportError: If the file cannot be read
    """
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise TaskImportError(f"Failed to import tasks: could not read {path}: {e}") from e


def export_tasks_to_excel(tasks: Iterable[Task], path: Union[str, Path]) -> Path:
    """Write tasks to an Excel workbook, one row per task.

    Args:
        tasks: Tasks to export
        path: Destination .xlsx file

    Returns:
        Path of the written workbook
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Tasks"

    ws.append([header for _, header in EXCEL_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for task in tasks:
        record = task.to_dict()
        ws.append([record[field] if record[field] is not None else "" for field, _ in EXCEL_COLUMNS])

    ws.freeze_panes = "A2"
    ws.column_dimensions["B"].width = 40
    ws.column_dimensions["C"].width = 60

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def _cell_to_timestamp(value) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return format_timestamp(value if value.tzinfo else value.astimezone())
    return str(value).strip()


def read_excel_tasks(excel_path: Union[str, Path], config: Optional[dict] = None) -> list[dict]:
    """Read task records from an Excel file.

    The returned records have the same shape as exported JSON and can be
    passed to TaskManager.import_records.

    Args:
        excel_path: Path to the Excel file
        config: Sheet, header row and column mapping (uses default if not provided)

    Returns:
        List of task records

    Raises:
        TaskImportError: If the file is missing, unreadable, or lacks a required column
    """
    if config is None:
        config = DEFAULT_EXCEL_CONFIG

    path = Path(excel_path)
    if not path.exists():
        raise TaskImportError(f"Failed to import tasks: Excel file not found: {excel_path}")

    try:
        wb = load_workbook(filename=str(path), data_only=True, read_only=True)
    except Exception as e:
        raise TaskImportError(f"Failed to import tasks: could not open {excel_path}: {e}") from e

    try:
        sheet_name = config.get("sheet_name", 0)
        try:
            if isinstance(sheet_name, int):
                sheet = wb.worksheets[sheet_name]
            else:
                sheet = wb[sheet_name]
        except (IndexError, KeyError) as e:
            raise TaskImportError(f"Failed to import tasks: sheet {sheet_name!r} not found") from e

        header_row_num = config.get("header_row", 1)
        header_rows = list(sheet.iter_rows(min_row=header_row_num, max_row=header_row_num,
                                           values_only=True))
        headers = list(header_rows[0]) if header_rows else []

        column_mapping = dict(DEFAULT_EXCEL_CONFIG["column_mapping"])
        column_mapping.update(config.get("column_mapping", {}))

        # Find column indices
        col_indices = {}
        for field, col_name in column_mapping.items():
            if col_name in headers:
                col_indices[field] = headers.index(col_name)
            elif field in REQUIRED_EXCEL_FIELDS:
                raise TaskImportError(
                    f"Failed to import tasks: required column '{col_name}' not found in Excel file"
                )

        records = []
        for row in sheet.iter_rows(min_row=header_row_num + 1, values_only=True):
            # Skip empty rows
            if not any(value not in (None, "") for value in row):
                continue

            def value_of(field):
                index = col_indices.get(field)
                if index is None or index >= len(row):
                    return None
                return row[index]

            title = value_of("title")
            record = {
                "title": str(title) if title is not None else "",
                "description": str(value_of("description") or ""),
                "priority": str(value_of("priority") or "").strip().lower() or None,
                "category": str(value_of("category") or "").strip() or None,
                "completed": parse_bool(value_of("completed")),
            }
            if value_of("id"):
                record["id"] = str(value_of("id")).strip()
            for field in ("createdAt", "updatedAt", "completedAt"):
                stamp = _cell_to_timestamp(value_of(field))
                if stamp:
                    record[field] = stamp
            records.append({key: value for key, value in record.items() if value is not None})
    finally:
        wb.close()

    return records
