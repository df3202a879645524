"""
Loading tabular rows and turning them into text for embedding.

Rows are plain dicts of column name to string; every cell is read as text
and missing cells become "".
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from semantic_rows.errors import SheetNotFound, UnsupportedFileType

logger = logging.getLogger(__name__)

Row = Dict[str, str]
PhaseProgressCallback = Callable[[int, str], None]

CSV_SUFFIXES = (".csv",)
EXCEL_SUFFIXES = (".xlsx",)


def list_sheets(path: Union[str, Path]) -> List[str]:
    """Sheet names of an XLSX workbook, in workbook order."""
    with pd.ExcelFile(path) as workbook:
        return [str(name) for name in workbook.sheet_names]


def _frame_to_rows(frame: pd.DataFrame) -> Tuple[List[str], List[Row]]:
    frame = frame.fillna("").astype(str)
    frame.columns = [str(column) for column in frame.columns]
    # Blank lines come through as all-empty rows
    frame = frame[(frame != "").any(axis=1)]
    return list(frame.columns), frame.to_dict(orient="records")


def load_table(path: Union[str, Path], sheet: Optional[str] = None) -> Tuple[List[str], List[Row]]:
    """
    Load a CSV or XLSX file as string rows.

    Args:
        path: File path (.csv or .xlsx)
        sheet: Worksheet name for XLSX files (default: first sheet)

    Returns:
        (headers, rows) where each row maps header to cell text

    Raises:
        UnsupportedFileType: For other file extensions
        SheetNotFound: If sheet is not in the workbook
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in CSV_SUFFIXES:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    elif suffix in EXCEL_SUFFIXES:
        sheets = list_sheets(path)
        if sheet is None:
            sheet = sheets[0]
        elif sheet not in sheets:
            raise SheetNotFound(f'Sheet "{sheet}" not found in workbook')
        frame = pd.read_excel(path, sheet_name=sheet, dtype=str)
    else:
        raise UnsupportedFileType(f"Unsupported file type: {path.suffix or path.name}")

    headers, rows = _frame_to_rows(frame)
    logger.info(f"Loaded {len(rows)} rows with {len(headers)} columns from {path.name}")
    return headers, rows


def build_row_texts(rows: Sequence[Row], columns: Sequence[str]) -> List[str]:
    """
    Join the selected columns of each row into one text.

    Args:
        rows: Table rows
        columns: Columns to join, in order

    Returns:
        One text per row, columns separated by a single space
    """
    return [" ".join(row.get(column) or "" for column in columns) for row in rows]


def report_phase(
    on_progress: Optional[PhaseProgressCallback], percent: float, phase: str
) -> None:
    """Report overall analysis progress as a rounded percentage within a named phase."""
    if on_progress:
        on_progress(int(round(percent)), phase)
