"""Load CSV and Excel files into parsed rows of trimmed string cells."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from .analytics.errors import DatasetLoadError
from .analytics.values import normalize_cell

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xls")


@dataclass(frozen=True)
class ParsedDataset:
    """Header order plus one ``{header: cell}`` dict per data row.

    Cells are trimmed strings or ``None``; duplicate headers are preserved so
    the profiler can reject them.
    """
    headers: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)
    source_path: str = ""

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_frame(self) -> pd.DataFrame:
        """Raw string frame with one column per header, in header order."""
        return pd.DataFrame.from_records(
            [[row.get(h) for h in self.headers] for row in self.rows],
            columns=self.headers,
        )


def load_dataset(path: str | Path) -> ParsedDataset:
    """Read ``path`` into a ParsedDataset.

    Raises DatasetLoadError with FILE_NOT_FOUND, UNSUPPORTED_FORMAT,
    FILE_UNREADABLE or EMPTY_FILE.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise DatasetLoadError(f"Dataset file not found: {file_path}", code="FILE_NOT_FOUND")

    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise DatasetLoadError(
            f"Unsupported file type '{suffix or file_path.name}'. Upload a CSV or Excel file.",
            code="UNSUPPORTED_FORMAT",
        )

    try:
        if suffix == ".csv":
            raw = pd.read_csv(
                file_path, header=None, dtype=str, keep_default_na=False, skip_blank_lines=True,
            )
        else:
            raw = pd.read_excel(file_path, sheet_name=0, header=None, dtype=str)
    except pd.errors.EmptyDataError as exc:
        raise DatasetLoadError(f"Dataset file is empty: {file_path.name}", code="EMPTY_FILE") from exc
    except (ValueError, OSError, UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise DatasetLoadError(f"Could not read {file_path.name}: {exc}") from exc

    if raw.empty:
        raise DatasetLoadError(f"Dataset file is empty: {file_path.name}", code="EMPTY_FILE")

    dataset = _to_parsed(raw, str(file_path))
    logger.info(
        "Loaded %s: %d rows, %d columns", file_path.name, dataset.row_count, len(dataset.headers),
    )
    return dataset


def _to_parsed(raw: pd.DataFrame, source_path: str) -> ParsedDataset:
    header_cells = [normalize_cell(v) for v in raw.iloc[0].tolist()]
    headers = [h if h is not None else f"column_{i + 1}" for i, h in enumerate(header_cells)]

    rows: list[dict[str, Any]] = []
    for values in raw.iloc[1:].itertuples(index=False, name=None):
        cells = [normalize_cell(v) for v in values]
        if all(c is None for c in cells):
            continue
        # Duplicate headers keep the first occurrence's cell.
        row: dict[str, Any] = {}
        for header, cell in zip(headers, cells):
            row.setdefault(header, cell)
        rows.append(row)
    return ParsedDataset(headers=headers, rows=rows, source_path=source_path)


def sanitize_filename(filename: str) -> str:
    """Strip directories and unsafe characters from an uploaded filename."""
    filename = os.path.basename(filename)
    filename = re.sub(r"[^\w\-_\. ]", "", filename)
    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:255 - len(ext)] + ext
    return filename
