"""Delimited text parsing."""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from .exceptions import StructuralParseError

logger = logging.getLogger(__name__)


@dataclass
class TabularParseResult:
    """Header plus typed rows of a delimited file."""

    columns: list[str]
    rows: list[dict[str, Any]]
    malformed: list[str] = field(default_factory=list)


def _short_rows(text: str) -> tuple[list[int], list[str]]:
    """
    Positions of rows with fewer fields than the header, with reasons.

    Positions count the data rows read_csv keeps: blank lines and rows with
    too many fields are left out.
    """
    positions: list[int] = []
    problems: list[str] = []
    width = None
    position = 0
    for fields in csv.reader(io.StringIO(text), skipinitialspace=True):
        if not fields or (len(fields) == 1 and not fields[0].strip()):
            continue
        if width is None:
            width = len(fields)
            continue
        if len(fields) > width:
            continue
        if len(fields) < width:
            positions.append(position)
            problems.append(f"malformed row with {len(fields)} fields: {','.join(fields)[:60]}")
        position += 1
    return positions, problems


def parse_tabular(text: str, source: str | None = None) -> TabularParseResult:
    """
    Parse delimited rows with a header line.

    Numeric cells become numbers, empty cells become None. Rows with a
    wrong number of fields are reported individually in `malformed` and
    left out of `rows`.

    Args:
        text: Raw file contents
        source: File name used in error messages

    Returns:
        TabularParseResult

    Raises:
        StructuralParseError: If no header can be established
    """
    malformed: list[str] = []

    def _bad_line(fields: list[str]) -> None:
        malformed.append(f"malformed row with {len(fields)} fields: {','.join(fields)[:60]}")
        return None

    try:
        frame = pd.read_csv(
            io.StringIO(text),
            sep=",",
            engine="python",
            skip_blank_lines=True,
            keep_default_na=False,
            na_values=[""],
            skipinitialspace=True,
            on_bad_lines=_bad_line,
        )
    except pd.errors.EmptyDataError as e:
        raise StructuralParseError("Error parsing CSV: no header row found", source=source) from e
    except pd.errors.ParserError as e:
        raise StructuralParseError(f"Error parsing CSV: {e}", source=source) from e

    columns = [str(c).strip() for c in frame.columns]
    if not columns or all(c.startswith("Unnamed:") for c in columns):
        raise StructuralParseError("Error parsing CSV: no header row found", source=source)
    frame.columns = columns

    try:
        short, problems = _short_rows(text)
    except csv.Error as e:
        raise StructuralParseError(f"Error parsing CSV: {e}", source=source) from e
    if short:
        frame = frame.drop(index=frame.index[[p for p in short if p < len(frame)]])
        malformed.extend(problems)

    frame = frame.astype(object).where(frame.notna(), None)
    rows = frame.to_dict(orient="records")

    for problem in malformed:
        logger.debug("%s: %s", source or "csv", problem)
    logger.info("Parsed %d rows (%d malformed) with columns %s", len(rows), len(malformed), columns)
    return TabularParseResult(columns=columns, rows=rows, malformed=malformed)
