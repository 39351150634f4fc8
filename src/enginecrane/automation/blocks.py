"""
Parsers for the two Automation export file kinds.

- Block files: ``[Block]`` headers followed by ``key = value`` lines,
  ``#`` or ``;`` comment lines
- Curve table: comma-separated with a header row naming the columns
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple
import csv
import io
import math

import numpy as np

from enginecrane.errors import ConversionWarning, SourceFormatError, WarningKind

CURVE_FILE = "curve.csv"


@dataclass
class Block:
    """One ``[name]`` section with its raw string entries."""
    name: str
    entries: Dict[str, str] = field(default_factory=dict)


def parse_blocks(
    text: str,
    source: str,
    blocks: Dict[str, Block] | None = None,
) -> Tuple[Dict[str, Block], List[ConversionWarning]]:
    """Parse key=value block text.

    Keys are case-insensitive and stored lower-case. A block that appears
    again (in the same or a later file) is merged into the first one;
    a repeated key keeps the last value and yields an ADJUSTED warning.

    Args:
        text: Decoded file content
        source: Member name, used in error messages
        blocks: Blocks parsed from earlier files, extended in place

    Returns:
        (blocks by lower-case name, warnings)
    """
    blocks = {} if blocks is None else blocks
    warnings: List[ConversionWarning] = []
    current: Block | None = None

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(("#", ";")):
            continue

        if line.startswith("["):
            if not line.endswith("]") or len(line) < 3:
                raise SourceFormatError(source, f"line {lineno}", f"malformed block header {line!r}")
            name = line[1:-1].strip()
            current = blocks.setdefault(name.lower(), Block(name))
            continue

        if current is None:
            raise SourceFormatError(source, f"line {lineno}", "entry outside of any [block]")
        if "=" not in line:
            raise SourceFormatError(current.name, f"line {lineno}", f"expected key = value, got {line!r}")

        key, value = (part.strip() for part in line.split("=", 1))
        if not key:
            raise SourceFormatError(current.name, f"line {lineno}", "empty key")
        key = key.lower()
        if key in current.entries:
            warnings.append(ConversionWarning(
                current.name, key, f"duplicate key, last value {value!r} used", WarningKind.ADJUSTED,
            ))
        current.entries[key] = value

    return blocks, warnings


CURVE_COLUMNS = ("rpm", "torque", "power", "boost", "econ")
REQUIRED_COLUMNS = ("rpm", "torque")


def parse_curve_table(text: str) -> Tuple[Dict[str, np.ndarray], List[str]]:
    """Parse the sampled torque/power table into float columns.

    Returns:
        (known columns as float arrays, names of unrecognized columns)

    Raises:
        SourceFormatError: Naming the curve file and the offending column
    """
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if not rows:
        raise SourceFormatError(CURVE_FILE, "header", "torque table is empty")

    header = [cell.strip().lower() for cell in rows[0]]
    for column in REQUIRED_COLUMNS:
        if column not in header:
            raise SourceFormatError(CURVE_FILE, column, "required column missing")
    body = rows[1:]
    if len(body) < 2:
        raise SourceFormatError(CURVE_FILE, "rpm", f"at least 2 samples required, got {len(body)}")

    columns: Dict[str, np.ndarray] = {}
    ignored = [column for column in header if column not in CURVE_COLUMNS]
    for index, column in enumerate(header):
        if column not in CURVE_COLUMNS:
            continue
        values = []
        for row_number, row in enumerate(body, start=2):
            if index >= len(row):
                raise SourceFormatError(CURVE_FILE, column, f"row {row_number} is short")
            cell = row[index].strip()
            try:
                value = float(cell)
            except ValueError:
                raise SourceFormatError(
                    CURVE_FILE, column, f"row {row_number}: {cell!r} is not a number"
                ) from None
            if not math.isfinite(value):
                raise SourceFormatError(CURVE_FILE, column, f"row {row_number}: {cell!r} is not finite")
            values.append(value)
        columns[column] = np.array(values, dtype=float)
    return columns, ignored
