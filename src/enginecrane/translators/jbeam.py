"""
JBeam text writer.

Formatting conventions:
- Tabs for indentation
- Numeric tables (torque, pressurePSI) one row per line, header rows too
- Short flat dicts and primitive lists on a single line
"""

from typing import Any, Dict, List
import json


def _is_simple(value: Any) -> bool:
    if isinstance(value, (str, int, float, bool, type(None))):
        return True
    if isinstance(value, list):
        return all(isinstance(v, (str, int, float, bool, type(None))) for v in value)
    return False


def _is_table(value: Any) -> bool:
    """List of primitive rows, e.g. [["rpm", "torque"], [1000, 120], ...]."""
    return (
        isinstance(value, list)
        and len(value) > 0
        and all(isinstance(row, list) and _is_simple(row) for row in value)
    )


def format_value(value: Any, indent: str = "") -> str:
    """Render ``value`` as jbeam text starting at ``indent``."""
    if _is_simple(value) and not isinstance(value, list):
        return json.dumps(value)

    child = indent + "\t"
    if isinstance(value, list):
        if _is_table(value):
            lines = ["["]
            for i, row in enumerate(value):
                comma = "," if i < len(value) - 1 else ""
                lines.append(f"{indent}\t{json.dumps(row, separators=(', ', ':'))}{comma}")
            lines.append(f"{indent}]")
            return "\n".join(lines)
        if _is_simple(value):
            return json.dumps(value, separators=(", ", ":"))
        lines = ["["]
        for i, item in enumerate(value):
            comma = "," if i < len(value) - 1 else ""
            lines.append(f"{indent}\t{format_value(item, child)}{comma}")
        lines.append(f"{indent}]")
        return "\n".join(lines)

    if isinstance(value, dict):
        if len(value) <= 3 and all(_is_simple(v) for v in value.values()):
            return json.dumps(value, separators=(",", ":"))
        lines = ["{"]
        items = list(value.items())
        for i, (key, item) in enumerate(items):
            comma = "," if i < len(items) - 1 else ""
            lines.append(f"{indent}\t{json.dumps(key)}: {format_value(item, child)}{comma}")
        lines.append(f"{indent}}}")
        return "\n".join(lines)

    return json.dumps(value)


def write_jbeam(parts: Dict[str, Dict[str, Any]]) -> str:
    """Render a jbeam file holding one or more parts."""
    return format_value(parts) + "\n"


def torque_table(points: List[tuple], decimals: int = 1) -> List[list]:
    """mainEngine torque table with its header row."""
    rows: List[list] = [["rpm", "torque"]]
    rows.extend([round(rpm, 1), round(torque, decimals)] for rpm, torque in points)
    return rows
