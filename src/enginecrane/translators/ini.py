"""
Writers for section-delimited ``KEY=VALUE`` files and ``x|y`` lookup tables.

Values are formatted once, at the point they are set, so the same input
always produces the same text.
"""

from typing import Dict, Iterable, List, Tuple, Union

Value = Union[str, int, float, bool]


def format_number(value: float, decimals: int) -> str:
    """Fixed-point text; ``decimals=0`` gives an integer."""
    if decimals == 0:
        return str(int(round(value)))
    text = f"{value:.{decimals}f}"
    # avoid "-0.00"
    if float(text) == 0.0:
        text = f"{0.0:.{decimals}f}"
    return text


def format_rpm(rpm: float) -> str:
    """Integer rpm when whole, one decimal otherwise."""
    if abs(rpm - round(rpm)) < 1e-9:
        return str(int(round(rpm)))
    return f"{rpm:.1f}"


class IniSection:
    """Ordered keys of one ``[SECTION]``."""

    def __init__(self, name: str):
        self.name = name
        self._entries: Dict[str, str] = {}

    def set(self, key: str, value: Value, decimals: int | None = None) -> "IniSection":
        if isinstance(value, bool):
            text = "1" if value else "0"
        elif isinstance(value, int):
            text = str(value)
        elif isinstance(value, float):
            text = format_number(value, 2 if decimals is None else decimals)
        else:
            text = str(value)
        self._entries[key] = text
        return self

    def get(self, key: str) -> str:
        return self._entries[key]

    def items(self) -> List[Tuple[str, str]]:
        return list(self._entries.items())


class IniDocument:
    """Ordered collection of sections rendered as Assetto Corsa style INI."""

    def __init__(self):
        self._sections: Dict[str, IniSection] = {}

    def section(self, name: str) -> IniSection:
        if name not in self._sections:
            self._sections[name] = IniSection(name)
        return self._sections[name]

    def __contains__(self, name: str) -> bool:
        return name in self._sections

    def to_text(self) -> str:
        blocks = []
        for section in self._sections.values():
            lines = [f"[{section.name}]"]
            lines.extend(f"{key}={value}" for key, value in section.items())
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) + "\n"

    def to_bytes(self) -> bytes:
        return self.to_text().encode("utf-8")


def parse_ini(text: str) -> Dict[str, Dict[str, str]]:
    """Read back text produced by IniDocument (``;`` comments allowed)."""
    sections: Dict[str, Dict[str, str]] = {}
    current = None
    for raw in text.splitlines():
        line = raw.split(";", 1)[0].strip()
        if not line:
            continue
        if line.startswith("[") and line.endswith("]"):
            current = sections.setdefault(line[1:-1].strip(), {})
        elif current is not None and "=" in line:
            key, value = line.split("=", 1)
            current[key.strip()] = value.strip()
    return sections


def write_lut(points: Iterable[Tuple[float, float]], decimals: int = 1) -> str:
    """``rpm|value`` lines, one per point."""
    return "".join(f"{format_rpm(x)}|{format_number(y, decimals)}\n" for x, y in points)


def inline_lut(points: Iterable[Tuple[float, float]], decimals: int = 2) -> str:
    """Controller LUT literal ``(x=y|x=y|...)``."""
    body = "|".join(f"{format_rpm(x)}={format_number(y, decimals)}" for x, y in points)
    return f"({body})"
