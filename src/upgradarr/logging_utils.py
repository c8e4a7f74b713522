from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from textwrap import wrap
from typing import Union

WRAP_WIDTH = 110
MAX_LABEL_WIDTH = 24
INDENT = "    "

FieldMapping = Union[Mapping[str, object], Sequence[tuple[str, object]]]


def _as_pairs(fields: FieldMapping) -> list[tuple[str, object]]:
    if isinstance(fields, Mapping):
        return [(str(key), value) for key, value in fields.items()]
    return [(str(key), value) for key, value in fields]


def format_value(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:.2f}".rstrip("0").rstrip(".")
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(format_value(item) for item in value) or "-"
    return str(value).strip() or "-"


def _header(title: str, pad_top: bool) -> list[str]:
    lines = [""] if pad_top else []
    lines.extend([title, "-" * len(title)])
    return lines


def render_fields_block(title: str, fields: FieldMapping, *, pad_top: bool = True) -> str:
    """Render a titled block of aligned ``label: value`` lines for the log."""
    lines = _header(title, pad_top)
    pairs = _as_pairs(fields)
    if not pairs:
        return "\n".join(lines)

    label_width = max(8, min(max(len(key) for key, _ in pairs), MAX_LABEL_WIDTH))
    value_width = max(WRAP_WIDTH - len(INDENT) - label_width - 2, 32)
    for key, value in pairs:
        chunks = wrap(format_value(value), width=value_width) or [""]
        lines.append(f"{INDENT}{key:<{label_width}}: {chunks[0]}")
        lines.extend(f"{INDENT}{'':<{label_width}}  {chunk}" for chunk in chunks[1:])
    return "\n".join(lines).rstrip()


def render_section_block(
    title: str,
    sections: Sequence[tuple[str, Iterable[str]]],
    *,
    pad_top: bool = True,
    empty_label: str = "(none)",
) -> str:
    """Render a titled block of bulleted sections."""
    lines = _header(title, pad_top)
    for heading, items in sections:
        if lines[-1] != "":
            lines.append("")
        lines.append(f"{heading}:")
        entries = [str(item) for item in items if item is not None]
        if not entries:
            lines.append(f"{INDENT}{empty_label}")
            continue
        for entry in entries:
            chunks = wrap(entry, width=WRAP_WIDTH - len(INDENT) - 2) or [""]
            lines.append(f"{INDENT}- {chunks[0]}")
            lines.extend(f"{INDENT}  {chunk}" for chunk in chunks[1:])
    return "\n".join(lines).rstrip()
