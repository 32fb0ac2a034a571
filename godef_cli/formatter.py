"""Render a :class:`~godef_cli.models.Result` as text or JSON."""

from __future__ import annotations

import json
from enum import Enum

from .models import Kind, Result


class OutputMode(str, Enum):
    PLAIN = "plain"
    TYPE = "type"
    MEMBERS = "members"
    ALL = "all"
    JSON = "json"


def output_mode(
    type_info: bool = False,
    members: bool = False,
    all_members: bool = False,
    as_json: bool = False,
) -> OutputMode:
    """Collapse the output flags: JSON wins, then all > members > type."""
    if as_json:
        return OutputMode.JSON
    if all_members:
        return OutputMode.ALL
    if members:
        return OutputMode.MEMBERS
    if type_info:
        return OutputMode.TYPE
    return OutputMode.PLAIN


def type_str(result: Result) -> str:
    """One-line description: kind keyword, name, type and value."""
    parts = []
    value_fmt = " = {}"
    if result.kind is Kind.IMPORT:
        parts.append(f"{result.kind} (")
        value_fmt = " {})"
    elif result.kind not in (Kind.VAR, Kind.FUNC):
        parts.append(f"{result.kind} ")
    parts.append(result.name)
    if result.type is not None:
        parts.append(f" {result.type}")
    if result.value is not None:
        parts.append(value_fmt.format(result.value))
    return "".join(parts)


def format_result(result: Result, mode: OutputMode = OutputMode.PLAIN) -> str:
    if result.kind is Kind.PATH:
        return f"{result.value}\n"
    if mode is OutputMode.JSON:
        return json.dumps(result.position.to_dict(), separators=(",", ":")) + "\n"

    lines = [str(result.position)]
    if result.kind is Kind.BAD or mode is OutputMode.PLAIN:
        return "\n".join(lines) + "\n"
    lines.append(type_str(result))
    if mode in (OutputMode.MEMBERS, OutputMode.ALL):
        for member in result.members:
            if mode is not OutputMode.ALL and (member.pkg or not member.exported):
                continue
            lines.append("\t" + type_str(member).replace("\n", "\n\t\t"))
            lines.append(f"\t\t{member.position}")
    return "\n".join(lines) + "\n"
