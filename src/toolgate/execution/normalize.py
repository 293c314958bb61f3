"""Output normalizer: raw stdout to a structured value.

Every rule either returns a :class:`NormalizedOutput` with
``kind="data"`` or raises ``ValueError``; :func:`normalize` turns any
failure into a text pass-through with ``normalized=False``.
"""

from __future__ import annotations

import csv
import io
import json
import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from toolgate.execution.models import NormalizedOutput, OutputFormat

if TYPE_CHECKING:
    from collections.abc import Callable

_TREE_CHARS = "┌┐└┘├┤┬┴┼─│ "
_HUNK_RANGE = re.compile(r"^[-+]?(\d+)(?:,(\d+))?$")
_MIME = re.compile(r"^[\w.+-]+/[\w.+-]+$")


def _lines(text: str) -> list[str]:
    return [line for line in text.splitlines() if line.strip()]


# ── Generic formats ──────────────────────────────────────────


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError) as e:
        msg = f"invalid JSON: {e}"
        raise ValueError(msg) from e


def _parse_jsonl(text: str) -> list[Any]:
    items: list[Any] = []
    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            items.append(json.loads(line))
        except (json.JSONDecodeError, RecursionError) as e:
            msg = f"invalid JSON on line {number}: {e}"
            raise ValueError(msg) from e
    return items


def _parse_columns(text: str) -> list[dict[str, str]]:
    """Whitespace table with a header row (ps, kubectl get, podman ps ...).

    The last column absorbs any remaining fields so values containing
    spaces (commands, ages like "3 days") stay intact.
    """
    rows = _lines(text)
    if not rows:
        return []
    header = [h.lower() for h in rows[0].split()]
    if not header:
        msg = "missing header row"
        raise ValueError(msg)
    records: list[dict[str, str]] = []
    for row in rows[1:]:
        fields = row.split(None, len(header) - 1)
        records.append(dict(zip(header, fields, strict=False)))
    return records


def _parse_delimited(text: str, delimiter: str) -> list[dict[str, str]]:
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    if reader.fieldnames is None:
        return []
    records: list[dict[str, str]] = []
    for row in reader:
        if None in row:
            msg = f"row {reader.line_num} has more fields than the header"
            raise ValueError(msg)
        records.append(row)
    return records


# ── Tool-family formats ──────────────────────────────────────


def _parse_paths(text: str) -> dict[str, Any]:
    """fd / find style: one path per line."""
    files = [
        {"path": path, "name": PurePosixPath(path.rstrip("/")).name or path}
        for path in _lines(text)
    ]
    return {"files": files, "count": len(files)}


def _parse_listing(text: str) -> dict[str, Any]:
    """eza / ls style: name is the last whitespace-separated field."""
    entries: list[dict[str, str]] = []
    for line in _lines(text):
        parts = line.split()
        if len(parts) >= 2:
            entries.append({"name": parts[-1], "raw": line.strip()})
        else:
            entries.append({"name": line.strip()})
    return {"entries": entries, "count": len(entries)}


def _parse_disk_usage(text: str) -> dict[str, Any]:
    """dust / du style: ``<size> <tree-drawing> <name>``."""
    entries: list[dict[str, str]] = []
    for line in _lines(text):
        if line.startswith("Total:"):
            continue
        parts = line.strip().split(None, 1)
        if len(parts) < 2:
            continue
        name = parts[1].lstrip(_TREE_CHARS).strip()
        entries.append({"size": parts[0], "name": name})
    return {"entries": entries, "count": len(entries)}


def _hunk_range(token: str) -> tuple[int, int]:
    match = _HUNK_RANGE.match(token)
    if match is None:
        msg = f"bad hunk range: {token!r}"
        raise ValueError(msg)
    start = int(match.group(1))
    count = int(match.group(2)) if match.group(2) is not None else 1
    return start, count


def _parse_unified_diff(text: str) -> dict[str, Any]:
    files: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None
    hunk: dict[str, Any] | None = None
    old_line = new_line = 0
    # Lines still owed to the open hunk; while either is positive, a
    # leading "---" or "+++" is content, not a file header.
    old_left = new_left = 0

    for line in text.splitlines():
        in_hunk = old_left > 0 or new_left > 0
        if hunk is not None and in_hunk and line[:1] in {"+", "-", " "}:
            marker, content = line[0], line[1:]
            if marker == "+":
                hunk["lines"].append({"type": "add", "new": new_line, "content": content})
                new_line += 1
                new_left -= 1
            elif marker == "-":
                hunk["lines"].append({"type": "remove", "old": old_line, "content": content})
                old_line += 1
                old_left -= 1
            else:
                hunk["lines"].append(
                    {"type": "context", "old": old_line, "new": new_line, "content": content}
                )
                old_line += 1
                new_line += 1
                old_left -= 1
                new_left -= 1
        elif line.startswith("--- "):
            current = {"old": line[4:].strip(), "new": "", "hunks": []}
            files.append(current)
            hunk = None
        elif line.startswith("+++ ") and current is not None and hunk is None:
            current["new"] = line[4:].strip()
        elif line.startswith("@@"):
            parts = line.split()
            if len(parts) < 3:
                msg = f"bad hunk header: {line!r}"
                raise ValueError(msg)
            old_start, old_count = _hunk_range(parts[1])
            new_start, new_count = _hunk_range(parts[2])
            if current is None:
                current = {"old": "", "new": "", "hunks": []}
                files.append(current)
            hunk = {
                "old_start": old_start,
                "old_count": old_count,
                "new_start": new_start,
                "new_count": new_count,
                "lines": [],
            }
            current["hunks"].append(hunk)
            old_line, new_line = old_start, new_start
            old_left, new_left = old_count, new_count

    return {"files": files}


def _categorize_file_type(description: str) -> str:
    desc = description.lower()
    if "directory" in desc:
        return "directory"
    if "text" in desc:
        return "text"
    if "executable" in desc or "elf" in desc:
        return "executable"
    for kind in ("image", "audio", "video"):
        if kind in desc:
            return kind
    if any(word in desc for word in ("archive", "compressed", "zip", "tar")):
        return "archive"
    return "other"


def _parse_file_type(text: str) -> list[dict[str, str]]:
    """``file`` / ``file --mime`` output: ``path: description``."""
    records: list[dict[str, str]] = []
    for line in _lines(text):
        path, sep, description = line.partition(": ")
        if not sep:
            msg = f"expected 'path: description', got {line!r}"
            raise ValueError(msg)
        description = description.strip()
        head = description.split(";", 1)[0].strip()
        mime = head if _MIME.match(head) else "unknown"
        records.append(
            {
                "path": path,
                "mime_type": mime,
                "description": description,
                "type": _categorize_file_type(description),
            }
        )
    return records


_RULES: dict[OutputFormat, Callable[[str], Any]] = {
    OutputFormat.JSON: _parse_json,
    OutputFormat.JSONL: _parse_jsonl,
    OutputFormat.LINES: _lines,
    OutputFormat.COLUMNS: _parse_columns,
    OutputFormat.CSV: lambda text: _parse_delimited(text, ","),
    OutputFormat.TSV: lambda text: _parse_delimited(text, "\t"),
    OutputFormat.PATHS: _parse_paths,
    OutputFormat.LISTING: _parse_listing,
    OutputFormat.DISK_USAGE: _parse_disk_usage,
    OutputFormat.UNIFIED_DIFF: _parse_unified_diff,
    OutputFormat.FILE_TYPE: _parse_file_type,
}


def normalize(stdout: bytes, hint: OutputFormat = OutputFormat.AUTO) -> NormalizedOutput:
    """Convert *stdout* according to *hint*. Never raises."""
    try:
        text = stdout.decode()
    except UnicodeDecodeError as e:
        return NormalizedOutput(
            kind="text",
            value=stdout.decode(errors="replace"),
            format=hint,
            normalized=False,
            error=f"output is not valid UTF-8: {e.reason}",
        )

    if hint is OutputFormat.PLAIN:
        return NormalizedOutput(kind="text", value=text, format=hint)

    if hint is OutputFormat.AUTO:
        stripped = text.strip()
        if stripped[:1] in {"{", "["}:
            try:
                value = json.loads(stripped)
            except (json.JSONDecodeError, RecursionError):
                value = None
            else:
                return NormalizedOutput(kind="data", value=value, format=OutputFormat.JSON)
        return NormalizedOutput(kind="text", value=text, format=OutputFormat.PLAIN)

    # Nothing to parse ("no results" from a JSON tool is not a parse failure).
    if not text.strip() and hint is OutputFormat.JSON:
        return NormalizedOutput(kind="data", value=None, format=hint)

    rule = _RULES[hint]
    try:
        value = rule(text)
    except (ValueError, RecursionError, csv.Error) as e:
        return NormalizedOutput(
            kind="text", value=text, format=hint, normalized=False, error=str(e)
        )
    return NormalizedOutput(kind="data", value=value, format=hint)
