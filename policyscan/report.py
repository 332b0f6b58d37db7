"""Presentation of scan results.

Evidence stays typed through the whole engine; it is joined into display
strings only here.

Provides:
  - ``render_table()``:     condensed table (name, linked, source, modified, links).
  - ``render_list()``:      full listing including every evidence line.
  - ``results_to_dicts()``: JSON-ready structures for programmatic consumers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from policyscan.models.scan import (
    Finding,
    MetadataSnippet,
    ScanResult,
    ScriptLine,
    SourceKind,
)

TABLE_COLUMNS: tuple[str, ...] = ("Name", "Linked", "Source", "LastModified", "LinkPath")

# Stable display order for the source set.
_SOURCE_ORDER: tuple[SourceKind, ...] = (SourceKind.METADATA, SourceKind.SCRIPT_CONTENT)


def format_sources(result: ScanResult) -> str:
    return ", ".join(kind.value for kind in _SOURCE_ORDER if kind in result.sources)


def format_modified(modified: Optional[datetime]) -> str:
    if modified is None:
        return ""
    return modified.isoformat(sep=" ", timespec="seconds")


def format_evidence(result: ScanResult, separator: str = "\n") -> str:
    return separator.join(item.describe() for item in result.evidence)


def render_table(results: Sequence[ScanResult]) -> str:
    """Render the condensed table. Returns an empty string for no results."""
    if not results:
        return ""
    rows = [TABLE_COLUMNS] + [
        (
            result.name,
            str(result.linked),
            format_sources(result),
            format_modified(result.modified),
            result.link_summary,
        )
        for result in results
    ]
    widths = [max(len(row[col]) for row in rows) for col in range(len(TABLE_COLUMNS))]
    lines = []
    for number, row in enumerate(rows):
        lines.append("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())
        if number == 0:
            lines.append("  ".join("-" * width for width in widths))
    return "\n".join(lines)


def render_list(results: Sequence[ScanResult]) -> str:
    """Render every result as a block of ``Field : value`` lines."""
    blocks = []
    for result in results:
        evidence = format_evidence(result, separator="\n" + " " * 15)
        blocks.append(
            "\n".join([
                f"Name         : {result.name}",
                f"Linked       : {result.linked}",
                f"Source       : {format_sources(result)}",
                f"LastModified : {format_modified(result.modified)}",
                f"LinkPath     : {result.link_summary}",
                f"Evidence     : {evidence}",
            ])
        )
    return "\n\n".join(blocks)


def _evidence_to_dict(item: Any) -> dict[str, Any]:
    if isinstance(item, MetadataSnippet):
        return {"kind": item.kind.value, "snippet": item.snippet}
    if isinstance(item, ScriptLine):
        return {
            "kind": item.kind.value,
            "file": item.file_name,
            "line": item.line_number,
            "text": item.text,
            "path": item.path,
            "scriptKind": item.script_kind.value if item.script_kind else None,
        }
    if isinstance(item, Finding):
        return {"kind": item.kind.value, "description": item.description}
    raise TypeError(f"Unknown evidence type: {type(item).__name__}")


def results_to_dicts(results: Sequence[ScanResult]) -> list[dict[str, Any]]:
    return [
        {
            "name": result.name,
            "identifier": result.identifier,
            "linked": result.linked,
            "sources": [kind.value for kind in _SOURCE_ORDER if kind in result.sources],
            "lastModified": result.modified.isoformat() if result.modified else None,
            "linkPath": result.link_summary,
            "evidence": [_evidence_to_dict(item) for item in result.evidence],
        }
        for result in results
    ]
