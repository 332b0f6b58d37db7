"""Scan output models: evidence variants, results, progress and options.

Evidence is kept as typed items rather than pre-joined strings; joining
happens only in ``policyscan.report``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from policyscan.constants import DEFAULT_CONCURRENCY
from policyscan.models.policy import ScriptKind


class SourceKind(str, Enum):
    """Where a piece of evidence was found.

    Values are strings for JSON serialisation compatibility.
    """

    METADATA = "Metadata"
    SCRIPT_CONTENT = "ScriptContent"


@dataclass(frozen=True)
class MetadataSnippet:
    """Bounded context around the first match in a metadata document."""

    snippet: str

    @property
    def kind(self) -> SourceKind:
        return SourceKind.METADATA

    def describe(self) -> str:
        return self.snippet


@dataclass(frozen=True)
class ScriptLine:
    """One matching line in a script file.

    Fields:
        file_name:   Base name of the file.
        line_number: 1-based line number.
        text:        The line with surrounding whitespace stripped.
        path:        Full path of the file.
        script_kind: Which of the four script folders the file sits in.
    """

    file_name: str
    line_number: int
    text: str
    path: str = ""
    script_kind: Optional[ScriptKind] = None

    @property
    def kind(self) -> SourceKind:
        return SourceKind.SCRIPT_CONTENT

    def describe(self) -> str:
        return f"{self.file_name}:{self.line_number}: {self.text}"


@dataclass(frozen=True)
class Finding:
    """Free-form evidence recorded as a plain ``(kind, description)`` pair."""

    source: SourceKind
    description: str

    @property
    def kind(self) -> SourceKind:
        return self.source

    def describe(self) -> str:
        return self.description


Evidence = Union[MetadataSnippet, ScriptLine, Finding]


@dataclass(frozen=True)
class ScanResult:
    """One policy object with at least one match.

    Fields:
        name:         Display name of the policy object.
        identifier:   Identifier of the policy object.
        linked:       True iff the metadata stage succeeded and found ≥1 enabled link.
        sources:      Which source kinds matched.
        evidence:     Match evidence in insertion order (metadata first).
        modified:     Last-modified timestamp of the policy object.
        link_summary: Enabled link targets joined, or a NONE / ERROR sentinel.
    """

    name: str
    identifier: str
    linked: bool
    sources: frozenset[SourceKind]
    evidence: tuple[Evidence, ...]
    modified: Optional[datetime]
    link_summary: str

    def __post_init__(self) -> None:
        if not self.evidence:
            raise ValueError("ScanResult requires at least one evidence item")


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification emitted after work on object ``index`` starts.

    ``index`` is 1-based; ``percent`` is ``round(index / total * 100)``.
    """

    index: int
    total: int
    percent: int
    elapsed: timedelta
    label: str


@dataclass
class ScanOptions:
    """Caller-tunable scan options.

    Fields:
        concurrency: Number of policy objects processed at once (≥ 1).
                     1 means strictly sequential, single-threaded.
        cancel:      Optional event; once set, no new object is started.
    """

    concurrency: int = DEFAULT_CONCURRENCY
    cancel: Optional[threading.Event] = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")


@dataclass(frozen=True)
class ScanOutcome:
    """Everything ``run_scan()`` hands back to the caller."""

    scan_id: str
    results: tuple[ScanResult, ...] = field(default_factory=tuple)
    elapsed: timedelta = field(default_factory=timedelta)
    cancelled: bool = False
