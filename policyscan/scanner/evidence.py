"""Per-object evidence aggregation."""

from __future__ import annotations

from typing import Iterable, Optional, Union

from policyscan.models.scan import Evidence, Finding, SourceKind


class EvidenceCollector:
    """Accumulates match evidence for one policy object.

    ``add(item)`` takes a typed evidence item, which carries its own ``kind``;
    ``add(kind, description)`` records a plain description under ``kind``.
    The source set is deduplicated (one entry per ``SourceKind`` however many
    lines matched); the evidence list keeps insertion order. Pure
    aggregation: no I/O.
    """

    def __init__(self) -> None:
        self._sources: set[SourceKind] = set()
        self._evidence: list[Evidence] = []

    def add(
        self,
        item: Union[Evidence, SourceKind],
        description: Optional[str] = None,
    ) -> None:
        if isinstance(item, SourceKind):
            if description is None:
                raise TypeError("add(kind, description) requires a description")
            item = Finding(source=item, description=description)
        self._sources.add(item.kind)
        self._evidence.append(item)

    def extend(self, items: Iterable[Evidence]) -> None:
        for item in items:
            self.add(item)

    def __bool__(self) -> bool:
        return bool(self._evidence)

    def finalize(self) -> tuple[frozenset[SourceKind], tuple[Evidence, ...]]:
        """Return ``(source_set, evidence)`` as immutable values."""
        return frozenset(self._sources), tuple(self._evidence)
