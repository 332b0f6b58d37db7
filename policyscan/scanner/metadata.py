"""Metadata stage: search one policy object's structured metadata document.

Provides:
  - ``MetadataMatch``: frozen result of the metadata stage.
  - ``flatten_document()``: textual content of a document, in document order.
  - ``extract_snippet()``: bounded context window around a match.
  - ``search_metadata()``: fetch + flatten + match + link summary; never raises.

Failure policy: a document that cannot be retrieved or parsed is NOT fatal.
The stage reports ``matched=False`` with the ``LINKS_ERROR`` sentinel and the
orchestrator continues with the script stage for the same object.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

from policyscan.constants import LINKS_ERROR, SNIPPET_CONTEXT
from policyscan.errors import RetrievalError
from policyscan.models.policy import PolicyObject
from policyscan.scanner.matcher import LiteralMatcher
from policyscan.utils.logger import get_logger

logger = get_logger(__name__)

Document = Union[ET.Element, str, bytes]
FetchDocument = Callable[[str], Document]


@dataclass(frozen=True)
class MetadataMatch:
    """Result of the metadata stage for one policy object.

    Fields:
        matched:      True iff the term occurs in the flattened document text.
        snippet:      Context around the first occurrence (None when not matched).
        link_summary: Enabled link targets joined, ``LINKS_NONE`` or ``LINKS_ERROR``.
        linked:       True iff the document was read and ≥1 link is enabled.
        error:        True when the document could not be retrieved or parsed.
    """

    matched: bool
    snippet: Optional[str]
    link_summary: str
    linked: bool = False
    error: bool = False

    @classmethod
    def failed(cls) -> "MetadataMatch":
        return cls(matched=False, snippet=None, link_summary=LINKS_ERROR, error=True)


def _text_pieces(element: ET.Element) -> Iterator[str]:
    for value in element.attrib.values():
        yield value
    if element.text:
        yield element.text
    for child in element:
        yield from _text_pieces(child)
        if child.tail:
            yield child.tail


def flatten_document(document: ET.Element) -> str:
    """Concatenate all element text and attribute values of ``document``.

    Each piece is stripped and empty pieces are dropped; pieces are joined by
    a single space so that adjacent elements never fuse into one word.
    """
    pieces = (piece.strip() for piece in _text_pieces(document))
    return " ".join(piece for piece in pieces if piece)


def extract_snippet(text: str, span: tuple[int, int], context: int = SNIPPET_CONTEXT) -> str:
    """Return up to ``context`` chars either side of ``span``, clipped and stripped.

    The result is never longer than ``2 * context + (span[1] - span[0])``.
    """
    start, end = span
    return text[max(0, start - context):end + context].strip()


def _as_element(document: Document) -> ET.Element:
    if isinstance(document, ET.Element):
        return document
    return ET.fromstring(document)


def search_metadata(
    policy: PolicyObject,
    fetch_document: FetchDocument,
    matcher: LiteralMatcher,
) -> MetadataMatch:
    """Search one policy object's metadata document for the term.

    Never raises: retrieval and parse failures yield ``MetadataMatch.failed()``.

    Args:
        policy:         The policy object being scanned.
        fetch_document: Collaborator returning the document (an Element or raw XML).
        matcher:        Compiled literal matcher for the scan's term.

    Returns:
        MetadataMatch with the first-occurrence snippet and the link summary.
    """
    try:
        root = _as_element(fetch_document(policy.identifier))
        text = flatten_document(root)
    except RetrievalError as exc:
        logger.warning(
            "Metadata document unavailable",
            policy=policy.display_name,
            identifier=policy.identifier,
            error=exc.message,
        )
        return MetadataMatch.failed()
    except ET.ParseError as exc:
        logger.warning(
            "Metadata document is not well-formed",
            policy=policy.display_name,
            identifier=policy.identifier,
            error=str(exc),
        )
        return MetadataMatch.failed()
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Metadata retrieval raised unexpectedly",
            policy=policy.display_name,
            identifier=policy.identifier,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return MetadataMatch.failed()

    link_summary = policy.link_summary()
    linked = any(link.enabled for link in policy.links)
    span = matcher.find(text)
    if span is None:
        return MetadataMatch(
            matched=False, snippet=None, link_summary=link_summary, linked=linked
        )
    return MetadataMatch(
        matched=True,
        snippet=extract_snippet(text, span),
        link_summary=link_summary,
        linked=linked,
    )
