"""Filesystem-backed collaborators.

Provides:
  - ``ReportDirectorySource``: enumerates policy objects from a directory of
    XML metadata reports (one ``*.xml`` per object) and fetches each object's
    document on demand.
  - ``ScriptRootResolver``: maps an identifier to its four script folders
    below a shared script base.

Report layout (namespaces are ignored, matching is on local element names)::

    <GPO>
      <Identifier><Identifier>{31B2F340-...}</Identifier></Identifier>
      <Name>Default Domain Policy</Name>
      <ModifiedTime>2024-05-01T09:30:00</ModifiedTime>
      <LinksTo><SOMPath>corp.example/Servers</SOMPath><Enabled>true</Enabled></LinksTo>
      ...
    </GPO>

A report that cannot be read or parsed during enumeration is still listed,
under its file name, so that its failure stays confined to that one object.
When two reports carry the same identifier, the first by file name wins and
the other is skipped with a warning.
"""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Optional

from policyscan.errors import EnumerationError, RetrievalError
from policyscan.models.policy import PolicyLink, PolicyObject, ScriptRoot
from policyscan.utils.logger import get_logger

logger = get_logger(__name__)

REPORT_SUFFIX = ".xml"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in _children(element, name):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def _parse_identifier(root: ET.Element) -> Optional[str]:
    for element in root.iter():
        if _local(element.tag) == "Identifier" and element.text and element.text.strip():
            return element.text.strip()
    return None


def _parse_modified(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable ModifiedTime ignored", value=value)
        return None


def _parse_links(root: ET.Element) -> tuple[PolicyLink, ...]:
    links: list[PolicyLink] = []
    for entry in _children(root, "LinksTo"):
        target = _child_text(entry, "SOMPath") or _child_text(entry, "SOMName")
        if not target:
            continue
        enabled = (_child_text(entry, "Enabled") or "true").lower() == "true"
        links.append(PolicyLink(target=target, enabled=enabled))
    return tuple(links)


def policy_from_report(root: ET.Element, fallback_id: str) -> PolicyObject:
    """Build a PolicyObject from a parsed metadata report."""
    identifier = _parse_identifier(root) or fallback_id
    return PolicyObject(
        identifier=identifier,
        display_name=_child_text(root, "Name") or identifier,
        modified=_parse_modified(_child_text(root, "ModifiedTime")),
        links=_parse_links(root),
    )


class ReportDirectorySource:
    """Policy objects and metadata documents read from a report directory.

    Args:
        reports_dir: Directory holding one ``*.xml`` report per policy object.
    """

    def __init__(self, reports_dir: str) -> None:
        self.reports_dir = os.path.abspath(os.path.expanduser(reports_dir))
        self._paths: dict[str, str] = {}

    def list_policies(self) -> list[PolicyObject]:
        """Enumerate every report in the directory, sorted by display name.

        Raises:
            EnumerationError: If the directory is missing or cannot be listed.
        """
        try:
            names = sorted(
                name for name in os.listdir(self.reports_dir)
                if name.lower().endswith(REPORT_SUFFIX)
            )
        except OSError as exc:
            raise EnumerationError(
                f"Cannot list report directory {self.reports_dir}: {exc}"
            ) from exc

        policies: list[PolicyObject] = []
        self._paths.clear()
        for name in names:
            path = os.path.join(self.reports_dir, name)
            stem = name[: -len(REPORT_SUFFIX)]
            try:
                policy = policy_from_report(ET.parse(path).getroot(), fallback_id=stem)
            except (OSError, ET.ParseError) as exc:
                logger.warning(
                    "Report unreadable at enumeration — listed by file name",
                    path=path,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                policy = PolicyObject(identifier=stem, display_name=stem)
            if policy.identifier in self._paths:
                logger.warning(
                    "Duplicate policy identifier — report skipped",
                    identifier=policy.identifier,
                    path=path,
                    kept=self._paths[policy.identifier],
                )
                continue
            self._paths[policy.identifier] = path
            policies.append(policy)

        policies.sort(key=lambda p: p.display_name.casefold())
        logger.info("Policy objects enumerated", count=len(policies), source=self.reports_dir)
        return policies

    def fetch_document(self, identifier: str) -> ET.Element:
        """Read and parse the metadata report for ``identifier``.

        Raises:
            RetrievalError: If the report is missing, unreadable or malformed.
        """
        path = self._paths.get(identifier) or os.path.join(
            self.reports_dir, identifier + REPORT_SUFFIX
        )
        try:
            return ET.parse(path).getroot()
        except OSError as exc:
            raise RetrievalError(identifier, f"Cannot read {path}: {exc}") from exc
        except ET.ParseError as exc:
            raise RetrievalError(identifier, f"Malformed report {path}: {exc}") from exc


class ScriptRootResolver:
    """Pure path construction: ``{script_base}/{identifier}/...`` four folders.

    Args:
        script_base: Shared storage base holding one folder per policy object.
    """

    def __init__(self, script_base: str) -> None:
        self.script_base = os.path.abspath(os.path.expanduser(script_base))

    def __call__(self, identifier: str) -> ScriptRoot:
        """Resolve the four script folders for ``identifier``.

        Raises:
            ValueError: If ``identifier`` is empty or would escape the base.
        """
        separators = [sep for sep in (os.sep, os.altsep, "/") if sep]
        if (
            not identifier
            or identifier in (".", "..")
            or any(sep in identifier for sep in separators)
        ):
            raise ValueError(f"Invalid policy identifier for script root: {identifier!r}")
        return ScriptRoot.under(os.path.join(self.script_base, identifier))
