"""Scan input models: policy objects, their links and script roots.

These are read-only inputs produced by external collaborators (directory
listing, path resolution). The scan engine never mutates them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterator, Optional

from policyscan.constants import (
    LINK_SEPARATOR,
    LINKS_NONE,
    MACHINE_SHUTDOWN_DIR,
    MACHINE_STARTUP_DIR,
    USER_LOGOFF_DIR,
    USER_LOGON_DIR,
)


@dataclass(frozen=True)
class PolicyLink:
    """Association between a policy object and a target scope.

    Fields:
        target:  Path of the scope the object is linked to (e.g. an OU path).
        enabled: Whether the link is currently active.
    """

    target: str
    enabled: bool = True


@dataclass(frozen=True)
class PolicyObject:
    """One scanned unit.

    Fields:
        identifier:   Opaque unique key (e.g. a GUID). Used to fetch the
                      metadata document and resolve the script root.
        display_name: Human-readable name; used as the progress label.
        modified:     Last-modified timestamp, if the source provides one.
        links:        Activation links, in source order.
    """

    identifier: str
    display_name: str
    modified: Optional[datetime] = None
    links: tuple[PolicyLink, ...] = field(default_factory=tuple)

    def link_summary(self) -> str:
        """Join enabled link targets, or return the "none" sentinel."""
        targets = [link.target for link in self.links if link.enabled]
        if not targets:
            return LINKS_NONE
        return LINK_SEPARATOR.join(targets)


class ScriptKind(str, Enum):
    """The four fixed script folders of a policy object, in scan order."""

    MACHINE_STARTUP = "machine-startup"
    MACHINE_SHUTDOWN = "machine-shutdown"
    USER_LOGON = "user-logon"
    USER_LOGOFF = "user-logoff"


@dataclass(frozen=True)
class ScriptRoot:
    """Resolved script directories for one policy object.

    Any of the four may be absent on disk; the searcher skips those.
    """

    machine_startup: str
    machine_shutdown: str
    user_logon: str
    user_logoff: str

    @classmethod
    def under(cls, base: str) -> "ScriptRoot":
        """Build the standard four-folder layout below ``base``."""
        return cls(
            machine_startup=os.path.join(base, *MACHINE_STARTUP_DIR),
            machine_shutdown=os.path.join(base, *MACHINE_SHUTDOWN_DIR),
            user_logon=os.path.join(base, *USER_LOGON_DIR),
            user_logoff=os.path.join(base, *USER_LOGOFF_DIR),
        )

    def __iter__(self) -> Iterator[tuple[ScriptKind, str]]:
        yield ScriptKind.MACHINE_STARTUP, self.machine_startup
        yield ScriptKind.MACHINE_SHUTDOWN, self.machine_shutdown
        yield ScriptKind.USER_LOGON, self.user_logon
        yield ScriptKind.USER_LOGOFF, self.user_logoff
