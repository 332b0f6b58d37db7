"""Exception taxonomy for the scan engine.

Only ``EnumerationError`` ever crosses the orchestrator boundary.
``RetrievalError`` is raised by metadata collaborators and absorbed per object.
"""

from __future__ import annotations


class PolicyScanError(Exception):
    """Base class for all policyscan errors."""

    code: str = "policyscan_error"

    def __init__(self, message: str = "Policy scan failed") -> None:
        super().__init__(message)
        self.message = message


class EnumerationError(PolicyScanError):
    """Raised when the policy object list itself cannot be retrieved.

    Fatal: the scan aborts before any per-object work begins.
    """

    code: str = "enumeration_failed"

    def __init__(self, message: str = "Could not enumerate policy objects") -> None:
        super().__init__(message)


class RetrievalError(PolicyScanError):
    """Raised when one policy object's metadata document cannot be fetched or parsed.

    Recoverable: the metadata stage reports no match with the error sentinel
    and the scan moves on to the script stage.
    """

    code: str = "retrieval_failed"

    def __init__(self, identifier: str, message: str = "Metadata document unavailable") -> None:
        super().__init__(message)
        self.identifier = identifier
