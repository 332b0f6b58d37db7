"""policyscan: literal search across policy objects and their script trees.

The scan engine lives in ``policyscan.scanner``; ``run_scan()`` and
``ScanOrchestrator`` are re-exported here for programmatic callers.
"""

from policyscan.scanner.orchestrator import ScanOrchestrator, run_scan

__all__ = ["ScanOrchestrator", "run_scan"]

__version__ = "0.1.0"
