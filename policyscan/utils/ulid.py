"""ULID generation for scan identifiers.

Each scan invocation gets a 26-character ULID used as the ``scan_id`` on
``ScanOutcome`` and as the correlation key on every structured log line.

Uses the ``python-ulid`` library — do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: Crockford Base32 ULID, e.g. ``"01KJ0JRVHYA7KX32VPN5ZSCTMV"``.
    """
    return str(ULID())
