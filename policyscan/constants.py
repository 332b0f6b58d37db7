"""Shared constants for policyscan.

Snippet widths, sentinel strings and script-tree layout live here.
No magic values in other modules — import from here.
"""

# ─── Metadata snippet ────────────────────────────────────────────────────────

# Characters of context kept on each side of the first metadata match.
# A snippet is therefore at most 2 * SNIPPET_CONTEXT + len(term) characters.
SNIPPET_CONTEXT: int = 50

# ─── Link summary ────────────────────────────────────────────────────────────

# Separator used to join enabled link targets into one summary string.
LINK_SEPARATOR: str = "; "

# Link summary when the policy object has no enabled links.
LINKS_NONE: str = "--- NONE ---"

# Link summary when the metadata document could not be retrieved or parsed.
# Link data is never reported for such an object, even if some is cached.
LINKS_ERROR: str = "--- ERROR ---"

# ─── Script tree layout ──────────────────────────────────────────────────────

# Relative locations of the four script folders under a policy object's
# script root, in scan order.
MACHINE_STARTUP_DIR: tuple[str, ...] = ("Machine", "Scripts", "Startup")
MACHINE_SHUTDOWN_DIR: tuple[str, ...] = ("Machine", "Scripts", "Shutdown")
USER_LOGON_DIR: tuple[str, ...] = ("User", "Scripts", "Logon")
USER_LOGOFF_DIR: tuple[str, ...] = ("User", "Scripts", "Logoff")

# ─── Concurrency ─────────────────────────────────────────────────────────────

# Sequential by default; the worker pool is opt-in.
DEFAULT_CONCURRENCY: int = 1

# Upper bound accepted from config / CLI. Work is I/O bound and the object
# count is modest, so more threads than this only adds contention.
MAX_CONCURRENCY: int = 64
