"""Script stage: search the four script folders of one policy object.

Each existing folder is walked recursively and every file is searched line by
line. Missing folders are skipped silently (script folders are optional). A
file that cannot be read is logged and skipped; the walk carries on.
"""

from __future__ import annotations

import codecs
import io
import os

from policyscan.models.policy import ScriptKind, ScriptRoot
from policyscan.models.scan import ScriptLine
from policyscan.scanner.matcher import LiteralMatcher
from policyscan.utils.logger import get_logger

logger = get_logger(__name__)

# Longest BOM first: UTF-32 LE starts with the UTF-16 LE BOM.
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def decode_script(raw: bytes) -> str:
    """Decode script bytes without assuming any particular encoding.

    A byte-order mark selects the codec (editors commonly save scripts as
    UTF-16 with BOM); otherwise UTF-8 is tried and undecodable bytes become
    U+FFFD so that the remaining lines are still searchable.
    """
    for bom, encoding in _BOMS:
        if raw.startswith(bom):
            return raw[len(bom):].decode(encoding, errors="replace")
    return raw.decode("utf-8", errors="replace")


def _search_file(path: str, kind: ScriptKind, matcher: LiteralMatcher) -> list[ScriptLine]:
    with open(path, "rb") as fh:
        content = decode_script(fh.read())

    name = os.path.basename(path)
    hits: list[ScriptLine] = []
    # Only \n, \r\n and \r end a line; \x0c, \x85, \u2028 and friends do not.
    for number, raw_line in enumerate(io.StringIO(content, newline=None), start=1):
        line = raw_line.rstrip("\n")
        if matcher.contains(line):
            hits.append(
                ScriptLine(
                    file_name=name,
                    line_number=number,
                    text=line.strip(),
                    path=path,
                    script_kind=kind,
                )
            )
    return hits


def _walk_files(directory: str) -> list[str]:
    def _on_error(exc: OSError) -> None:
        logger.warning(
            "Script folder entry unreadable — skipped",
            path=exc.filename,
            error=str(exc),
        )

    files: list[str] = []
    for current, dirnames, filenames in os.walk(directory, onerror=_on_error):
        dirnames.sort()
        files.extend(os.path.join(current, name) for name in sorted(filenames))
    return files


def search_script_tree(script_root: ScriptRoot, matcher: LiteralMatcher) -> list[ScriptLine]:
    """Search every file under the four script folders of ``script_root``.

    Order is deterministic: folders in ``ScriptRoot`` order, then files sorted
    by path within each folder, then line order.

    Args:
        script_root: Resolved folders for one policy object.
        matcher:     Compiled literal matcher for the scan's term.

    Returns:
        One ``ScriptLine`` per matching line. Empty when nothing matched or
        no folder exists.
    """
    evidence: list[ScriptLine] = []
    for kind, directory in script_root:
        if not os.path.isdir(directory):
            continue
        for path in _walk_files(directory):
            if not os.path.isfile(path):
                logger.debug("Not a regular file — skipped", path=path, script_kind=kind.value)
                continue
            try:
                evidence.extend(_search_file(path, kind, matcher))
            except OSError as exc:
                logger.warning(
                    "Script file unreadable — skipped",
                    path=path,
                    script_kind=kind.value,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
    return evidence
