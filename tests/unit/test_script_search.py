"""Unit tests for policyscan/scanner/scripts.py.

Verifies:
  - Missing script folders yield no evidence and no error
  - One ScriptLine per matching line (file name, 1-based line, trimmed text)
  - Recursive walk, deterministic ordering across the four folders
  - Encoding tolerance (BOMs, undecodable bytes)
  - Unreadable files are skipped without aborting the walk
"""

from __future__ import annotations

import codecs
import os

import pytest

from policyscan.models.policy import PolicyObject, ScriptKind
from policyscan.scanner.matcher import LiteralMatcher
from policyscan.scanner.scripts import decode_script, search_script_tree

POLICY = PolicyObject(identifier="{B}", display_name="Policy B")


class TestMissingFolders:
    def test_all_four_missing(self, resolve_script_root) -> None:
        root = resolve_script_root(POLICY.identifier)
        assert search_script_tree(root, LiteralMatcher.for_term("x")) == []

    def test_some_missing(self, resolve_script_root, write_script) -> None:
        write_script(POLICY, ScriptKind.USER_LOGOFF, "bye.cmd", "echo bye")
        root = resolve_script_root(POLICY.identifier)
        hits = search_script_tree(root, LiteralMatcher.for_term("bye"))
        assert [(h.file_name, h.line_number) for h in hits] == [("bye.cmd", 1)]


class TestLineMatching:
    def test_single_line_evidence(self, resolve_script_root, write_script) -> None:
        path = write_script(
            POLICY, ScriptKind.USER_LOGON, "script.ps1", "  Install-Deploy -Target X  \n"
        )
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("deploy")
        )
        assert len(hits) == 1
        hit = hits[0]
        assert hit.file_name == "script.ps1"
        assert hit.line_number == 1
        assert hit.text == "Install-Deploy -Target X"
        assert hit.path == str(path)
        assert hit.script_kind is ScriptKind.USER_LOGON

    def test_multiple_lines_per_file(self, resolve_script_root, write_script) -> None:
        write_script(
            POLICY, ScriptKind.MACHINE_STARTUP, "start.bat",
            "@echo off\r\nnet use Z: \\\\srv\\deploy\r\nrem nothing\r\ncall deploy.cmd\r\n",
        )
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("DEPLOY")
        )
        assert [(h.line_number, h.text) for h in hits] == [
            (2, "net use Z: \\\\srv\\deploy"),
            (4, "call deploy.cmd"),
        ]

    def test_literal_term_not_pattern(self, resolve_script_root, write_script) -> None:
        write_script(POLICY, ScriptKind.USER_LOGON, "a.ps1", "Get-Item foo\nls *.* \n")
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term(".*")
        )
        assert [h.line_number for h in hits] == [2]

    @pytest.mark.parametrize("separator", ["\x0c", "\x0b", "\x1c", "\x85", "\u2028", "\u2029"])
    def test_line_numbers_count_newlines_only(
        self, resolve_script_root, write_script, separator: str
    ) -> None:
        write_script(
            POLICY, ScriptKind.USER_LOGON, "paged.ps1",
            f"# header{separator} page\nWrite-Host x\nDeploy-Thing\n",
        )
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("Deploy")
        )
        assert [(h.line_number, h.text) for h in hits] == [(3, "Deploy-Thing")]

    def test_separator_inside_matching_line_kept(self, resolve_script_root, write_script) -> None:
        write_script(POLICY, ScriptKind.USER_LOGON, "ff.ps1", "a\nDeploy\x0cpart two\r\nb\r")
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("part two")
        )
        assert [(h.line_number, h.text) for h in hits] == [(2, "Deploy\x0cpart two")]


class TestOrdering:
    def test_folder_then_path_order(self, resolve_script_root, write_script) -> None:
        write_script(POLICY, ScriptKind.USER_LOGOFF, "z.ps1", "hit")
        write_script(POLICY, ScriptKind.USER_LOGON, "b.ps1", "hit")
        write_script(POLICY, ScriptKind.USER_LOGON, "a.ps1", "hit")
        write_script(POLICY, ScriptKind.USER_LOGON, "c.ps1", "hit", subdir="nested")
        write_script(POLICY, ScriptKind.MACHINE_SHUTDOWN, "down.ps1", "hit")
        write_script(POLICY, ScriptKind.MACHINE_STARTUP, "up.ps1", "hit")

        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("hit")
        )
        assert [(h.script_kind, h.file_name) for h in hits] == [
            (ScriptKind.MACHINE_STARTUP, "up.ps1"),
            (ScriptKind.MACHINE_SHUTDOWN, "down.ps1"),
            (ScriptKind.USER_LOGON, "a.ps1"),
            (ScriptKind.USER_LOGON, "b.ps1"),
            (ScriptKind.USER_LOGON, "c.ps1"),
            (ScriptKind.USER_LOGOFF, "z.ps1"),
        ]

    def test_repeatable(self, resolve_script_root, write_script) -> None:
        for name in ("q.ps1", "b.ps1", "m.ps1"):
            write_script(POLICY, ScriptKind.USER_LOGON, name, "hit\nhit")
        root = resolve_script_root(POLICY.identifier)
        matcher = LiteralMatcher.for_term("hit")
        assert search_script_tree(root, matcher) == search_script_tree(root, matcher)


class TestEncodings:
    def test_utf16_with_bom(self, resolve_script_root, write_script) -> None:
        content = codecs.BOM_UTF16_LE + "line one\r\nInstall-Deploy\r\n".encode("utf-16-le")
        write_script(POLICY, ScriptKind.USER_LOGON, "wide.ps1", content)
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("deploy")
        )
        assert [(h.line_number, h.text) for h in hits] == [(2, "Install-Deploy")]

    def test_undecodable_bytes_do_not_stop_search(self, resolve_script_root, write_script) -> None:
        write_script(POLICY, ScriptKind.USER_LOGON, "bin.cmd", b"\xfa\xfb junk\nreal deploy line\n")
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("deploy")
        )
        assert [h.text for h in hits] == ["real deploy line"]

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (codecs.BOM_UTF8 + b"abc", "abc"),
            (codecs.BOM_UTF16_BE + "abc".encode("utf-16-be"), "abc"),
            (b"plain", "plain"),
            (b"caf\xe9", "caf\ufffd"),
        ],
    )
    def test_decode_script(self, raw: bytes, expected: str) -> None:
        assert decode_script(raw) == expected


class TestUnreadableFiles:
    @pytest.mark.skipif(not hasattr(os, "symlink") or os.name == "nt", reason="POSIX symlinks")
    def test_dangling_symlink_skipped(self, resolve_script_root, write_script, tmp_path) -> None:
        good = write_script(POLICY, ScriptKind.USER_LOGON, "b-good.ps1", "deploy here")
        os.symlink(str(tmp_path / "does-not-exist"), str(good.parent / "a-broken.ps1"))

        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("deploy")
        )
        assert [h.file_name for h in hits] == ["b-good.ps1"]

    def test_open_failure_skipped(self, resolve_script_root, write_script, monkeypatch) -> None:
        write_script(POLICY, ScriptKind.MACHINE_STARTUP, "locked.ps1", "deploy")
        write_script(POLICY, ScriptKind.USER_LOGON, "ok.ps1", "deploy")

        real_open = open

        def _open(path, *args, **kwargs):
            if str(path).endswith("locked.ps1"):
                raise PermissionError(13, "Permission denied", str(path))
            return real_open(path, *args, **kwargs)

        monkeypatch.setattr("builtins.open", _open)
        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("deploy")
        )
        assert [h.file_name for h in hits] == ["ok.ps1"]

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="POSIX named pipes")
    def test_named_pipe_not_opened(self, resolve_script_root, write_script) -> None:
        good = write_script(POLICY, ScriptKind.USER_LOGON, "b-good.ps1", "deploy here")
        os.mkfifo(str(good.parent / "a-pipe.ps1"))

        hits = search_script_tree(
            resolve_script_root(POLICY.identifier), LiteralMatcher.for_term("deploy")
        )
        assert [h.file_name for h in hits] == ["b-good.ps1"]
