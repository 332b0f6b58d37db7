"""Unit tests for policyscan/report.py."""

from __future__ import annotations

import json
from datetime import datetime

from policyscan.constants import LINKS_ERROR
from policyscan.models.policy import ScriptKind
from policyscan.models.scan import MetadataSnippet, ScanResult, ScriptLine, SourceKind
from policyscan.report import render_list, render_table, results_to_dicts

RESULTS = (
    ScanResult(
        name="Software Policy",
        identifier="{A}",
        linked=True,
        sources=frozenset({SourceKind.SCRIPT_CONTENT, SourceKind.METADATA}),
        evidence=(
            MetadataSnippet("Name Software Deploy"),
            ScriptLine("script.ps1", 1, "Install-Deploy -Target X", "/p/script.ps1", ScriptKind.USER_LOGON),
        ),
        modified=datetime(2024, 5, 1, 9, 30),
        link_summary="corp/Servers; corp/Desktops",
    ),
    ScanResult(
        name="B",
        identifier="{B}",
        linked=False,
        sources=frozenset({SourceKind.SCRIPT_CONTENT}),
        evidence=(ScriptLine("x.cmd", 4, "deploy"),),
        modified=None,
        link_summary=LINKS_ERROR,
    ),
)


class TestRenderTable:
    def test_header_and_rows(self) -> None:
        lines = render_table(RESULTS).splitlines()
        assert lines[0].split() == ["Name", "Linked", "Source", "LastModified", "LinkPath"]
        assert set(lines[1].replace(" ", "")) == {"-"}
        assert "Software Policy" in lines[2]
        assert "Metadata, ScriptContent" in lines[2]
        assert "2024-05-01 09:30:00" in lines[2]
        assert lines[3].startswith("B ")
        assert lines[3].endswith(LINKS_ERROR)

    def test_empty(self) -> None:
        assert render_table(()) == ""


class TestRenderList:
    def test_full_evidence(self) -> None:
        text = render_list(RESULTS)
        assert "Evidence     : Name Software Deploy" in text
        assert "script.ps1:1: Install-Deploy -Target X" in text
        assert "LinkPath     : --- ERROR ---" in text
        assert text.count("Name         :") == 2


class TestResultsToDicts:
    def test_json_serialisable(self) -> None:
        data = results_to_dicts(RESULTS)
        json.dumps(data)
        assert data[0]["sources"] == ["Metadata", "ScriptContent"]
        assert data[0]["evidence"][1] == {
            "kind": "ScriptContent",
            "file": "script.ps1",
            "line": 1,
            "text": "Install-Deploy -Target X",
            "path": "/p/script.ps1",
            "scriptKind": "user-logon",
        }
        assert data[1]["lastModified"] is None
        assert data[1]["linked"] is False
