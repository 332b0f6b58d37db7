"""Shared fixtures for policyscan tests.

Provides in-memory collaborators (policy objects + metadata documents) and a
script tree builder rooted in ``tmp_path`` so that tests exercise the real
filesystem walk without touching anything outside the test's temp dir.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from policyscan.errors import RetrievalError
from policyscan.models.policy import PolicyLink, PolicyObject, ScriptKind, ScriptRoot

_KIND_DIRS = {
    ScriptKind.MACHINE_STARTUP: ("Machine", "Scripts", "Startup"),
    ScriptKind.MACHINE_SHUTDOWN: ("Machine", "Scripts", "Shutdown"),
    ScriptKind.USER_LOGON: ("User", "Scripts", "Logon"),
    ScriptKind.USER_LOGOFF: ("User", "Scripts", "Logoff"),
}


def identifier_for(name: str) -> str:
    return "{" + name.upper().replace(" ", "-") + "}"


def make_report(name: str, body: str = "", identifier: Optional[str] = None) -> str:
    """Build a small XML metadata document for a policy object."""
    identifier = identifier or identifier_for(name)
    return (
        "<GPO>"
        f"<Identifier><Identifier>{identifier}</Identifier></Identifier>"
        f"<Name>{name}</Name>"
        f"{body}"
        "</GPO>"
    )


class FakeDirectory:
    """In-memory policy object list + metadata documents.

    ``fetch_document`` raises ``RetrievalError`` for any identifier listed in
    ``broken`` or missing from ``documents``; every call is recorded.
    """

    def __init__(self) -> None:
        self.policies: list[PolicyObject] = []
        self.documents: dict[str, str] = {}
        self.broken: set[str] = set()
        self.fetched: list[str] = []

    def add(
        self,
        name: str,
        body: str = "",
        links: tuple[PolicyLink, ...] = (),
    ) -> PolicyObject:
        identifier = identifier_for(name)
        policy = PolicyObject(identifier=identifier, display_name=name, links=links)
        self.policies.append(policy)
        self.documents[identifier] = make_report(name, body, identifier)
        return policy

    def list_policies(self) -> list[PolicyObject]:
        return list(self.policies)

    def fetch_document(self, identifier: str) -> str:
        self.fetched.append(identifier)
        if identifier in self.broken or identifier not in self.documents:
            raise RetrievalError(identifier, "simulated retrieval failure")
        return self.documents[identifier]


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def script_base(tmp_path: Path) -> Path:
    base = tmp_path / "Policies"
    base.mkdir()
    return base


@pytest.fixture
def resolve_script_root(script_base: Path) -> Callable[[str], ScriptRoot]:
    def _resolve(identifier: str) -> ScriptRoot:
        return ScriptRoot.under(os.path.join(str(script_base), identifier))

    return _resolve


@pytest.fixture
def write_script(script_base: Path) -> Callable[..., Path]:
    """Write a script file into one of a policy object's four script folders."""

    def _write(
        policy: PolicyObject,
        kind: ScriptKind,
        name: str,
        content: Union[str, bytes],
        subdir: Optional[str] = None,
    ) -> Path:
        folder = script_base.joinpath(policy.identifier, *_KIND_DIRS[kind])
        if subdir:
            folder = folder / subdir
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write
