"""Shared fixtures for the code execution service tests."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import List

import pytest

from codesandbox.executor import ExecutionOrchestrator, ProcessRunner
from codesandbox.languages import LanguageDescriptor, LanguageRegistry, default_registry
from codesandbox.workspace import WorkspaceManager


def requires(tool: str):
    """Skip a test when ``tool`` is not installed."""
    return pytest.mark.skipif(shutil.which(tool) is None, reason=f"{tool} not installed")


# A compiled "language" that needs only the running interpreter: the compile
# step byte-compiles the source and the run step executes the bytecode.
PYC = LanguageDescriptor(
    name="pyc",
    extension="py",
    compile_command=lambda src, workdir: [
        sys.executable,
        "-c",
        "import py_compile, sys; py_compile.compile(sys.argv[1], cfile=sys.argv[2], doraise=True)",
        str(src),
        str(workdir / "main.pyc"),
    ],
    run_command=lambda src, workdir, entry: [sys.executable, str(workdir / "main.pyc")],
)


class RecordingRunner(ProcessRunner):
    """Process runner that remembers every command it was asked to run."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls: List[List[str]] = []

    def run(self, args, stdin="", timeout_ms=10_000, cwd=None):
        self.calls.append(list(args))
        return super().run(args, stdin, timeout_ms, cwd)


@pytest.fixture
def registry() -> LanguageRegistry:
    builtin = default_registry(python=sys.executable)
    return LanguageRegistry([builtin.resolve(name) for name in builtin.supported] + [PYC])


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    return tmp_path / "workspaces"


@pytest.fixture
def workspaces(workspace_root) -> WorkspaceManager:
    return WorkspaceManager(str(workspace_root))


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def orchestrator(registry, workspaces, runner) -> ExecutionOrchestrator:
    return ExecutionOrchestrator(registry, workspaces, runner, timeout_ms=10_000)
