"""
Compile-then-run sequencing for single and batch executions.

:class:`ExecutionOrchestrator` ties the language registry, the workspace
manager and the process runner together.  A single execution compiles
(where the language needs it) and runs once.  A batch execution
compiles exactly once and then runs the same artifact sequentially for
every stdin payload, returning results in input order.

Compile failures, runtime failures, timeouts and spawn failures are all
reported as :class:`ExecutionResult` values.  The only exception raised
for a well-formed call is :class:`~codesandbox.languages.UnsupportedLanguage`,
which is raised before any workspace or process exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..languages import LanguageDescriptor, LanguageRegistry
from ..workspace import Workspace, WorkspaceManager
from .runner import DEFAULT_TIMEOUT_MS, ProcessOutcome, ProcessRunner

logger = logging.getLogger(__name__)

BATCH_COMPILE_FAILURE_EXIT_CODE = 1


@dataclass
class ExecutionResult:
    """Outcome of one run as returned to callers.

    ``compile_output`` is empty unless compilation failed.
    """

    stdout: str
    stderr: str
    compile_output: str
    exit_code: int
    output_truncated: bool = False

    @classmethod
    def from_outcome(cls, outcome: ProcessOutcome) -> "ExecutionResult":
        return cls(
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            compile_output="",
            exit_code=outcome.exit_code,
            output_truncated=outcome.truncated,
        )

    @classmethod
    def compile_failure(
        cls, message: str, exit_code: int, truncated: bool = False
    ) -> "ExecutionResult":
        return cls(
            stdout="",
            stderr=message,
            compile_output=message,
            exit_code=exit_code,
            output_truncated=truncated,
        )


@dataclass
class _Prepared:
    """Run command for a workspace whose source compiled (or needed no compile)."""

    args: List[str]
    cwd: Path


class ExecutionOrchestrator:
    """Run untrusted source code in per-request workspaces."""

    def __init__(
        self,
        registry: LanguageRegistry,
        workspaces: WorkspaceManager,
        runner: ProcessRunner,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.registry = registry
        self.workspaces = workspaces
        self.runner = runner
        self.timeout_ms = timeout_ms

    def execute_once(self, language: str, code: str, stdin: Optional[str] = "") -> ExecutionResult:
        """Compile (if required) and run ``code`` once with ``stdin``."""
        descriptor = self._resolve(language, code)
        with self.workspaces.session("exec") as workspace:
            logger.info("[execute] START workspace=%s lang=%s", workspace.id, descriptor.name)
            prepared, failure = self._prepare(descriptor, workspace, code)
            if failure is not None:
                logger.info("[execute] compile failed workspace=%s exit=%s", workspace.id, failure.exit_code)
                return ExecutionResult.compile_failure(
                    self._compile_message(failure), failure.exit_code, failure.truncated
                )
            outcome = self.runner.run(prepared.args, stdin, self.timeout_ms, cwd=prepared.cwd)
            logger.info(
                "[execute] DONE workspace=%s exit=%s duration_ms=%s",
                workspace.id,
                outcome.exit_code,
                outcome.duration_ms,
            )
            return ExecutionResult.from_outcome(outcome)

    def execute_batch(
        self, language: str, code: str, inputs: Sequence[Optional[str]]
    ) -> List[ExecutionResult]:
        """Compile ``code`` once and run it for every entry of ``inputs``.

        Runs are strictly sequential and results keep the order of
        ``inputs``.  When compilation fails every entry carries the same
        compile failure and nothing is run.
        """
        descriptor = self._resolve(language, code)
        with self.workspaces.session("batch") as workspace:
            logger.info(
                "[batch] START workspace=%s lang=%s cases=%s",
                workspace.id,
                descriptor.name,
                len(inputs),
            )
            prepared, failure = self._prepare(descriptor, workspace, code)
            if failure is not None:
                logger.info("[batch] compile failed workspace=%s", workspace.id)
                message = self._compile_message(failure)
                return [
                    ExecutionResult.compile_failure(
                        message, BATCH_COMPILE_FAILURE_EXIT_CODE, failure.truncated
                    )
                    for _ in inputs
                ]

            results = []
            for index, stdin in enumerate(inputs):
                outcome = self.runner.run(prepared.args, stdin, self.timeout_ms, cwd=prepared.cwd)
                logger.debug(
                    "[batch] case %s exit=%s duration_ms=%s", index, outcome.exit_code, outcome.duration_ms
                )
                results.append(ExecutionResult.from_outcome(outcome))
            logger.info("[batch] DONE workspace=%s cases=%s", workspace.id, len(results))
            return results

    def _resolve(self, language: str, code: str) -> LanguageDescriptor:
        descriptor = self.registry.resolve(language)
        if not code:
            raise ValueError("code must be a non-empty string")
        return descriptor

    def _prepare(
        self, descriptor: LanguageDescriptor, workspace: Workspace, code: str
    ) -> Tuple[Optional[_Prepared], Optional[ProcessOutcome]]:
        """Write the source and compile it if needed.

        Returns the run command, or the failed compile outcome.
        """
        source_path = self.workspaces.write_source(workspace, descriptor, code)
        if descriptor.requires_compile:
            compile_args = descriptor.compile_command(source_path, workspace.path)
            outcome = self.runner.run(compile_args, "", self.timeout_ms, cwd=workspace.path)
            if outcome.exit_code != 0:
                return None, outcome
        run_args = descriptor.run_command(source_path, workspace.path, descriptor.entry_point(code))
        return _Prepared(args=run_args, cwd=workspace.path), None

    @staticmethod
    def _compile_message(outcome: ProcessOutcome) -> str:
        return outcome.stderr or outcome.stdout
