"""
Execution backends for the code execution API.

``runner`` launches a single process with a timeout and bounded output
capture.  ``orchestrator`` builds on it to compile source code once and
run it for one or many stdin payloads inside a per-request workspace.
New languages are added to the registry in ``codesandbox.languages``;
no executor changes are required.
"""

from .orchestrator import ExecutionOrchestrator, ExecutionResult
from .runner import (
    TIMEOUT_EXIT_CODE,
    TIMEOUT_MESSAGE,
    ProcessOutcome,
    ProcessRunner,
)

__all__ = [
    "ExecutionOrchestrator",
    "ExecutionResult",
    "ProcessOutcome",
    "ProcessRunner",
    "TIMEOUT_EXIT_CODE",
    "TIMEOUT_MESSAGE",
]
