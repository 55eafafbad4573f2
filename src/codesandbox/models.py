"""Pydantic models for request and response bodies.

Field names follow the contract expected by the submission and "try
run" workflows: ``compile_output`` is snake case while the exit status
is exposed as ``exitCode``.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .executor import ExecutionResult


class ExecuteRequest(BaseModel):
    """Request body for a single execution."""

    language: Optional[str] = Field(default=None, description="Language identifier, e.g. 'python'.")
    code: Optional[str] = Field(default=None, description="Source code to execute.")
    stdin: Optional[str] = Field(default="", description="Standard input to pass to the program.")


class BatchRequest(BaseModel):
    """Request body for compiling once and running against many inputs."""

    language: Optional[str] = None
    code: Optional[str] = None
    inputs: Optional[List[str]] = Field(
        default=None, description="One stdin payload per run, in order."
    )


class ExecuteResponse(BaseModel):
    """Result of one run."""

    model_config = ConfigDict(populate_by_name=True)

    stdout: str
    stderr: str
    compile_output: str = ""
    exit_code: int = Field(..., alias="exitCode")
    output_truncated: Optional[bool] = None

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecuteResponse":
        return cls(
            stdout=result.stdout,
            stderr=result.stderr,
            compile_output=result.compile_output,
            exit_code=result.exit_code,
            # Only reported when a stream hit its cap.
            output_truncated=True if result.output_truncated else None,
        )


class BatchResponse(BaseModel):
    """Results of a batch execution, one per input in input order."""

    results: List[ExecuteResponse] = Field(default_factory=list)
