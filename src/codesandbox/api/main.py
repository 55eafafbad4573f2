"""
FastAPI application for the code execution service.

This module configures the FastAPI application, wires the language
registry, workspace manager and process runner into an
:class:`~codesandbox.executor.ExecutionOrchestrator`, and registers the
``/execute`` and ``/batch`` endpoints.  An API key is enforced when one
is configured.

Handlers are plain ``def`` functions: FastAPI runs them in its
threadpool, so a long compile or run blocks only its own request.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import Config
from ..executor import ExecutionOrchestrator, ProcessRunner
from ..languages import UnsupportedLanguage
from ..models import BatchRequest, BatchResponse, ExecuteRequest, ExecuteResponse
from ..workspace import WorkspaceManager


logger = logging.getLogger("codesandbox")

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[codesandbox] %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


config = Config.from_env()
logger.setLevel(config.log_level)

orchestrator = ExecutionOrchestrator(
    registry=config.build_registry(),
    workspaces=WorkspaceManager(config.workspace_root),
    runner=ProcessRunner(
        max_stdout_chars=config.max_stdout_chars,
        max_stderr_chars=config.max_stderr_chars,
    ),
    timeout_ms=config.timeout_ms,
)

logger.info(
    "Loaded config: languages=%s, workspace_root=%s, timeout_ms=%s, stdout_cap=%s, stderr_cap=%s",
    orchestrator.registry.supported,
    orchestrator.workspaces.base_dir,
    config.timeout_ms,
    config.max_stdout_chars,
    config.max_stderr_chars,
)


app = FastAPI(title="Code Execution Sandbox", version="0.1.0")


@app.middleware("http")
async def authenticate(request: Request, call_next):
    """Middleware to enforce API key authentication when a key is configured."""
    path = request.url.path
    method = request.method
    client = getattr(request.client, "host", "unknown")

    logger.debug("Incoming request: %s %s from %s", method, path, client)

    if config.api_key and request.headers.get("x-api-key") != config.api_key:
        logger.warning("Invalid API key for %s %s from %s", method, path, client)
        return JSONResponse(status_code=401, content={"detail": "Invalid API key"})

    response = await call_next(request)
    logger.info("Response: %s %s -> %s", method, path, response.status_code)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies as 400 instead of FastAPI's default 422."""
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request body", "errors": jsonable_encoder(exc.errors())},
    )


@app.get("/health")
def health() -> Dict[str, Any]:
    """Return a simple health check response."""
    return {
        "status": "ok",
        "service": "code-executor",
        "languages": orchestrator.registry.supported,
    }


@app.post("/execute", response_model=ExecuteResponse, response_model_exclude_none=True)
def execute(req: ExecuteRequest) -> ExecuteResponse:
    """Compile (if needed) and run code once against ``stdin``."""
    if not req.language or not req.code:
        raise HTTPException(status_code=400, detail="language and code are required")

    try:
        result = orchestrator.execute_once(req.language, req.code, req.stdin or "")
    except UnsupportedLanguage as exc:
        logger.warning("[/execute] %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.exception("[/execute] Unhandled error during execution: %s", exc)
        raise HTTPException(status_code=500, detail=f"Internal execution error: {exc}")

    return ExecuteResponse.from_result(result)


@app.post("/batch", response_model=BatchResponse, response_model_exclude_none=True)
def batch(req: BatchRequest) -> BatchResponse:
    """Compile once and run the program for every entry of ``inputs``."""
    if not req.language or not req.code or req.inputs is None:
        raise HTTPException(status_code=400, detail="language, code, and inputs[] are required")

    try:
        results = orchestrator.execute_batch(req.language, req.code, req.inputs)
    except UnsupportedLanguage as exc:
        logger.warning("[/batch] %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.exception("[/batch] Unhandled error during batch execution: %s", exc)
        raise HTTPException(status_code=500, detail=f"Internal batch execution error: {exc}")

    return BatchResponse(results=[ExecuteResponse.from_result(result) for result in results])
