"""Code execution sandbox package.

This package runs untrusted source code in one of several languages,
compiling it where necessary, under a wall-clock timeout and returns the
captured output.  Each request gets its own temporary workspace which is
removed when the request finishes.

The top-level modules include:

* ``languages`` – the language registry and entry-point resolution.
* ``workspace`` – per-request temporary directories.
* ``executor`` – the process runner and the compile/run orchestrator.
* ``config`` – configuration handling for environment variables.
* ``models`` – Pydantic models defining request and response schemas.
* ``api`` – FastAPI application exposing HTTP endpoints.
"""

__version__ = "0.1.0"
