"""HTTP boundary of the sandbox.

``main`` builds the FastAPI ``app`` and wires it to an orchestrator
configured from the environment; ``__main__`` serves it with Uvicorn
(``python -m codesandbox.api``).
"""

from .main import app

__all__ = ["app"]
