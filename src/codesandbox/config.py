"""Configuration loader.

The code execution service reads its configuration from environment
variables so that the same image can run locally and in production.
Defaults reproduce the reference behaviour: a 10 second limit for every
compile and run step, 50,000 characters of stdout and 10,000 characters
of stderr.

Environment variables:

``CODESANDBOX_API_KEY``
    Shared secret expected in the ``x-api-key`` header.  When empty, no
    authentication is performed.

``CODESANDBOX_WORKSPACE_ROOT``
    Directory under which per-request workspaces are created.  Defaults to
    the platform temporary directory.

``CODESANDBOX_ALLOWED_LANGS``
    Comma-separated list of enabled languages.  Defaults to every built-in
    language (``python,javascript,c,cpp,java``).

``CODESANDBOX_PYTHON``
    Interpreter used for the ``python`` language.  Defaults to ``python3``.

``CODESANDBOX_TIMEOUT_MS``
    Wall-clock timeout in milliseconds applied to each compile and run
    step.  Default is 10000.

``CODESANDBOX_MAX_STDOUT_CHARS`` / ``CODESANDBOX_MAX_STDERR_CHARS``
    Output caps.  Defaults are 50000 and 10000.

``CODESANDBOX_LOG_LEVEL``
    Log level name for the ``codesandbox`` logger.  Defaults to ``INFO``.

``HOST`` / ``PORT``
    Address the API server listens on.  Defaults to ``0.0.0.0:8080``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from .executor.runner import DEFAULT_MAX_STDERR_CHARS, DEFAULT_MAX_STDOUT_CHARS, DEFAULT_TIMEOUT_MS
from .languages import LanguageRegistry, UnsupportedLanguage, default_registry


def _int_var(name: str, default: int, minimum: int = 1) -> int:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        number = int(val)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {val}")
    if number < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {number}")
    return number


@dataclass
class Config:
    """Centralised configuration object."""

    api_key: str
    workspace_root: Optional[str]
    allowed_langs: List[str]
    python_interpreter: str
    timeout_ms: int
    max_stdout_chars: int
    max_stderr_chars: int
    log_level: str
    host: str
    port: int

    @classmethod
    def load(cls) -> "Config":
        api_key = os.getenv("CODESANDBOX_API_KEY", "")
        workspace_root = os.getenv("CODESANDBOX_WORKSPACE_ROOT") or None

        allowed_env = os.getenv("CODESANDBOX_ALLOWED_LANGS", "")
        allowed_langs = [lang.strip().lower() for lang in allowed_env.split(",") if lang.strip()]
        if not allowed_langs:
            allowed_langs = default_registry().supported

        log_level = os.getenv("CODESANDBOX_LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Invalid CODESANDBOX_LOG_LEVEL: {log_level}")

        config = cls(
            api_key=api_key,
            workspace_root=workspace_root,
            allowed_langs=allowed_langs,
            python_interpreter=os.getenv("CODESANDBOX_PYTHON", "python3"),
            timeout_ms=_int_var("CODESANDBOX_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            max_stdout_chars=_int_var("CODESANDBOX_MAX_STDOUT_CHARS", DEFAULT_MAX_STDOUT_CHARS),
            max_stderr_chars=_int_var("CODESANDBOX_MAX_STDERR_CHARS", DEFAULT_MAX_STDERR_CHARS),
            log_level=log_level,
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_var("PORT", 8080),
        )
        # Fail at start-up rather than on the first request.
        config.build_registry()
        return config

    @classmethod
    def from_env(cls) -> "Config":
        """
        Alternate constructor used by the API to load configuration.

        This wrapper calls :meth:`load` to construct the configuration.
        """
        return cls.load()

    def build_registry(self) -> LanguageRegistry:
        """Return the built-in registry limited to ``allowed_langs``."""
        try:
            return default_registry(self.python_interpreter).restrict(self.allowed_langs)
        except UnsupportedLanguage as exc:
            raise ValueError(f"Invalid CODESANDBOX_ALLOWED_LANGS: {exc}") from None
