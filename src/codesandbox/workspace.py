"""Ephemeral per-request workspaces.

Every execution request (single or batch) gets its own directory under a
base directory, by default the platform's temporary-files root.  The
directory name embeds a freshly generated UUID so concurrent requests
never share a workspace and no locking is needed between them.

Workspaces must not outlive the request.  :meth:`WorkspaceManager.session`
pairs acquisition and release so the directory is removed on every exit
path, including early returns and exceptions.  Release never raises.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from .languages import LanguageDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    """A directory exclusively owned by one execution request."""

    id: str
    path: Path


class WorkspaceManager:
    """Create and destroy workspaces below ``base_dir``."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        self.base_dir = Path(base_dir or tempfile.gettempdir())
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def acquire(self, prefix: str = "exec") -> Workspace:
        workspace_id = uuid.uuid4().hex
        path = self.base_dir / f"{prefix}_{workspace_id}"
        # exist_ok=False: a name collision must never hand out a shared directory
        path.mkdir(mode=0o700)
        logger.debug("Acquired workspace %s", path)
        return Workspace(id=workspace_id, path=path)

    def release(self, workspace: Workspace) -> None:
        try:
            shutil.rmtree(workspace.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Workspace cleanup failed for %s: %s", workspace.path, exc)
            # Remove whatever can still be removed.
            shutil.rmtree(workspace.path, ignore_errors=True)
        else:
            logger.debug("Released workspace %s", workspace.path)

    @contextmanager
    def session(self, prefix: str = "exec") -> Iterator[Workspace]:
        workspace = self.acquire(prefix)
        try:
            yield workspace
        finally:
            self.release(workspace)

    def write_source(
        self, workspace: Workspace, descriptor: LanguageDescriptor, source: str
    ) -> Path:
        """Write ``source`` into ``workspace`` and return its path.

        Languages with an entry point (Java) name the file after the
        declared public class; everything else uses ``main.<ext>``.
        """
        dest = workspace.path / descriptor.source_filename(source)
        dest.write_text(source, encoding="utf-8")
        return dest
