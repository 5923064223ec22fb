"""Per-task working directories."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Union


class WorkspaceManager:
    """Creates, fills and removes work directories under a base path."""

    def __init__(self, base_path: str) -> None:
        self.base_path = base_path

    def create(self, provider: str, region: str, resource_id: str, task_id: str) -> str:
        """Create the work directory for a task and return its path."""
        path = self.gen_path(provider, region, resource_id, task_id)
        os.makedirs(path, mode=0o755, exist_ok=True)
        return path

    def gen_path(self, provider: str, region: str, resource_id: str, task_id: str) -> str:
        return os.path.join(self.base_path, provider, region, resource_id, task_id)

    def clean(self, path: str) -> None:
        """Remove ``path`` and everything under it; a missing path is not an error."""
        if path in ("", "/"):
            raise ValueError("invalid path")
        target = Path(path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()

    def write_file(self, directory: str, filename: str, content: Union[bytes, str]) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        path = Path(directory, filename)
        path.write_bytes(data)
        os.chmod(path, 0o644)

    def read_file(self, directory: str, filename: str) -> bytes:
        return Path(directory, filename).read_bytes()

    def exists(self, path: str) -> bool:
        return os.path.exists(path)