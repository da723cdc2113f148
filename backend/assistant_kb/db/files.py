"""Local file storage for uploaded documents."""

from __future__ import annotations

import re
import uuid
from pathlib import Path, PurePosixPath

from assistant_kb.utils.time import now_ms

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


class FileStorage:
    """Stores uploads under ``knowledge/<owner>/<timestamp>_<token>_<name>``.

    Paths handed out are relative POSIX strings; they are what the documents
    table records as ``storage_path``.
    """

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser()

    def save(self, owner_id: str, file_name: str, data: bytes) -> str:
        # Same-millisecond uploads of one name still get distinct paths.
        stored_name = f"{now_ms()}_{uuid.uuid4().hex[:8]}_{_safe(file_name)}"
        relative = PurePosixPath("knowledge", _safe(owner_id), stored_name)
        target = self._resolve(str(relative))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return str(relative)

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def delete(self, path: str) -> bool:
        """Remove ``path``; returns False when it was already gone."""
        target = self._resolve(path)
        if not target.exists():
            return False
        target.unlink()
        return True

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        target = (root / path).resolve()
        if root != target and root not in target.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return target


def _safe(name: str) -> str:
    cleaned = _UNSAFE_RE.sub("_", name).strip("._")
    return cleaned or "file"


__all__ = ["FileStorage"]
