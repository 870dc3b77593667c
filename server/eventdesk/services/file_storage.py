from __future__ import annotations

import asyncio
from pathlib import Path

from eventdesk.core.logging import get_logger
from eventdesk.services.exceptions import FileUnavailable

logger = get_logger(__name__)


class LocalFileStorage:
    """Resolves contract file references to files under a single upload root."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def resolve(self, file_reference: str) -> Path:
        # References are stored as "/uploads/contracts/<name>" or "contracts/<name>".
        relative = file_reference.lstrip("/")
        if relative.startswith(f"{self.root.name}/"):
            relative = relative[len(self.root.name) + 1:]
        candidate = (self.root / relative).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise FileUnavailable(file_reference, "reference points outside the upload directory")
        return candidate

    async def read(self, file_reference: str) -> bytes:
        if not file_reference or not file_reference.strip():
            raise FileUnavailable(file_reference or "", "contract has no file reference")
        path = self.resolve(file_reference)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            logger.error("file_storage.read_failed", file_reference=file_reference, error=str(exc))
            raise FileUnavailable(file_reference, exc.strerror or str(exc)) from exc
