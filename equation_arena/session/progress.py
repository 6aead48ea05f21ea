"""
Progress Store - The one piece of progress kept between runs.

The store:
- Holds a single JSON document on local disk
- Records whether crafter normal mode has been completed
- Is optional (a session without a path keeps progress in memory)

Read and write failures are logged and treated as "not completed"; losing
the flag only means the tutorial is shown again.
"""

from __future__ import annotations
import json
from pathlib import Path

from ..core.logging import get_logger

logger = get_logger(__name__)

CRAFTER_NORMAL_COMPLETED_KEY = "crafterNormalCompleted"


class ProgressStore:
    """
    File-backed progress flags.

    Usage:
        progress = ProgressStore("~/.equation_arena/progress.json")
        if progress.crafter_normal_completed():
            ...
        progress.mark_crafter_normal_completed()
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path).expanduser() if path is not None else None
        self._memory: dict = {}

    def load(self) -> dict:
        """Return the stored document (empty when missing or unreadable)."""
        if self.path is None:
            return dict(self._memory)
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("progress_load_failed", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("progress_document_invalid", path=str(self.path))
            return {}
        return data

    def save(self, data: dict) -> bool:
        """Write the document; returns False if it could not be written."""
        if self.path is None:
            self._memory = dict(data)
            return True
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("progress_save_failed", path=str(self.path), error=str(e))
            return False
        return True

    def crafter_normal_completed(self) -> bool:
        return bool(self.load().get(CRAFTER_NORMAL_COMPLETED_KEY, False))

    def mark_crafter_normal_completed(self) -> bool:
        data = self.load()
        if data.get(CRAFTER_NORMAL_COMPLETED_KEY) is True:
            return True
        data[CRAFTER_NORMAL_COMPLETED_KEY] = True
        logger.info("crafter_normal_completed_saved", path=str(self.path) if self.path else None)
        return self.save(data)

    def clear(self) -> None:
        """Forget all progress."""
        if self.path is None:
            self._memory = {}
        elif self.path.exists():
            self.path.unlink()
