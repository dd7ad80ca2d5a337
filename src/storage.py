# storage.py
# Durable scalars that survive between games: the best score and the mute flag.

from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging

logger = logging.getLogger(__name__)

BEST_SCORE_KEY = "2048_best_score"
MUTED_KEY = "2048_muted"

class MemoryStore:
    """Key/value store kept in memory. Last write wins."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

class JsonFileStore(MemoryStore):
    """
    Key/value store backed by a single JSON object on disk.
    The file is rewritten on every `set`. A missing or unreadable file is
    treated as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        super().__init__(self._read())

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable store %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring store %s: expected a JSON object", self.path)
            return {}
        return data

    def set(self, key: str, value: Any) -> None:
        super().set(key, value)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Dumped to a sibling file, then swapped into place.
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(self._values, f)
            tmp_path.replace(self.path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

def load_best_score(store: MemoryStore) -> int:
    """Reads the best score, falling back to 0 for absent or malformed values."""
    try:
        return max(0, int(store.get(BEST_SCORE_KEY, 0)))
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed best score %r", store.get(BEST_SCORE_KEY))
        return 0

def save_best_score(store: MemoryStore, score: int) -> None:
    store.set(BEST_SCORE_KEY, score)
