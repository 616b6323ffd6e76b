"""
POSTUREFIT Result Storage

Local JSON history of exercise results (Firestore fallback).
Newest result first, capped at RESULT_HISTORY_LIMIT entries.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Any

from core.config import settings

# Configure logging
logger = logging.getLogger(__name__)


class LocalResultStore:
    """
    File-backed result history.

    Stores results in <media>/results/history.json so they can be listed
    without a database connection.
    """

    HISTORY_FILENAME = "history.json"

    def __init__(self, base_path: str = None, limit: int = None):
        """
        Initialize local result store.

        Args:
            base_path: Base directory for storage. Defaults to LOCAL_MEDIA_PATH
            limit: Maximum results kept. Defaults to RESULT_HISTORY_LIMIT
        """
        if base_path is None:
            self.base_path = Path(__file__).parent.parent / settings.LOCAL_MEDIA_PATH
        else:
            self.base_path = Path(base_path)

        self.limit = limit or settings.RESULT_HISTORY_LIMIT
        self._ensure_directories()

        logger.info(f"📁 LocalResultStore initialized at: {self.history_path}")

    @property
    def history_path(self) -> Path:
        return self.base_path / "results" / self.HISTORY_FILENAME

    def _ensure_directories(self):
        """Create required directory structure."""
        self.history_path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> List[Dict[str, Any]]:
        if not self.history_path.exists():
            return []
        try:
            data = json.loads(self.history_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"❌ Corrupt result history at {self.history_path}: {e}")
            return []
        return data if isinstance(data, list) else []

    def save(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Prepend a result record and trim history to the limit."""
        history = [record] + self._read()
        history = history[:self.limit]

        tmp_path = self.history_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(history, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self.history_path)

        logger.info(f"💾 Saved result for '{record.get('exerciseId')}' ({len(history)} in history)")
        return record

    def list(self, limit: Optional[int] = None, exercise_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Stored results, newest first."""
        history = self._read()
        if exercise_id:
            history = [r for r in history if r.get("exerciseId") == exercise_id]
        return history[:limit] if limit else history

    def clear(self):
        if self.history_path.exists():
            self.history_path.unlink()


# ============================================
# Global Instance
# ============================================

_result_store: Optional[Any] = None


def get_result_store():
    """
    Get the global result store.

    RESULT_STORE=firestore uses Firestore (in-memory mock when Firebase is
    unavailable); anything else uses the local JSON history.
    """
    global _result_store

    if _result_store is None:
        if settings.RESULT_STORE == "firestore":
            from core.database import FirestoreResultStore
            _result_store = FirestoreResultStore()
        else:
            _result_store = LocalResultStore()

    return _result_store
