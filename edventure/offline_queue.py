"""Local queue of exam records waiting to reach the backend."""
import logging
from threading import Lock
from typing import Callable, Dict, List

from pydantic import ValidationError

import engine
from edventure.models import OfflineExam
from edventure.storage import KeyValueStore

logger = logging.getLogger(__name__)


class OfflineExamQueue:
    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = Lock()

    def _load(self) -> List[OfflineExam]:
        entries = []
        for raw in self.store.get(engine.OFFLINE_QUEUE_KEY, []) or []:
            try:
                entries.append(OfflineExam.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Dropping malformed offline exam entry: {e}")
        return entries

    def _save(self, entries: List[OfflineExam]) -> None:
        if entries:
            self.store.set(engine.OFFLINE_QUEUE_KEY, [entry.model_dump(mode="json") for entry in entries])
        else:
            self.store.delete(engine.OFFLINE_QUEUE_KEY)

    def enqueue(self, entry: OfflineExam) -> None:
        with self._lock:
            entries = [e for e in self._load() if e.record.id != entry.record.id]
            entries.append(entry)
            self._save(entries)
        logger.info(f"Queued exam {entry.record.id} offline ({len(entries)} pending)")

    def pending(self) -> List[OfflineExam]:
        with self._lock:
            return self._load()

    def remove(self, exam_id: str) -> None:
        with self._lock:
            self._save([e for e in self._load() if e.record.id != exam_id])

    def drain(self, persist: Callable[[OfflineExam], None]) -> Dict[str, int]:
        """
        Persist each queued exam; remove only the ones that succeed.

        Returns {synced, failed, remaining}.
        """
        synced = failed = 0
        for entry in self.pending():
            try:
                persist(entry)
            except Exception as e:
                failed += 1
                logger.warning(f"Failed to sync exam {entry.record.id}: {e}")
                continue
            self.remove(entry.record.id)
            synced += 1
            logger.info(f"Synced exam {entry.record.id}")
        return {"synced": synced, "failed": failed, "remaining": len(self.pending())}
