"""
Scheduler Service
Tracks per-collector run results for the status endpoint
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class CollectorStatus:
    last_run: Optional[datetime] = None
    last_result: Optional[int] = None
    last_error: Optional[str] = None
    next_run: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            'last_run': _iso(self.last_run),
            'last_result': self.last_result,
            'last_error': self.last_error,
            'next_run': _iso(self.next_run),
        }


class SchedulerService:
    """
    In-memory operation log for the collectors.
    Status is transient and rebuilt from the next cycle after a restart.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._statuses: Dict[str, CollectorStatus] = {name: CollectorStatus() for name in names}

    def register(self, name: str):
        with self._lock:
            self._statuses.setdefault(name, CollectorStatus())

    def log_operation_complete(self, name: str, finished_at: datetime,
                               result: Optional[int], error: Optional[str] = None,
                               next_run: Optional[datetime] = None):
        """Record the outcome of one collector run"""
        with self._lock:
            status = self._statuses.setdefault(name, CollectorStatus())
            status.last_run = finished_at
            status.last_result = result
            status.last_error = error
            if next_run is not None:
                status.next_run = next_run

        if error:
            logger.error(f"[Collector:{name}] Run failed: {error}")
        else:
            logger.info(f"[Collector:{name}] Completed: {result} records")

    def set_next_run(self, name: str, next_run: Optional[datetime]):
        with self._lock:
            self._statuses.setdefault(name, CollectorStatus()).next_run = next_run

    def get_status(self, enabled: bool) -> Dict:
        with self._lock:
            collectors = {name: status.to_dict() for name, status in self._statuses.items()}
        return {'enabled': enabled, 'collectors': collectors}

    def clear_next_runs(self):
        with self._lock:
            for status in self._statuses.values():
                status.next_run = None
