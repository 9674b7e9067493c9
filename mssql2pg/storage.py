"""Job storage."""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models.migration import MigrationJob


class JobStore(ABC):
    """Keyed storage for migration jobs."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[MigrationJob]:
        pass

    @abstractmethod
    def set(self, job_id: str, job: MigrationJob) -> None:
        pass

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        """Remove a job; returns False if it was not stored."""
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        """Job ids in insertion order."""
        pass


class InMemoryJobStore(JobStore):
    """
    Process-local job store.

    Jobs live as long as the process; nothing is persisted.
    """

    def __init__(self):
        self._jobs: Dict[str, MigrationJob] = {}
        self._lock = threading.Lock()

    def get(self, job_id: str) -> Optional[MigrationJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def set(self, job_id: str, job: MigrationJob) -> None:
        with self._lock:
            self._jobs[job_id] = job

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._jobs)
