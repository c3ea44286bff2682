"""Job result store read by pollers."""

from __future__ import annotations

import abc
import logging
import threading

from vibecode.agent.models import JobRecord

LOGGER = logging.getLogger(__name__)

PENDING_PAYLOAD: dict[str, object] = {"status": "pending"}


class ResultStore(abc.ABC):
    """Key-value store from job id to its terminal record."""

    @abc.abstractmethod
    def get(self, job_id: str) -> JobRecord | None:
        """Return the record for ``job_id`` or ``None`` when it is still pending."""

    @abc.abstractmethod
    def set(self, job_id: str, record: JobRecord) -> None:
        """Store the terminal record for ``job_id``; the last write wins."""

    def poll(self, job_id: str) -> dict[str, object]:
        """Polling payload: ``{"status": "pending"}`` until a record exists."""
        record = self.get(job_id)
        if record is None:
            return dict(PENDING_PAYLOAD)
        return record.to_dict()


class InMemoryResultStore(ResultStore):
    """Process-local store; records live until the process exits."""

    def __init__(self) -> None:
        self._records: dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def get(self, job_id: str) -> JobRecord | None:
        with self._lock:
            return self._records.get(job_id)

    def set(self, job_id: str, record: JobRecord) -> None:
        with self._lock:
            replaced = job_id in self._records
            self._records[job_id] = record
        LOGGER.info(
            "job_record_written",
            extra={"job_id": job_id, "status": record.status, "replaced": replaced},
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
