"""Background job submission and polling over a result store."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor

from vibecode.errors import ValidationError
from vibecode.jobs.functions import JobFunction
from vibecode.jobs.store import ResultStore

LOGGER = logging.getLogger(__name__)


class JobRunner:
    """Runs job functions on a thread pool; callers poll the store for results."""

    def __init__(
        self,
        *,
        handlers: Mapping[str, JobFunction],
        store: ResultStore,
        max_workers: int = 4,
    ) -> None:
        self.handlers = dict(handlers)
        self.store = store
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="job")
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    def send(
        self,
        name: object,
        data: object,
        event_id: str | None = None,
    ) -> Future[dict[str, object]]:
        """Validate and schedule one event.

        ``event_id`` defaults to ``data["eventId"]``. A job id that is still
        running is rejected rather than run twice.
        """
        if not name or not data:
            raise ValidationError("Missing name or data")
        if not isinstance(name, str) or name not in self.handlers:
            raise ValidationError(f"Unknown event name: {name}")
        if not isinstance(data, Mapping):
            raise ValidationError("Event data must be an object")

        payload = dict(data)
        job_id = event_id or payload.get("eventId")
        if not isinstance(job_id, str) or not job_id.strip():
            raise ValidationError("Missing 'eventId' in event data")
        payload["eventId"] = job_id

        with self._lock:
            if job_id in self._in_flight:
                raise ValidationError(f"Job {job_id} is already running")
            self._in_flight.add(job_id)

        LOGGER.info("event_sent", extra={"event_name": name, "job_id": job_id})
        future = self._executor.submit(self.handlers[name], payload)
        future.add_done_callback(lambda done: self._finish(job_id, done))
        return future

    def get_result(self, event_id: str | None) -> dict[str, object]:
        if not event_id or not event_id.strip():
            return {"error": "Missing eventId", "status": "failed"}
        return self.store.poll(event_id)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _finish(self, job_id: str, future: Future[dict[str, object]]) -> None:
        with self._lock:
            self._in_flight.discard(job_id)
        exc = future.exception()
        if exc is not None:
            # The job function has already recorded the failure in the store.
            LOGGER.warning("job_run_failed", extra={"job_id": job_id, "error": str(exc)})
