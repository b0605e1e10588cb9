"""Job lifecycle: single-flight coordinator and cooperative cancellation."""

import enum
import logging
import threading
import traceback
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from shortforge.manifest import JobRequest

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Video generation was cancelled."


class JobCancelled(Exception):
    """Raised at a checkpoint once cancellation has been requested."""

    def __init__(self, checkpoint: str = "") -> None:
        super().__init__(CANCELLED_MESSAGE)
        self.checkpoint = checkpoint


class JobAlreadyRunning(RuntimeError):
    pass


class JobState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"


class CancellationToken:
    """Cancellation flag handed to every stage of one job."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, checkpoint: str = "") -> None:
        if self._event.is_set():
            logger.info("cancellation observed at %s", checkpoint or "checkpoint")
            raise JobCancelled(checkpoint)


@dataclass
class JobResponse:
    status: str
    message: str
    data: Any = None
    stacktrace: str | None = None

    @classmethod
    def success(cls, message: str, data: Any = None) -> "JobResponse":
        return cls(status="success", message=message, data=data)

    @classmethod
    def error(cls, message: str, stacktrace: str | None = None) -> "JobResponse":
        return cls(status="error", message=message, stacktrace=stacktrace)

    def to_dict(self) -> dict:
        d = {"status": self.status, "message": self.message, "data": self.data}
        if self.stacktrace is not None:
            d["stacktrace"] = self.stacktrace
        return d


JobRunner = Callable[[JobRequest, CancellationToken], Path]


class JobCoordinator:
    """Owns the job state; at most one job runs at a time.

    ``start`` rejects a second job outright instead of queueing it. Jobs run
    on a dedicated worker thread and their outcome is always a JobResponse.
    """

    def __init__(self, runner: JobRunner) -> None:
        self._runner = runner
        self._lock = threading.Lock()
        self._state = JobState.IDLE
        self._token: CancellationToken | None = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="shortforge-job")
        self.last_response: JobResponse | None = None

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._state

    def snapshot(self) -> tuple[JobState, JobResponse | None]:
        """State and last response, read together."""
        with self._lock:
            return self._state, self.last_response

    def start(self, request: JobRequest) -> "Future[JobResponse]":
        request.validate()
        with self._lock:
            if self._state is not JobState.IDLE:
                raise JobAlreadyRunning(f"a job is already {self._state.value}")
            self._state = JobState.RUNNING
            token = self._token = CancellationToken()

        logger.info("starting job: %s", request.video_subject)
        return self._executor.submit(self._execute, request, token)

    def run(self, request: JobRequest) -> JobResponse:
        """Start a job and wait for its response."""
        return self.start(request).result()

    def cancel(self) -> bool:
        """Ask the running job to stop at its next checkpoint."""
        with self._lock:
            if self._state is not JobState.RUNNING or self._token is None:
                return False
            self._state = JobState.CANCELLING
            self._token.cancel()
        logger.info("cancellation requested")
        return True

    def shutdown(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=True)

    def _execute(self, request: JobRequest, token: CancellationToken) -> JobResponse:
        try:
            output = self._runner(request, token)
            response = JobResponse.success(
                f"Video generated! See {output} for result.", data=str(output)
            )
        except JobCancelled as e:
            logger.info("job cancelled at %s", e.checkpoint or "checkpoint")
            response = JobResponse.error(CANCELLED_MESSAGE)
        except Exception as e:
            logger.exception("job failed")
            response = JobResponse.error(str(e), stacktrace=traceback.format_exc())

        # Publish the response before another job can start.
        with self._lock:
            self.last_response = response
            self._state = JobState.IDLE
            self._token = None
        return response
