"""Background execution of sheet jobs with a streamed progress channel.

A :class:`SheetWorker` runs :func:`sheet_studio.pipeline.run_job` on a
single background thread.  Every submission gets its own
:class:`SheetJob`, a one-way queue that delivers zero or more progress
messages followed by exactly one ``result`` or ``error`` message.

Only one job may be in flight; a second submission is rejected with
:class:`JobInProgressError` rather than queued.
"""
from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterator, NamedTuple, Optional, Sequence

from .errors import JobInProgressError, SheetStudioError
from .loader import RawFrame
from .pipeline import ProcessResult, ProgressCallback, run_job
from .settings import Settings

logger = logging.getLogger(__name__)

PROGRESS = "progress"
RESULT = "result"
ERROR = "error"


class JobMessage(NamedTuple):
    kind: str
    text: str = ""
    payload: Any = None

    @property
    def terminal(self) -> bool:
        return self.kind in (RESULT, ERROR)


class SheetJob:
    """Consumer side of one submitted job."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[JobMessage]" = queue.Queue()
        self._finished = threading.Event()
        self._terminal: Optional[JobMessage] = None

    def _put(self, message: JobMessage) -> None:
        if message.terminal:
            self._finished.set()
        self._queue.put(message)

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def messages(self) -> Iterator[JobMessage]:
        """Yield messages in order; the terminal message is the last one."""

        if self._terminal is not None:
            yield self._terminal
            return
        while True:
            message = self._queue.get()
            if message.terminal:
                self._terminal = message
            yield message
            if message.terminal:
                return

    def result(self, on_progress: Optional[ProgressCallback] = None) -> ProcessResult:
        """Block until the job ends; return its result or raise its error."""

        for message in self.messages():
            if message.kind == PROGRESS:
                if on_progress is not None:
                    on_progress(message.text)
            elif message.kind == RESULT:
                return message.payload
            else:
                raise message.payload
        raise RuntimeError("job channel closed without a terminal message")  # pragma: no cover


class SheetWorker:
    """Lazily started single-thread runner for sheet jobs."""

    def __init__(self) -> None:
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._active: Optional[SheetJob] = None

    @property
    def started(self) -> bool:
        return self._executor is not None

    @property
    def busy(self) -> bool:
        return self._active is not None and not self._active.finished

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            logger.debug("Starting sheet worker thread")
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sheet-worker")
        return self._executor

    def submit(self, sources: Sequence[RawFrame], settings: Settings) -> SheetJob:
        with self._lock:
            if self.busy:
                raise JobInProgressError("A sprite sheet is already being generated; wait for it to finish.")
            job = SheetJob()
            self._active = job
            self._ensure_executor().submit(self._run, job, list(sources), settings)
        logger.info("Submitted sheet job with %d frame(s)", len(sources))
        return job

    def _run(self, job: SheetJob, sources: Sequence[RawFrame], settings: Settings) -> None:
        def _progress(text: str) -> None:
            job._put(JobMessage(PROGRESS, text))

        try:
            result = run_job(sources, settings, on_progress=_progress)
        except SheetStudioError as exc:
            logger.warning("Sheet job failed: %s", exc)
            job._put(JobMessage(ERROR, str(exc), exc))
        except Exception as exc:
            logger.exception("Sheet job crashed")
            job._put(JobMessage(ERROR, str(exc) or exc.__class__.__name__, exc))
        else:
            job._put(JobMessage(RESULT, payload=result))

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            logger.debug("Stopping sheet worker thread")
            executor.shutdown(wait=wait)


class StudioSession:
    """Top-level state of one interactive session.

    Owns the background worker (created on first submission, stopped by
    :meth:`close`) and the most recent successful result.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings
        self.result: Optional[ProcessResult] = None
        self._worker: Optional[SheetWorker] = None

    @property
    def worker(self) -> SheetWorker:
        if self._worker is None:
            self._worker = SheetWorker()
        return self._worker

    def submit(self, sources: Sequence[RawFrame], settings: Settings) -> SheetJob:
        settings.validate()
        self.settings = settings
        return self.worker.submit(sources, settings)

    def generate(
        self,
        sources: Sequence[RawFrame],
        settings: Settings,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ProcessResult:
        """Submit a job and wait for it; keeps the result on success.

        A failed job leaves the previous result untouched.
        """

        result = self.submit(sources, settings).result(on_progress)
        self.result = result
        return result

    def close(self) -> None:
        if self._worker is not None:
            self._worker.shutdown()
            self._worker = None

    def __enter__(self) -> "StudioSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "ERROR",
    "JobMessage",
    "PROGRESS",
    "RESULT",
    "SheetJob",
    "SheetWorker",
    "StudioSession",
]
