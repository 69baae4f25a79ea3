"""
Bounded background queue for new-request processing.

Intake code submits request ids instead of spawning detached coroutines;
a fixed pool of workers drains the queue and every job keeps its own
status, so completions and failures can be inspected afterwards.
"""

import asyncio
import enum
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Optional, Dict, List

from pydantic import BaseModel, Field

from agentsmith.core.config import settings
from agentsmith.core.exceptions import QueueFullError
from agentsmith.models.schemas.requests import RequestRecord

logger = logging.getLogger(__name__)


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingJob(BaseModel):
    request_id: str
    status: JobStatus = JobStatus.QUEUED
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    result: Optional[RequestRecord] = None
    error: Optional[str] = None


class ProcessingQueue:

    def __init__(self, processor, maxsize: Optional[int] = None, workers: Optional[int] = None,
                 history: Optional[int] = None):
        self.processor = processor
        self.maxsize = maxsize or settings.PROCESSING_QUEUE_SIZE
        self.worker_count = workers or settings.PROCESSING_WORKERS
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self.history = history or settings.PROCESSING_JOB_HISTORY
        self.jobs: Dict[str, ProcessingJob] = OrderedDict()
        self.completed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self):
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"request-worker-{i}")
            for i in range(self.worker_count)
        ]
        logger.info(f"Processing queue started with {self.worker_count} workers")

    async def stop(self, drain: bool = True):
        """Stop workers, optionally after the queue is empty."""
        if not self.running:
            return
        if drain:
            await self._queue.join()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(f"Processing queue stopped ({self.completed} completed, {self.failed} failed)")

    def submit(self, request_id: str) -> ProcessingJob:
        """
        Enqueue a request; raises QueueFullError when the queue is at capacity.
        A request that is still queued or running is not enqueued twice.
        """
        if not self.running:
            raise RuntimeError("Processing queue is not started")
        active = self.jobs.get(request_id)
        if active is not None and active.status in (JobStatus.QUEUED, JobStatus.RUNNING):
            return active
        job = ProcessingJob(request_id=request_id)
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            raise QueueFullError(f"Processing queue is full ({self.maxsize}), request {request_id} rejected")
        self.jobs.pop(request_id, None)
        self.jobs[request_id] = job
        self._trim_history()
        return job

    async def join(self):
        if self._queue is not None:
            await self._queue.join()

    def status(self, request_id: str) -> Optional[ProcessingJob]:
        return self.jobs.get(request_id)

    def on_request_created(self, request: RequestRecord) -> Optional[ProcessingJob]:
        """Hook for intake: queue unprocessed requests, skip the rest."""
        if request.ai_processed:
            logger.debug(f"Request {request.id} already processed, not queued")
            return None
        return self.submit(request.id)

    async def _worker(self, index: int):
        while True:
            job = await self._queue.get()
            job.status = JobStatus.RUNNING
            try:
                record = await self.processor.process_new(job.request_id)
                job.result = record
                if record is not None and record.ai_processed:
                    job.status = JobStatus.COMPLETED
                    self.completed += 1
                else:
                    job.status = JobStatus.FAILED
                    job.error = "request not processed"
                    self.failed += 1
            except Exception as e:
                logger.exception(f"Worker {index} crashed on request {job.request_id}")
                job.status = JobStatus.FAILED
                job.error = str(e)
                self.failed += 1
            finally:
                job.finished_at = datetime.utcnow()
                self._trim_history()
                self._queue.task_done()

    def _trim_history(self):
        """Drop the oldest finished jobs beyond the history limit."""
        finished = [
            request_id for request_id, job in self.jobs.items()
            if job.status in (JobStatus.COMPLETED, JobStatus.FAILED)
        ]
        for request_id in finished[:max(0, len(finished) - self.history)]:
            del self.jobs[request_id]
