"""
Evaluation Pool
===============

Fixed-size worker pool that runs sandbox evaluations off the event loop.
Admission is bounded by ``workers + queue_size``; once every slot is taken,
new submissions are rejected immediately instead of queueing without limit.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from dsl_playground.config.logging import get_logger
from dsl_playground.core.sandbox.evaluator import SandboxEvaluator, document_span
from dsl_playground.models.schemas import EvaluationResult, Fault, FaultKind

logger = get_logger(__name__)

# Extra wait beyond the evaluation budget before the pool gives up on a worker.
TIMEOUT_GRACE = 1.0


class EvaluationRejected(Exception):
    """Exception raised when the pool cannot admit another evaluation."""

    pass


class EvaluationPool:
    """Bounded pool of evaluation worker threads."""

    def __init__(
        self,
        evaluator: SandboxEvaluator,
        workers: int = 4,
        queue_size: int = 16,
        timeout: float = 2.0,
    ):
        self.evaluator = evaluator
        self.workers = workers
        self.capacity = workers + queue_size
        self.timeout = timeout
        self._executor: Optional[ThreadPoolExecutor] = None
        self._active = 0
        self.logger: Any = logger.bind(component="evaluation_pool")

    @property
    def active(self) -> int:
        """Evaluations currently admitted, running or waiting for a worker."""
        return self._active

    @property
    def running(self) -> bool:
        return self._executor is not None

    async def initialize(self) -> None:
        """Start the worker threads."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="dsl-eval"
            )
        self.logger.info("Evaluation pool initialized", workers=self.workers, capacity=self.capacity)

    async def close(self) -> None:
        """Stop the worker threads, abandoning queued work."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        self.logger.info("Evaluation pool closed")

    def _admit(self) -> ThreadPoolExecutor:
        """
        Take an admission slot.

        Returns:
            The executor the admitted evaluation runs on

        Raises:
            EvaluationRejected: If every slot is taken or the pool is closed
        """
        if self._executor is None:
            raise EvaluationRejected("Evaluation pool is not running")
        if self._active >= self.capacity:
            self.logger.warning("Evaluation rejected", active=self._active, capacity=self.capacity)
            raise EvaluationRejected(
                f"Evaluation capacity exhausted ({self.capacity} evaluations in flight)"
            )
        self._active += 1
        return self._executor

    def _release(self, _future: Optional["asyncio.Future[Any]"] = None) -> None:
        self._active -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncGenerator[None, None]:
        """
        Reserve an admission slot for the duration of the block.

        Raises:
            EvaluationRejected: If every slot is taken or the pool is closed
        """
        self._admit()
        try:
            yield
        finally:
            self._release()

    async def evaluate(self, source: str) -> EvaluationResult:
        """
        Evaluate source on a worker thread.

        A worker that overruns the budget plus ``TIMEOUT_GRACE`` is reported as
        a timeout, but its slot stays taken until the thread actually returns.

        Args:
            source: DSL source text

        Returns:
            EvaluationResult from the sandbox evaluator

        Raises:
            EvaluationRejected: If the pool is saturated
        """
        executor = self._admit()
        start_time = time.time()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(executor, self.evaluator.evaluate, source)
        try:
            result = await asyncio.wait_for(asyncio.shield(future), timeout=self.timeout + TIMEOUT_GRACE)
        except asyncio.TimeoutError:
            future.add_done_callback(self._release)
            self.logger.error("Evaluation worker did not finish", timeout=self.timeout, active=self._active)
            return EvaluationResult(
                success=False,
                fault=Fault(
                    kind=FaultKind.TIMEOUT,
                    message=f"Evaluation exceeded the time budget of {self.timeout:g} seconds",
                    location=document_span(source),
                ),
                processing_time=time.time() - start_time,
            )
        except BaseException:
            future.add_done_callback(self._release)
            raise

        self._release()
        return result
