"""Rate-limited batch execution of collaborator calls.

Items are processed in fixed-size batches. Calls within a batch run
concurrently and are joined before the next batch starts; a batch
succeeds or fails as a unit. A fixed delay separates consecutive batches.
"""

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from ..errors import ExternalCollaboratorError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


@dataclass
class BatchItemResult(Generic[T, R]):
    """Outcome of one item; exactly one of `value` and `error` is set."""
    index: int
    item: T
    value: Optional[R] = None
    error: Optional[ExternalCollaboratorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchRunner:
    """
    Runs a callable over items in rate-limited concurrent batches.

    Attributes:
        batch_size: Items per batch.
        delay_seconds: Pause between consecutive batches.
        timeout_seconds: Time allowed for a whole batch.
    """

    def __init__(
        self,
        batch_size: int = 3,
        delay_seconds: float = 2.0,
        timeout_seconds: float = 60.0,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        if batch_size < 1:
            raise ValidationError("batch_size must be at least 1", field_name="batch_size")
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep

    def run(
        self,
        items: Sequence[T],
        func: Callable[[T], R],
        operation: str = "collaborator_call",
    ) -> List[BatchItemResult]:
        """
        Apply `func` to every item.

        Args:
            items: Items in caller order.
            func: Collaborator call for one item.
            operation: Operation name reported in errors.

        Returns:
            One result per item, in input order. Items of a failed or
            timed-out batch all carry an `ExternalCollaboratorError`.
        """
        results: List[BatchItemResult] = []
        batches = [items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)]

        for number, batch in enumerate(batches):
            if number > 0 and self.delay_seconds > 0:
                self._sleep(self.delay_seconds)
            offset = number * self.batch_size
            results.extend(self._run_batch(batch, offset, func, operation))

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"{operation}: {failed}/{len(results)} items failed")
        return results

    def _run_batch(
        self,
        batch: Sequence[T],
        offset: int,
        func: Callable[[T], R],
        operation: str,
    ) -> List[BatchItemResult]:
        executor = ThreadPoolExecutor(max_workers=len(batch))
        try:
            futures = [executor.submit(func, item) for item in batch]
            done, not_done = wait(futures, timeout=self.timeout_seconds, return_when=FIRST_EXCEPTION)
            if not_done and not any(f.exception() for f in done):
                # FIRST_EXCEPTION returns early only on failure; otherwise this is a timeout.
                error = ExternalCollaboratorError(
                    f"Batch timed out after {self.timeout_seconds}s",
                    operation=operation,
                    details={"batch_start": offset, "batch_size": len(batch)},
                )
                return self._fail(batch, offset, error)

            failure = next((f.exception() for f in futures if f.done() and f.exception()), None)
            if failure is not None:
                error = failure if isinstance(failure, ExternalCollaboratorError) else ExternalCollaboratorError(
                    f"Collaborator call failed: {failure}",
                    operation=operation,
                    details={"batch_start": offset, "cause": type(failure).__name__},
                )
                return self._fail(batch, offset, error)

            return [
                BatchItemResult(index=offset + i, item=item, value=future.result())
                for i, (item, future) in enumerate(zip(batch, futures))
            ]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _fail(batch: Sequence[T], offset: int, error: ExternalCollaboratorError) -> List[BatchItemResult]:
        logger.warning(f"Batch starting at item {offset} failed: {error}")
        return [
            BatchItemResult(index=offset + i, item=item, error=error)
            for i, item in enumerate(batch)
        ]
