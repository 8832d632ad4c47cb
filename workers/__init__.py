"""
Thread pools for bulk jobs (report generation).

Both pools return results in input order and collect per-item failures
instead of letting one bad record abort the whole batch.
"""

import logging
import threading
from concurrent import futures
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class WorkerResult:
    """Outcome of one item: the value returned or the exception raised."""

    def __init__(self, item: Any, value: Any = None, error: Optional[Exception] = None):
        self.item = item
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self):
        state = "ok" if self.ok else f"error={self.error!r}"
        return f"<WorkerResult {self.item!r} {state}>"


class RoundRobinWorkerPool:
    def __init__(self, items: List[Any], func: Callable[[Any], Any], num_workers: int = 3,
                 progress: Optional[Callable[[int, int], None]] = None):
        """
        items: List of items to process.
        func: Function to apply to each item.
        num_workers: Number of concurrent workers.
        progress: Optional callback(done, total) after each item.
        """
        self.items = list(items)
        self.func = func
        self.num_workers = max(1, num_workers)
        self.progress = progress
        self._done = 0
        self._lock = threading.Lock()

    def _distribute_items_round_robin(self) -> List[List[Tuple[int, Any]]]:
        """Distribute (index, item) pairs into buckets in a round-robin fashion."""
        buckets = [[] for _ in range(min(self.num_workers, len(self.items)))]
        for idx, item in enumerate(self.items):
            buckets[idx % len(buckets)].append((idx, item))
        return buckets

    def _worker(self, bucket: List[Tuple[int, Any]]) -> List[Tuple[int, WorkerResult]]:
        """Process each item in the bucket sequentially."""
        results = []
        for idx, item in bucket:
            try:
                results.append((idx, WorkerResult(item, value=self.func(item))))
            except Exception as e:
                logger.error(f"Worker failed on {item!r}: {str(e)}")
                results.append((idx, WorkerResult(item, error=e)))
            with self._lock:
                self._done += 1
                done = self._done
            if self.progress:
                self.progress(done, len(self.items))
        return results

    def run(self) -> List[WorkerResult]:
        """Execute the processing in parallel using ThreadPoolExecutor."""
        if not self.items:
            return []

        indexed = []
        buckets = self._distribute_items_round_robin()
        with futures.ThreadPoolExecutor(max_workers=len(buckets)) as executor:
            jobs = [executor.submit(self._worker, bucket) for bucket in buckets]
            for job in futures.as_completed(jobs):
                indexed.extend(job.result())

        indexed.sort(key=lambda pair: pair[0])
        return [result for _, result in indexed]


class ChunkedWorkerPool:
    def __init__(self, items: List[Any], func: Callable[..., List[Any]], func_args: tuple = (),
                 num_workers: int = 3):
        """
        items: List of items to process.
        func: Function that accepts a LIST of items (plus func_args) and
            returns one value per item.
        func_args: Extra positional arguments passed after the chunk.
        num_workers: Number of concurrent workers.
        """
        self.items = list(items)
        self.func_args = func_args
        self.func = func
        self.num_workers = max(1, num_workers)

    def _distribute_items_chunked(self) -> List[List[Any]]:
        """Distribute items into roughly equal-sized, non-empty chunks."""
        total_items = len(self.items)
        workers = min(self.num_workers, total_items)
        if not workers:
            return []
        base_chunk_size = total_items // workers
        remainder = total_items % workers

        chunks = []
        start_idx = 0
        for worker_idx in range(workers):
            # First 'remainder' workers get an extra item
            chunk_size = base_chunk_size + (1 if worker_idx < remainder else 0)
            chunks.append(self.items[start_idx:start_idx + chunk_size])
            start_idx += chunk_size
        return chunks

    def _worker(self, chunk: List[Any]) -> List[WorkerResult]:
        """Process the entire chunk by calling func once."""
        try:
            values = self.func(chunk, *self.func_args)
        except Exception as e:
            logger.error(f"Worker failed on chunk of {len(chunk)} items: {str(e)}")
            return [WorkerResult(item, error=e) for item in chunk]
        return [WorkerResult(item, value=value) for item, value in zip(chunk, values)]

    def run(self) -> List[WorkerResult]:
        """Execute the processing in parallel using ThreadPoolExecutor."""
        chunks = self._distribute_items_chunked()
        if not chunks:
            return []

        with futures.ThreadPoolExecutor(max_workers=len(chunks)) as executor:
            jobs = [executor.submit(self._worker, chunk) for chunk in chunks]
            results = []
            for job in jobs:
                results.extend(job.result())
        return results


__all__ = ['WorkerResult', 'RoundRobinWorkerPool', 'ChunkedWorkerPool']
