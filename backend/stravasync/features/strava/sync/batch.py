"""
Concurrent write batches.

Runs independent coroutines together and records every outcome, so a
failed item is reported by key instead of aborting or hiding the rest.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Hashable, Iterable, Optional


@dataclass
class BatchOutcome:
    key: Hashable
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_batch(jobs: Iterable[tuple[Hashable, Awaitable]]) -> list[BatchOutcome]:
    """
    Await all (key, awaitable) jobs concurrently.

    Every job runs to completion; there is no rollback of jobs that
    succeeded when others fail. Outcomes are returned in job order.
    """
    jobs = list(jobs)
    if not jobs:
        return []

    results = await asyncio.gather(
        *(awaitable for _, awaitable in jobs),
        return_exceptions=True
    )

    outcomes = []
    for (key, _), result in zip(jobs, results):
        if isinstance(result, Exception):
            outcomes.append(BatchOutcome(key=key, error=result))
        elif isinstance(result, BaseException):
            # CancelledError, KeyboardInterrupt
            raise result
        else:
            outcomes.append(BatchOutcome(key=key, value=result))
    return outcomes
