"""
Detail fetch policies for the order sync engine

SequentialFetchPolicy fetches one order at a time (bounds marketplace rate
limits). BoundedParallelFetchPolicy runs up to `limit` fetches at once.
Both return results in input order. If one fetch raises, the parallel policy
cancels the fetches still pending and re-raises.
"""
import asyncio
from typing import Any, Awaitable, Callable, List, Sequence


class SequentialFetchPolicy:

    async def run(self, items: Sequence[Any], fetch_one: Callable[[Any], Awaitable[Any]]) -> List[Any]:
        results = []
        for item in items:
            results.append(await fetch_one(item))
        return results


class BoundedParallelFetchPolicy:

    def __init__(self, limit: int = 4):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit

    async def run(self, items: Sequence[Any], fetch_one: Callable[[Any], Awaitable[Any]]) -> List[Any]:
        semaphore = asyncio.Semaphore(self.limit)

        async def _bounded(item):
            async with semaphore:
                return await fetch_one(item)

        tasks = [asyncio.ensure_future(_bounded(item)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # First failure aborts the run: stop siblings still calling upstream
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


def fetch_policy_for(concurrency: int):
    """Sequential for 1, bounded parallel above"""
    if concurrency <= 1:
        return SequentialFetchPolicy()
    return BoundedParallelFetchPolicy(concurrency)
