import asyncio


class ConcurrencyLimiter:
    """
    Caps how many coroutines run at once.

    map() gathers over a bounded pool: results come back in submission
    order, a failing task never cancels its siblings, and the failures are
    returned once everything has settled.
    """

    def __init__(self, limit=5):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self.active = 0
        self.peak = 0

    async def run(self, func, *args, **kwargs):
        async with self._semaphore:
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                return await func(*args, **kwargs)
            finally:
                self.active -= 1

    async def map(self, func, items):
        """Run func(item) for every item. Returns (results, errors)."""
        outcomes = await asyncio.gather(
            *(self.run(func, item) for item in items),
            return_exceptions=True,
        )

        results = []
        errors = []
        for outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                errors.append(outcome)
                results.append(None)
            else:
                results.append(outcome)
        return results, errors
