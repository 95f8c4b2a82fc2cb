import asyncio


class Timeout:
    """A resettable deadline.

    `wait()` completes once the deadline has passed. Resetting moves the
    deadline, even while another task is waiting on it.
    """

    def __init__(self, duration: float) -> None:
        self._duration = duration
        self._deadline = self._now() + duration

    @staticmethod
    def _now() -> float:
        return asyncio.get_running_loop().time()

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def remaining(self) -> float:
        return max(0.0, self._deadline - self._now())

    @property
    def has_elapsed(self) -> bool:
        return self.remaining == 0.0

    def reset(self, duration: float | None = None) -> None:
        if duration is not None:
            self._duration = duration
        self._deadline = self._now() + self._duration

    async def wait(self) -> None:
        remaining = self.remaining
        while remaining > 0:
            await asyncio.sleep(remaining)
            remaining = self.remaining
