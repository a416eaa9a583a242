import time


class SystemClock:
    """Monotonic wall clock used by the print dispatch queue."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
