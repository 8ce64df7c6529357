import random


class ExponentialBackoff:
    """Bounded exponential backoff with additive jitter.

    ``next_delay`` grows as ``base * 2**attempt`` capped at ``max_delay``, plus
    ``uniform(0, jitter)``. Attempts are unlimited; ``reset`` is called once a
    connection is healthy again.
    """

    def __init__(self, base: float, max_delay: float, jitter: float = 0.0, rng=None):
        if base < 0 or max_delay < 0 or jitter < 0:
            raise ValueError("backoff parameters must be non-negative")
        self.base = base
        self.max_delay = max_delay
        self.jitter = jitter
        self.attempts = 0
        self._rng = rng or random.Random()

    def next_delay(self) -> float:
        delay = min(self.base * (2 ** min(self.attempts, 32)), self.max_delay)
        self.attempts += 1
        if self.jitter:
            delay += self._rng.uniform(0, self.jitter)
        return delay

    def reset(self):
        self.attempts = 0
