"""Exponential backoff policy for status polling."""

import random

from warehouse_client.types.params import BackoffParams

# Past this many doublings every delay is pinned to the cap anyway.
_MAX_EXPONENT = 64


class Backoff:
    """Stateless delay schedule: attempt n waits up to initial * multiplier**n,
    capped at `maximum`, with the configured fraction randomized away.
    """

    __slots__ = ("_params", "_random")

    def __init__(self, params: BackoffParams, rng: random.Random | None = None) -> None:
        self._params = params
        self._random = rng or random.Random()

    @property
    def params(self) -> BackoffParams:
        return self._params

    def ceiling(self, attempt: int) -> float:
        """Largest delay attempt `attempt` (0-based) may wait."""
        exponent = min(max(attempt, 0), _MAX_EXPONENT)
        return min(self._params.maximum, self._params.initial * self._params.multiplier**exponent)

    def delay(self, attempt: int, remaining: float | None = None) -> float:
        """Delay before retry `attempt`, never longer than `remaining` seconds."""
        ceiling = self.ceiling(attempt)
        wait = ceiling - self._params.jitter * ceiling * self._random.random()
        if remaining is not None:
            wait = min(wait, max(remaining, 0.0))
        return wait
