"""
Bounded exponential backoff.

One policy type shared by the manifest ETag lookup and the batch job
readiness poll. Both are tenacity retry loops; the policy only decides how
long to wait between attempts and when to give up.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    stop_after_attempt,
    stop_before_delay,
    stop_never,
    wait_exponential,
    wait_random,
)
from tenacity.stop import stop_base

__all__ = ["BackoffPolicy", "stop_before_idle", "ETAG_POLICY", "JOB_READY_POLICY"]

logger = logging.getLogger(__name__)


class stop_before_idle(stop_base):
    """
    Stop when the next wait would push the time spent sleeping past the budget.

    Unlike stop_before_delay this does not read the wall clock, so an injected
    sleep function still bounds the loop.
    """

    def __init__(self, max_idle: float) -> None:
        self.max_idle = max_idle

    def __call__(self, retry_state: RetryCallState) -> bool:
        return retry_state.idle_for + retry_state.upcoming_sleep > self.max_idle


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff parameters.

    Waits are initial * multiplier ** (attempt - 1), capped at max_interval,
    plus up to jitter seconds of random noise. The loop stops when either bound
    is hit: max_elapsed seconds of waiting (and wall clock), never overrun
    by the next wait, or max_attempts attempts. A None bound is not enforced.
    """
    initial: float = 1.0
    multiplier: float = 1.5
    max_interval: float = 60.0
    max_elapsed: Optional[float] = None
    max_attempts: Optional[int] = None
    jitter: float = 0.0

    def __post_init__(self):
        if self.initial <= 0:
            raise ValueError(f"initial must be positive, got {self.initial}")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier}")
        if self.max_interval < self.initial:
            raise ValueError(f"max_interval must be >= initial, got {self.max_interval}")
        if self.max_elapsed is None and self.max_attempts is None:
            raise ValueError("BackoffPolicy needs max_elapsed or max_attempts")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def wait(self):
        strategy = wait_exponential(multiplier=self.initial, exp_base=self.multiplier,
                                    min=self.initial, max=self.max_interval)
        if self.jitter > 0:
            strategy = strategy + wait_random(0, self.jitter)
        return strategy

    def stop(self):
        stop = stop_never
        if self.max_elapsed is not None:
            stop = stop_before_idle(self.max_elapsed) | stop_before_delay(self.max_elapsed)
        if self.max_attempts is not None:
            stop = stop_after_attempt(self.max_attempts) if stop is stop_never \
                else stop | stop_after_attempt(self.max_attempts)
        return stop

    def retrying(self, *, sleep: Callable[[float], None] = time.sleep, **kwargs) -> Retrying:
        """
        Build a tenacity Retrying controller for this policy.

        Extra keyword arguments (retry=, before_sleep=, reraise=) are passed
        through to tenacity.
        """
        return Retrying(wait=self.wait(), stop=self.stop(), sleep=sleep, **kwargs)


def log_before_sleep(what: str) -> Callable[[RetryCallState], None]:
    """tenacity before_sleep hook that logs the failed attempt and the upcoming wait."""
    def _log(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        wait_s = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if outcome is not None and outcome.failed:
            logger.warning(f"{what} failed (attempt {retry_state.attempt_number}), "
                           f"retrying in {wait_s:.1f}s: {outcome.exception()}")
        else:
            logger.info(f"{what} not ready (attempt {retry_state.attempt_number}), "
                        f"checking again in {wait_s:.1f}s")
    return _log


# ETag lookup: 1s growing x1.5, give up after about a minute.
ETAG_POLICY = BackoffPolicy(initial=1.0, multiplier=1.5, max_interval=60.0, max_elapsed=60.0)

# Job readiness: 1s growing x1.5, capped at 30s per step, at most 60 polls.
JOB_READY_POLICY = BackoffPolicy(initial=1.0, multiplier=1.5, max_interval=30.0, max_attempts=60)
