"""
Exponential backoff policy.

delay(n) = min(max_delay, base_delay * 2**n), optionally multiplied by a jitter
factor drawn uniformly from [0.5, 1.5) to keep independent callers from
retrying in lockstep. The result never exceeds max_delay. attempt_index 0 is
the delay before the second attempt.
"""

import random
from dataclasses import dataclass
from typing import Optional

from core.errors.exceptions import ConfigurationError

# Defaults give a freshly generated repository time to initialize its
# default branch before the first protection attempt.
DEFAULT_BASE_DELAY_SECONDS = 3.0
DEFAULT_MAX_DELAY_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 5


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for retry backoff behavior (all durations in seconds)."""

    # Delay before the first retry
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS

    # Upper bound for any single delay (before jitter)
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS

    # Retries after the first attempt; total attempts = max_retries + 1
    max_retries: int = DEFAULT_MAX_RETRIES

    # Multiply each delay by a random factor in [0.5, 1.5)
    jitter: bool = True

    # Optional wall-clock budget for a whole retry sequence (None = unbounded)
    deadline_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ConfigurationError(
                f"base_delay must be > 0, got {self.base_delay}"
            )
        if self.max_delay < self.base_delay:
            raise ConfigurationError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must be >= 0, got {self.max_retries}"
            )
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ConfigurationError(
                f"deadline_seconds must be > 0 when set, got {self.deadline_seconds}"
            )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def compute_delay(
        self, attempt_index: int, rng: Optional[random.Random] = None
    ) -> float:
        """Delay in seconds before retry number attempt_index + 1."""
        return compute_delay(self, attempt_index, rng)


def compute_delay(
    config: BackoffConfig,
    attempt_index: int,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Compute the backoff delay for a retry.

    Args:
        config: Backoff configuration
        attempt_index: Zero-based retry index (0 = delay before the 2nd attempt)
        rng: Random source for jitter (default: module-level random)

    Returns:
        Delay in seconds, never above max_delay. With jitter the capped
        value is scaled by a factor in [0.5, 1.5) and capped again.

    Raises:
        ValueError: If attempt_index is negative
    """
    if attempt_index < 0:
        raise ValueError(f"attempt_index must be >= 0, got {attempt_index}")

    # Cap the exponent so large indices don't overflow float arithmetic
    exponent = min(attempt_index, 64)
    delay = min(config.max_delay, config.base_delay * (2**exponent))

    if config.jitter:
        source = rng if rng is not None else random
        # Jitter never lifts a delay above max_delay
        delay = min(config.max_delay, delay * (0.5 + source.random()))

    return delay
