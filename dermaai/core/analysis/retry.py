"""
Retry Policy

Bounded retry-with-exponential-backoff around a single provider attempt.
Only failures flagged retryable are retried; the failure itself is passed
through untouched.
"""
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List
import asyncio

from dermaai.core.case import ProviderFailure, ProviderOutcome
from dermaai.utils import get_logger, ConfigurationError

logger = get_logger(__name__)

ProviderCall = Callable[[], Awaitable[ProviderOutcome]]
Sleeper = Callable[[float], Awaitable[None]]

DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY = 1.0


@dataclass
class RetryPolicy:
    """
    Exponential backoff policy.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Seconds to wait before the first retry; doubles each time
        sleep: Awaitable sleep, injectable for deterministic tests
    """
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    sleep: Sleeper = field(default=asyncio.sleep, repr=False)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0", setting="max_retries")
        if self.base_delay < 0:
            raise ConfigurationError("base_delay must be >= 0", setting="base_delay")

    def delay_for(self, attempt_index: int) -> float:
        """Backoff before retrying after attempt `attempt_index` (0-based)."""
        return self.base_delay * (2 ** attempt_index)

    def schedule(self) -> List[float]:
        """Every delay this policy may sleep, in order."""
        return [self.delay_for(i) for i in range(self.max_retries)]

    async def run(self, call: ProviderCall, label: str = "provider") -> ProviderOutcome:
        """
        Run `call` until it succeeds, fails permanently, or retries run out.

        Args:
            call: Zero-argument coroutine factory performing one attempt
            label: Name used in log lines

        Returns:
            The last outcome produced by `call`
        """
        attempt = 0
        while True:
            outcome = await call()
            if not isinstance(outcome, ProviderFailure) or not outcome.retryable:
                return outcome
            if attempt >= self.max_retries:
                logger.error(
                    f"{label}: giving up after {attempt + 1} attempts "
                    f"[{outcome.code.value}] {outcome.message}"
                )
                return outcome

            delay = self.delay_for(attempt)
            logger.warning(
                f"{label}: attempt {attempt + 1} failed with {outcome.code.value}, "
                f"retrying in {delay:.1f}s..."
            )
            await self.sleep(delay)
            attempt += 1


async def with_retry(
    call: ProviderCall,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Sleeper = asyncio.sleep
) -> ProviderOutcome:
    """Functional form of RetryPolicy.run()."""
    return await RetryPolicy(max_retries=max_retries, base_delay=base_delay, sleep=sleep).run(call)
