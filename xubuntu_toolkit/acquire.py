"""
Ordered-fallback resource acquisition.

A resource (a signing key, a swapfile) can usually be obtained more than one
way. ``acquire`` walks an ordered list of strategies and stops at the first one
that reports success. A failing strategy is logged and the next one is tried.
Artifacts left behind by a failed strategy are not cleaned up; the next
strategy is expected to overwrite them.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

from xubuntu_toolkit.errors import AcquisitionExhausted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Strategy:
    """One named way of obtaining a resource."""

    name: str
    attempt: Callable[[], bool]

    def __call__(self) -> bool:
        return bool(self.attempt())


@dataclass(frozen=True)
class AcquisitionRequest:
    identifier: str
    strategies: Tuple[Strategy, ...]

    def __post_init__(self) -> None:
        # Freeze whatever iterable was passed in
        object.__setattr__(self, "strategies", tuple(self.strategies))


@dataclass
class AcquisitionResult:
    identifier: str
    success: bool
    strategy: Optional[str] = None
    attempted: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success


def acquire(identifier: str, strategies: Iterable[Strategy]) -> AcquisitionResult:
    """
    Try each strategy in order until one succeeds.

    Args:
        identifier: Name of the resource being acquired (key fingerprint, path)
        strategies: Ordered strategies; each returns True on success

    Returns:
        AcquisitionResult naming the winning strategy, or a failed result
        listing every strategy that was attempted
    """
    attempted: List[str] = []
    for strategy in strategies:
        attempted.append(strategy.name)
        logger.debug(f"Acquiring {identifier} via {strategy.name}")
        try:
            succeeded = strategy()
        except Exception as e:
            logger.warning(f"Strategy '{strategy.name}' for {identifier} raised: {e}")
            continue

        if succeeded:
            logger.info(f"Acquired {identifier} via {strategy.name}")
            return AcquisitionResult(identifier, True, strategy.name, attempted)
        logger.warning(f"Strategy '{strategy.name}' for {identifier} failed")

    logger.error(f"All strategies exhausted for {identifier}")
    return AcquisitionResult(identifier, False, None, attempted)


def acquire_or_raise(request: AcquisitionRequest) -> AcquisitionResult:
    """Run ``acquire`` for a request, raising AcquisitionExhausted on failure."""
    result = acquire(request.identifier, request.strategies)
    if not result.success:
        raise AcquisitionExhausted(request.identifier, result.attempted)
    return result
