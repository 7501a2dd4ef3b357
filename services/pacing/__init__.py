"""Pacing policies used to throttle batch processing."""

from utils.config import AppConfig

from .base import PacingPolicy
from .fixed_delay import FixedDelayPacing
from .token_bucket import TokenBucketPacing


def build_pacing(config: AppConfig) -> PacingPolicy:
    if config.pacing_strategy == "token_bucket":
        return TokenBucketPacing(rate=config.pacing_rate)
    return FixedDelayPacing(config.pacing_delay_seconds)


__all__ = [
    "PacingPolicy",
    "FixedDelayPacing",
    "TokenBucketPacing",
    "build_pacing",
]
