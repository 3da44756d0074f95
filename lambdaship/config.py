# lambdaship/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from lambdaship.errors import ConfigurationError


# Retry state for one provisioning or consistency loop
@dataclass(frozen=True)
class RetryPolicy:
    attempts: int
    delay: float

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ConfigurationError(f"retry attempts must be at least 1, got {self.attempts}")
        if self.delay < 0:
            raise ConfigurationError(f"retry delay must not be negative, got {self.delay}")


@dataclass(frozen=True)
class DeployConfig:
    """Tunables for one deployment. Region and profile fall back to the AWS defaults."""
    region: Optional[str] = None
    profile: Optional[str] = None
    create_retry_limit: int = 3
    consistency_retry_limit: int = 10
    retry_delay: float = 3.0
    max_sdk_attempts: int = 20

    def __post_init__(self) -> None:
        # both budgets are checked here, before any session or remote call
        self.create_retry
        self.consistency_retry
        if self.max_sdk_attempts < 1:
            raise ConfigurationError(f"SDK max attempts must be at least 1, got {self.max_sdk_attempts}")

    @property
    def create_retry(self) -> RetryPolicy:
        return RetryPolicy(self.create_retry_limit, self.retry_delay)

    @property
    def consistency_retry(self) -> RetryPolicy:
        return RetryPolicy(self.consistency_retry_limit, self.retry_delay)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        env = os.environ if environ is None else environ
        return cls(
            region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or None,
            profile=env.get("AWS_PROFILE") or None,
            create_retry_limit=_int(env, "LAMBDASHIP_CREATE_RETRIES", 3),
            consistency_retry_limit=_int(env, "LAMBDASHIP_CONSISTENCY_RETRIES", 10),
            retry_delay=_float(env, "LAMBDASHIP_RETRY_DELAY", 3.0),
        )


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from e


__all__ = ["RetryPolicy", "DeployConfig"]
