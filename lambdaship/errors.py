# lambdaship/errors.py
from __future__ import annotations

from typing import Optional


class LambdashipError(RuntimeError):
    """Base class for every failure raised by lambdaship."""


class ConfigurationError(LambdashipError):
    """Region, credentials or tuning values could not be resolved."""


# ---- caller input ----

class PolicyParseError(LambdashipError):
    """A policy supplied on the command line could not be used."""


class MissingPrincipal(PolicyParseError):
    def __init__(self, message: str = "principal not found in resource policy") -> None:
        super().__init__(message)


class EmptyInlinePolicy(PolicyParseError):
    def __init__(self, message: str = "inline policy is empty") -> None:
        super().__init__(message)


class InvalidInlinePolicy(PolicyParseError):
    pass


class BuildError(LambdashipError):
    """Compiling or zipping the handler failed."""


class HandlerValidationError(LambdashipError):
    """The handler source does not look like a Lambda entry point."""


# ---- provider calls ----

class ProviderError(LambdashipError):
    """A remote AWS call failed."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class ResourceNotFound(ProviderError):
    """The role or function does not exist (selects the create branch)."""


class RoleNotAssumable(ProviderError):
    """Lambda cannot assume the execution role yet; IAM has not propagated."""


class ConsistencyTimeout(LambdashipError):
    def __init__(self, name: str, attempts: int, last_error: Optional[BaseException] = None) -> None:
        message = f"waited for {name} to become consistent, but it did not after {attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.name = name
        self.attempts = attempts
        self.last_error = last_error


class InvocationValidationError(LambdashipError):
    """The dry-run invocation after deployment failed."""


class DeploymentFailed(LambdashipError):
    """Wraps the error that aborted a deployment with the phase it happened in."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"{phase} failed: {cause}")
        self.phase = phase
        self.cause = cause
