# lambdaship/services/consistency.py
from __future__ import annotations

import logging
from typing import Optional

from lambdaship.config import RetryPolicy
from lambdaship.errors import ConsistencyTimeout, InvocationValidationError, ProviderError
from lambdaship.models.actions import Sleep
from lambdaship.utils.tokens import blocking_sleep

logger = logging.getLogger(__name__)

DRY_RUN = "DryRun"


def wait_for_consistency(
    service,
    name: str,
    retry: Optional[RetryPolicy] = None,
    sleep: Sleep = blocking_sleep,
) -> str:
    """
    Publish a version until Lambda accepts it and return the version number.

    Every failure counts as "not consistent yet". Raises ConsistencyTimeout
    with the last error once the retry budget is spent.
    """
    retry = retry or RetryPolicy(10, 3.0)
    last_error: Optional[BaseException] = None
    for attempt in range(1, retry.attempts + 1):
        try:
            version = service.publish_version(name)
        except ProviderError as e:
            last_error = e
        else:
            if version:
                logger.info(f"Function {name} consistent at version {version}")
                return version
            last_error = ProviderError(f"publish version of {name} returned no version")
        logger.info(f"Function {name} not consistent yet (attempt {attempt}/{retry.attempts}): {last_error}")
        if attempt < retry.attempts:
            sleep(retry.delay)
    raise ConsistencyTimeout(name, retry.attempts, last_error) from last_error


def validate_invocation(service, name: str, version: str) -> dict:
    """Dry-run invoke the published version; Lambda checks permissions and parameters only."""
    try:
        response = service.invoke(name, version, DRY_RUN)
    except ProviderError as e:
        raise InvocationValidationError(f"dry run of {name}:{version} failed: {e}") from e
    if response.get("FunctionError"):
        raise InvocationValidationError(
            f"dry run of {name}:{version} returned function error {response['FunctionError']}"
        )
    logger.info(f"Dry run of {name}:{version} succeeded with status {response.get('StatusCode')}")
    return response
