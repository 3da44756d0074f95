# lambdaship/services/function_provisioner.py
from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from lambdaship.config import RetryPolicy
from lambdaship.errors import ResourceNotFound
from lambdaship.models.actions import (
    LambdaCreateAction,
    LambdaUpdateAction,
    Sleep,
    TokenFactory,
    create_function_command,
    permission_commands,
    update_function_command,
)
from lambdaship.models.function import FunctionDescriptor
from lambdaship.services.packager import build
from lambdaship.utils.tokens import blocking_sleep, short_token

logger = logging.getLogger(__name__)

Builder = Callable[[str], bytes]


def function_exists(service, name: str) -> bool:
    try:
        service.get_function(name)
    except ResourceNotFound:
        return False
    return True


def prepare_lambda_action(
    function: FunctionDescriptor,
    service,
    *,
    builder: Builder = build,
    token_factory: TokenFactory = short_token,
    retry: Optional[RetryPolicy] = None,
    sleep: Sleep = blocking_sleep,
) -> Union[LambdaCreateAction, LambdaUpdateAction]:
    """
    Build the handler archive and choose between creating the function and
    replacing its code. Both branches carry the invoke grants from the
    function's resource permission.
    """
    exists = function_exists(service, function.name)
    archive = builder(function.handler_path)
    grants = permission_commands(function.name, function.permission, token_factory)

    if exists:
        logger.info(f"Function {function.name} exists, updating code")
        return LambdaUpdateAction(
            service=service,
            name=function.name,
            update_command=update_function_command(function.name, archive),
            permission_commands=grants,
        )

    logger.info(f"Function {function.name} not found, it will be created")
    return LambdaCreateAction(
        service=service,
        name=function.name,
        create_command=create_function_command(function.name, function.role.arn, archive),
        permission_commands=grants,
        retry=retry or RetryPolicy(3, 3.0),
        sleep=sleep,
    )
