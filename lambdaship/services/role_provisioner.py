# lambdaship/services/role_provisioner.py
from __future__ import annotations

import logging

from lambdaship.errors import ResourceNotFound
from lambdaship.models.actions import (
    INLINE_POLICY_PREFIX,
    RoleCreateOrUpdateAction,
    TokenFactory,
    attach_policy_command,
    create_role_command,
    put_inline_policy_command,
)
from lambdaship.models.function import BASIC_EXECUTION_POLICY_ARN, ExecutionRole
from lambdaship.utils.tokens import short_token

logger = logging.getLogger(__name__)


def prepare_role_action(
    role: ExecutionRole,
    iam,
    token_factory: TokenFactory = short_token,
) -> RoleCreateOrUpdateAction:
    """
    Decide what the execution role needs: a create when IAM does not know it,
    then the basic execution policy, every user managed policy, and the inline
    policy if one was given. Any lookup error other than not-found propagates.
    """
    action = RoleCreateOrUpdateAction(
        iam=iam,
        managed_policies=[attach_policy_command(role.name, BASIC_EXECUTION_POLICY_ARN)],
    )
    try:
        iam.get_role(role.name)
        logger.info(f"Role {role.name} exists, updating its policies")
    except ResourceNotFound:
        logger.info(f"Role {role.name} not found, it will be created")
        action.create_role = create_role_command(role.name, role.assume_role_policy)

    for policy_arn in role.managed_policies:
        if policy_arn == BASIC_EXECUTION_POLICY_ARN:
            continue
        action.managed_policies.append(attach_policy_command(role.name, policy_arn))

    if role.inline_policy:
        action.inline_policies.append(
            put_inline_policy_command(role.name, INLINE_POLICY_PREFIX + token_factory(), role.inline_policy)
        )
    return action
