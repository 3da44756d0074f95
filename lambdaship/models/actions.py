# lambdaship/models/actions.py
"""
Deployment actions: the decided-but-not-yet-done half of provisioning.

Provisioning looks at remote state and returns one of the actions below, built
from already resolved data. Nothing touches AWS until ``execute`` is called,
which keeps the create/update decision testable on its own.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from lambdaship.config import RetryPolicy
from lambdaship.errors import RoleNotAssumable
from lambdaship.models.function import ResourcePermission
from lambdaship.utils.tokens import blocking_sleep

logger = logging.getLogger(__name__)

Command = Dict[str, Any]
Sleep = Callable[[float], None]
TokenFactory = Callable[[], str]

INVOKE_ACTION = "lambda:InvokeFunction"
STATEMENT_ID_PREFIX = "lambdaship_invoke_permission_"
INLINE_POLICY_PREFIX = "lambdaship_inline_policy_"


# ---- command builders ----

def create_role_command(role_name: str, assume_role_policy: str) -> Command:
    return {"name": role_name, "assume_role_policy": assume_role_policy}


def attach_policy_command(role_name: str, policy_arn: str) -> Command:
    return {"role_name": role_name, "policy_arn": policy_arn}


def put_inline_policy_command(role_name: str, policy_name: str, document: str) -> Command:
    return {"role_name": role_name, "policy_name": policy_name, "document": document}


def create_function_command(name: str, role_arn: str, archive: bytes) -> Command:
    return {"name": name, "role_arn": role_arn, "archive": archive}


def update_function_command(name: str, archive: bytes) -> Command:
    return {"name": name, "archive": archive, "publish": True}


def permission_commands(
    function_name: str,
    permission: ResourcePermission,
    token_factory: TokenFactory,
) -> List[Command]:
    """
    One lambda:AddPermission request per principal, each with a fresh statement
    id so it never collides with grants already on the function. An empty
    principal yields no requests.
    """
    commands = []
    for principal in permission.principals():
        commands.append({
            "FunctionName": function_name,
            "StatementId": STATEMENT_ID_PREFIX + token_factory(),
            "Action": INVOKE_ACTION,
            "Principal": principal,
            "SourceArn": permission.source_arn,
            "SourceAccount": permission.source_account,
            "PrincipalOrgID": permission.principal_org_id,
        })
    return commands


# ---- actions ----

@dataclass
class RoleCreateOrUpdateAction:
    iam: Any
    create_role: Optional[Command] = None
    managed_policies: List[Command] = field(default_factory=list)
    inline_policies: List[Command] = field(default_factory=list)

    kind = "create-or-update-role"

    def execute(self) -> None:
        # no rollback: a created role stays if a later attach fails
        if self.create_role is not None:
            self.iam.create_role(**self.create_role)
        for cmd in self.managed_policies:
            self.iam.attach_managed_policy(**cmd)
        for cmd in self.inline_policies:
            self.iam.put_inline_policy(**cmd)


@dataclass
class LambdaCreateAction:
    service: Any
    name: str
    create_command: Command
    permission_commands: List[Command] = field(default_factory=list)
    retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(3, 3.0))
    sleep: Sleep = blocking_sleep

    kind = "create-function"

    def execute(self) -> None:
        for attempt in range(1, self.retry.attempts + 1):
            try:
                self.service.create_function(**self.create_command)
                break
            except RoleNotAssumable as e:
                if attempt == self.retry.attempts:
                    raise
                logger.warning(
                    f"Role for {self.name} not assumable yet (attempt {attempt}/{self.retry.attempts}): {e}"
                )
                self.sleep(self.retry.delay)
        logger.info(f"Lambda function {self.name} created")
        for grant in self.permission_commands:
            self.service.add_permission(grant)


@dataclass
class LambdaUpdateAction:
    service: Any
    name: str
    update_command: Command
    permission_commands: List[Command] = field(default_factory=list)

    kind = "update-function"

    def execute(self) -> None:
        self.service.update_function_code(**self.update_command)
        logger.info(f"Lambda function {self.name} updated")
        # grants are re-applied on every deploy so drifted permissions heal
        for grant in self.permission_commands:
            self.service.add_permission(grant)


DeploymentAction = Union[RoleCreateOrUpdateAction, LambdaCreateAction, LambdaUpdateAction]


def execute(action: DeploymentAction) -> None:
    if not isinstance(action, (RoleCreateOrUpdateAction, LambdaCreateAction, LambdaUpdateAction)):
        raise TypeError(f"unknown deployment action {type(action).__name__}")
    logger.info(f"Executing {action.kind} action")
    action.execute()


__all__ = [
    "RoleCreateOrUpdateAction",
    "LambdaCreateAction",
    "LambdaUpdateAction",
    "DeploymentAction",
    "execute",
    "create_role_command",
    "attach_policy_command",
    "put_inline_policy_command",
    "create_function_command",
    "update_function_command",
    "permission_commands",
]
