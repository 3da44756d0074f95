# lambdaship/services/deployer.py
"""
Top level deploy / delete / package flows.

deploy runs, strictly in order and without resuming:

    build -> provision_role -> provision_function -> await_consistency -> validate_invoke

The invoke grant is folded into provision_function. Any failure aborts the
deployment with a DeploymentFailed naming the phase. Nothing is rolled back;
running deploy again is safe because every step checks what already exists.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterator, Optional

import boto3

from lambdaship.config import DeployConfig
from lambdaship.errors import DeploymentFailed, LambdashipError
from lambdaship.models.actions import Sleep, TokenFactory, execute
from lambdaship.models.function import (
    ROLE_NAME_PREFIX,
    ExecutionRole,
    FunctionDescriptor,
    ResourcePermission,
    role_arn_for,
    role_name_for,
    role_name_from_arn,
    to_json,
)
from lambdaship.services.aws_clients import AccountResolver, IAMService, LambdaService
from lambdaship.services.consistency import validate_invocation, wait_for_consistency
from lambdaship.services.function_provisioner import Builder, prepare_lambda_action
from lambdaship.services.packager import build, package_to
from lambdaship.services.policy_parser import (
    parse_inline_policy,
    parse_managed_policies,
    parse_resource_policy,
)
from lambdaship.services.role_provisioner import prepare_role_action
from lambdaship.services.validator import validate
from lambdaship.utils.session import make_client, make_session
from lambdaship.utils.tokens import blocking_sleep, short_token

logger = logging.getLogger(__name__)

PHASE_ACCOUNT = "resolve_account"
PHASE_BUILD = "build"
PHASE_ROLE = "provision_role"
PHASE_FUNCTION = "provision_function"
PHASE_CONSISTENCY = "await_consistency"
PHASE_INVOKE = "validate_invoke"
PHASE_DELETE = "delete"


@dataclass(frozen=True)
class DeployResult:
    name: str
    version: str
    action: str


def new_function(
    name: str,
    handler_path: str,
    account_id: str = "",
    *,
    managed_policies: str = "",
    inline_policy: str = "",
    resource_policy: str = "",
) -> FunctionDescriptor:
    """
    Describe a function to deploy. The three policy options are parsed here,
    so bad input fails before anything talks to AWS.
    """
    role_name = role_name_for(name)
    role = ExecutionRole(
        name=role_name,
        arn=role_arn_for(account_id, role_name) if account_id else "",
        managed_policies=parse_managed_policies(managed_policies),
        inline_policy=parse_inline_policy(inline_policy) if inline_policy else "",
    )
    permission = parse_resource_policy(resource_policy) if resource_policy else ResourcePermission()
    return FunctionDescriptor(
        name=name,
        handler_path=handler_path,
        role=role,
        permission=permission,
        account_id=account_id,
    )


@contextmanager
def _phase(name: str) -> Iterator[None]:
    logger.info(f"Starting {name}")
    try:
        yield
    except LambdashipError as e:
        logger.error(f"{name} failed: {e}")
        raise DeploymentFailed(name, e) from e


class Deployer:

    def __init__(
        self,
        iam: IAMService,
        lambda_service: LambdaService,
        *,
        accounts: Optional[AccountResolver] = None,
        builder: Builder = build,
        validator: Callable[[str], None] = validate,
        sleep: Sleep = blocking_sleep,
        token_factory: TokenFactory = short_token,
        config: Optional[DeployConfig] = None,
    ) -> None:
        self.iam = iam
        self.lambda_service = lambda_service
        self.accounts = accounts
        self.builder = builder
        self.validator = validator
        self.sleep = sleep
        self.token_factory = token_factory
        self.config = config or DeployConfig()

    @classmethod
    def from_config(
        cls,
        config: Optional[DeployConfig] = None,
        session_factory: Callable[..., boto3.Session] = boto3.Session,
    ) -> "Deployer":
        config = config or DeployConfig.from_env()
        session = make_session(config, session_factory)
        return cls(
            IAMService(make_client(session, "iam", config)),
            LambdaService(make_client(session, "lambda", config)),
            accounts=AccountResolver(make_client(session, "sts", config)),
            config=config,
        )

    def _bind_account(self, function: FunctionDescriptor) -> None:
        if function.account_id and function.role.arn:
            return
        if not function.account_id:
            if self.accounts is None:
                raise DeploymentFailed(PHASE_ACCOUNT, LambdashipError("no account id and no way to resolve one"))
            with _phase(PHASE_ACCOUNT):
                function.account_id = self.accounts.account_id()
        function.role.arn = role_arn_for(function.account_id, function.role.name)

    def deploy(self, function: FunctionDescriptor) -> DeployResult:
        self._bind_account(function)
        logger.debug(f"Deploying {to_json(function)}")

        with _phase(PHASE_BUILD):
            self.validator(function.handler_path)
            archive = self.builder(function.handler_path)

        with _phase(PHASE_ROLE):
            execute(prepare_role_action(function.role, self.iam, self.token_factory))

        with _phase(PHASE_FUNCTION):
            action = prepare_lambda_action(
                function,
                self.lambda_service,
                builder=lambda _path: archive,
                token_factory=self.token_factory,
                retry=self.config.create_retry,
                sleep=self.sleep,
            )
            execute(action)

        with _phase(PHASE_CONSISTENCY):
            version = wait_for_consistency(
                self.lambda_service, function.name, self.config.consistency_retry, self.sleep
            )

        with _phase(PHASE_INVOKE):
            validate_invocation(self.lambda_service, function.name, version)

        logger.info(f"Deployed {function.name} at version {version}")
        return DeployResult(name=function.name, version=version, action=action.kind)

    def delete(self, name: str) -> None:
        """
        Delete the function, then strip and delete its execution role. Roles
        lambdaship did not create are left alone.
        """
        with _phase(PHASE_DELETE):
            info = self.lambda_service.get_function(name)
            role_arn = info.get("Configuration", {}).get("Role", "")
            self.lambda_service.delete_function(name)

            role_name = role_name_from_arn(role_arn)
            if not role_name.startswith(ROLE_NAME_PREFIX):
                logger.warning(f"Role {role_name or role_arn!r} was not created by lambdaship, leaving it in place")
                return
            for policy_arn in self.iam.list_attached_policies(role_name):
                self.iam.detach_managed_policy(role_name, policy_arn)
            for policy_name in self.iam.list_inline_policies(role_name):
                self.iam.delete_inline_policy(role_name, policy_name)
            self.iam.delete_role(role_name)


def package(handler_path: str, out: BinaryIO) -> None:
    """Validate and build without any AWS access."""
    with _phase(PHASE_BUILD):
        validate(handler_path)
        package_to(handler_path, out)


def deploy(
    name: str,
    handler_path: str,
    *,
    managed_policies: str = "",
    inline_policy: str = "",
    resource_policy: str = "",
    config: Optional[DeployConfig] = None,
) -> DeployResult:
    function = new_function(
        name,
        handler_path,
        managed_policies=managed_policies,
        inline_policy=inline_policy,
        resource_policy=resource_policy,
    )
    return Deployer.from_config(config).deploy(function)


def delete(name: str, *, config: Optional[DeployConfig] = None) -> None:
    Deployer.from_config(config).delete(name)
