# lambdaship/services/aws_clients.py
"""
Narrow wrappers over the IAM, Lambda and STS clients.

Only the calls the deployer needs are exposed. botocore errors are translated
here so the provisioning code can tell "not found" and "role not assumable yet"
apart from real failures without looking at error codes.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from lambdaship.errors import ProviderError, ResourceNotFound, RoleNotAssumable

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchEntity", "NoSuchEntityException", "ResourceNotFoundException"}
ROLE_NOT_ASSUMABLE_HINT = "cannot be assumed"

DEFAULT_RUNTIME = "provided.al2023"
DEFAULT_ARCHITECTURE = "arm64"
DEFAULT_HANDLER = "bootstrap"


def translate_client_error(e: ClientError, action: str) -> ProviderError:
    error = e.response.get("Error", {})
    code = error.get("Code", "")
    message = error.get("Message", "")
    if code in NOT_FOUND_CODES:
        return ResourceNotFound(f"{action}: {message or code}", code)
    if code == "InvalidParameterValueException" and ROLE_NOT_ASSUMABLE_HINT in message:
        return RoleNotAssumable(f"{action}: {message}", code)
    return ProviderError(f"{action} failed: {code} - {message}", code)


@contextmanager
def _calling(action: str) -> Iterator[None]:
    try:
        yield
    except ClientError as e:
        raise translate_client_error(e, action) from e
    except BotoCoreError as e:
        raise ProviderError(f"{action} failed: {e}") from e


class IAMService:
    """Identity capability used by role provisioning and teardown."""

    def __init__(self, client) -> None:
        self._iam = client

    def get_role(self, name: str) -> Dict[str, Any]:
        with _calling(f"get role {name}"):
            return self._iam.get_role(RoleName=name)["Role"]

    def create_role(self, name: str, assume_role_policy: str) -> Dict[str, Any]:
        with _calling(f"create role {name}"):
            role = self._iam.create_role(RoleName=name, AssumeRolePolicyDocument=assume_role_policy)["Role"]
        logger.info(f"Created role {name}")
        return role

    def attach_managed_policy(self, role_name: str, policy_arn: str) -> None:
        with _calling(f"attach {policy_arn} to {role_name}"):
            self._iam.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)

    def put_inline_policy(self, role_name: str, policy_name: str, document: str) -> None:
        with _calling(f"put inline policy {policy_name} on {role_name}"):
            self._iam.put_role_policy(RoleName=role_name, PolicyName=policy_name, PolicyDocument=document)

    def list_attached_policies(self, role_name: str) -> List[str]:
        arns: List[str] = []
        with _calling(f"list attached policies of {role_name}"):
            paginator = self._iam.get_paginator("list_attached_role_policies")
            for page in paginator.paginate(RoleName=role_name):
                arns.extend(p["PolicyArn"] for p in page.get("AttachedPolicies", []))
        return arns

    def detach_managed_policy(self, role_name: str, policy_arn: str) -> None:
        with _calling(f"detach {policy_arn} from {role_name}"):
            self._iam.detach_role_policy(RoleName=role_name, PolicyArn=policy_arn)

    def list_inline_policies(self, role_name: str) -> List[str]:
        names: List[str] = []
        with _calling(f"list inline policies of {role_name}"):
            paginator = self._iam.get_paginator("list_role_policies")
            for page in paginator.paginate(RoleName=role_name):
                names.extend(page.get("PolicyNames", []))
        return names

    def delete_inline_policy(self, role_name: str, policy_name: str) -> None:
        with _calling(f"delete inline policy {policy_name} from {role_name}"):
            self._iam.delete_role_policy(RoleName=role_name, PolicyName=policy_name)

    def delete_role(self, name: str) -> None:
        with _calling(f"delete role {name}"):
            self._iam.delete_role(RoleName=name)
        logger.info(f"Deleted role {name}")


class LambdaService:
    """Function capability used by function provisioning and the consistency gate."""

    def __init__(self, client) -> None:
        self._lambda = client

    def get_function(self, name: str) -> Dict[str, Any]:
        with _calling(f"get function {name}"):
            return self._lambda.get_function(FunctionName=name)

    def create_function(
        self,
        name: str,
        role_arn: str,
        archive: bytes,
        *,
        runtime: str = DEFAULT_RUNTIME,
        architecture: str = DEFAULT_ARCHITECTURE,
        handler: str = DEFAULT_HANDLER,
    ) -> Dict[str, Any]:
        with _calling(f"create function {name}"):
            return self._lambda.create_function(
                FunctionName=name,
                Role=role_arn,
                Handler=handler,
                Runtime=runtime,
                Architectures=[architecture],
                Code={"ZipFile": archive},
            )

    def update_function_code(self, name: str, archive: bytes, *, publish: bool = True) -> Dict[str, Any]:
        with _calling(f"update function code {name}"):
            return self._lambda.update_function_code(FunctionName=name, ZipFile=archive, Publish=publish)

    def publish_version(self, name: str) -> Optional[str]:
        with _calling(f"publish version of {name}"):
            return self._lambda.publish_version(FunctionName=name).get("Version")

    def invoke(self, name: str, version: str, mode: str = "DryRun") -> Dict[str, Any]:
        with _calling(f"invoke {name}:{version}"):
            return self._lambda.invoke(FunctionName=name, Qualifier=version, InvocationType=mode)

    def add_permission(self, grant: Dict[str, Any]) -> None:
        request = {k: v for k, v in grant.items() if v is not None}
        with _calling(f"add permission {request.get('StatementId')} to {request.get('FunctionName')}"):
            self._lambda.add_permission(**request)

    def delete_function(self, name: str) -> None:
        with _calling(f"delete function {name}"):
            self._lambda.delete_function(FunctionName=name)
        logger.info(f"Deleted function {name}")


class AccountResolver:
    """Looks up the account id the credentials belong to."""

    def __init__(self, client) -> None:
        self._sts = client

    def account_id(self) -> str:
        with _calling("get caller identity"):
            return self._sts.get_caller_identity()["Account"]


__all__ = [
    "IAMService",
    "LambdaService",
    "AccountResolver",
    "translate_client_error",
]
