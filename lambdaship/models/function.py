# lambdaship/models/function.py
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, asdict
from typing import Any, List, Optional


DEFAULT_ASSUME_ROLE_POLICY = (
    '{"Version":"2012-10-17","Statement":[{"Effect":"Allow",'
    '"Principal":{"Service":"lambda.amazonaws.com"},"Action":"sts:AssumeRole"}]}'
)
BASIC_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
MANAGED_POLICY_PREFIX = "arn:aws:iam::aws:policy/"
ROLE_NAME_PREFIX = "lambdaship_exec_role_"

_SERVICE_PRINCIPAL = re.compile(r"^\{Service:(?P<name>[^}]*)\}$")
_ACCOUNT_PRINCIPAL = re.compile(r"^\{AWS:\[(?P<items>.*)\]\}$")


# Who, outside the function's own role, may invoke it
@dataclass(frozen=True)
class ResourcePermission:
    """
    ``principal`` holds the rendered form produced by the policy parser
    (``{Service:s3.amazonaws.com}`` or ``{AWS:["111122223333"]}``); a bare
    service name or account id is accepted too.
    """
    principal: str = ""
    source_arn: Optional[str] = None
    source_account: Optional[str] = None
    principal_org_id: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.principal

    def principals(self) -> List[str]:
        """Principal values in the form lambda:AddPermission accepts."""
        if self.is_empty():
            return []
        service = _SERVICE_PRINCIPAL.match(self.principal)
        if service:
            return [service.group("name")]
        accounts = _ACCOUNT_PRINCIPAL.match(self.principal)
        if accounts:
            items = [i.strip().strip("\"'") for i in accounts.group("items").split(",")]
            return [i for i in items if i]
        return [self.principal]


# The IAM role the function runs as
@dataclass
class ExecutionRole:
    name: str
    arn: str
    assume_role_policy: str = DEFAULT_ASSUME_ROLE_POLICY
    managed_policies: List[str] = field(default_factory=list)
    inline_policy: str = ""


@dataclass
class FunctionDescriptor:
    name: str
    handler_path: str
    role: ExecutionRole
    permission: ResourcePermission = field(default_factory=ResourcePermission)
    account_id: str = ""


def role_name_for(function_name: str) -> str:
    return ROLE_NAME_PREFIX + function_name.lower()


def role_arn_for(account_id: str, role_name: str) -> str:
    return f"arn:aws:iam::{account_id}:role/{role_name}"


def role_name_from_arn(role_arn: str) -> str:
    # arn:aws:iam::123456789012:role/path/name -> name
    return role_arn.rsplit("/", 1)[-1]


# ---- Helpers ----
def to_json(obj: Any, pretty: bool = False) -> str:
    if pretty:
        return json.dumps(asdict(obj), ensure_ascii=False, indent=2)
    return json.dumps(asdict(obj), ensure_ascii=False, separators=(",", ":"))


__all__ = [
    "DEFAULT_ASSUME_ROLE_POLICY",
    "BASIC_EXECUTION_POLICY_ARN",
    "MANAGED_POLICY_PREFIX",
    "ResourcePermission",
    "ExecutionRole",
    "FunctionDescriptor",
    "role_name_for",
    "role_arn_for",
    "role_name_from_arn",
    "to_json",
]
