# lambdaship/services/policy_parser.py
"""
Parsers for the three policy flags accepted by ``lambdaship deploy``.

Resource policies are parsed structurally when the text is valid JSON and by
pattern matching otherwise, so hand-edited documents with trailing commas still
yield their principal and conditions. Duplicate keys are kept: people write a
second ``StringEquals`` block for the org condition instead of merging it.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional

from lambdaship.errors import EmptyInlinePolicy, InvalidInlinePolicy, MissingPrincipal
from lambdaship.models.function import MANAGED_POLICY_PREFIX, ResourcePermission

logger = logging.getLogger(__name__)

_PRINCIPAL_RE = re.compile(r'"Principal":\{(?:("AWS":\[(.*?)\])|("Service":"(.*?)"))\}')
_ARN_CONDITION_RE = re.compile(r'"ArnLike":\{"AWS:SourceArn":"([^"]+)"\}')
_ACCOUNT_CONDITION_RE = re.compile(r'"StringEquals":\{"AWS:SourceAccount":"([^"]+)"\}')
_ORG_CONDITION_RE = re.compile(r'"StringEquals":\{"aws:PrincipalOrgID":"([^"]+)"\}')

# (condition operator, lower-cased condition key) -> ResourcePermission field
_CONDITIONS = {
    ("ArnLike", "aws:sourcearn"): "source_arn",
    ("StringEquals", "aws:sourceaccount"): "source_account",
    ("StringEquals", "aws:principalorgid"): "principal_org_id",
}


def remove_whitespace(text: str) -> str:
    return "".join(ch for ch in text if not ch.isspace())


def _remove_quotes(text: str) -> str:
    return text.replace('"', "").replace("'", "")


class _Pairs(list):
    """JSON object that keeps every key/value pair, duplicates included."""

    def get_all(self, key: str) -> List[Any]:
        return [v for k, v in self if k == key]

    def first(self, key: str) -> Any:
        values = self.get_all(key)
        return values[0] if values else None


def _render_accounts(accounts: Iterable[Any]) -> str:
    return "{AWS:[%s]}" % ",".join(json.dumps(a, ensure_ascii=False, separators=(",", ":")) for a in accounts)


def _statements(document: Any) -> List[_Pairs]:
    if not isinstance(document, _Pairs):
        return []
    if document.get_all("Principal"):
        return [document]
    out: List[_Pairs] = []
    for value in document.get_all("Statement"):
        items = value if isinstance(value, list) else [value]
        out.extend(s for s in items if isinstance(s, _Pairs))
    return out


def _structured_principal(principal: Any) -> Optional[str]:
    if not isinstance(principal, _Pairs):
        return None
    accounts = principal.first("AWS")
    if isinstance(accounts, list):
        return _render_accounts(accounts)
    if isinstance(accounts, str):
        return _render_accounts([accounts])
    service = principal.first("Service")
    if isinstance(service, str) and service:
        return "{Service:%s}" % service
    return None


def _parse_structured(document: Any) -> ResourcePermission:
    principal = None
    conditions = {}
    for statement in _statements(document):
        if principal is None:
            principal = _structured_principal(statement.first("Principal"))
        for block in statement.get_all("Condition"):
            if not isinstance(block, _Pairs):
                continue
            for operator, clause in block:
                if not isinstance(clause, _Pairs):
                    continue
                for key, value in clause:
                    name = _CONDITIONS.get((operator, key.lower()))
                    if name and isinstance(value, str) and name not in conditions:
                        conditions[name] = value
    if principal is None:
        raise MissingPrincipal()
    return ResourcePermission(principal=principal, **conditions)


def _parse_patterns(policy: str) -> ResourcePermission:
    match = _PRINCIPAL_RE.search(policy)
    if match is None:
        raise MissingPrincipal()
    if match.group(2):
        principal = "{AWS:[%s]}" % match.group(2)
    else:
        principal = "{Service:%s}" % match.group(4)

    def _first(pattern: "re.Pattern[str]") -> Optional[str]:
        found = pattern.search(policy)
        return found.group(1) if found else None

    return ResourcePermission(
        principal=principal,
        source_arn=_first(_ARN_CONDITION_RE),
        source_account=_first(_ACCOUNT_CONDITION_RE),
        principal_org_id=_first(_ORG_CONDITION_RE),
    )


def parse_resource_policy(policy: str) -> ResourcePermission:
    """
    Extract the principal and the SourceArn / SourceAccount / PrincipalOrgID
    conditions from a Lambda resource policy document.

    Raises MissingPrincipal when no ``AWS`` or ``Service`` principal is present.
    """
    policy = remove_whitespace(policy)
    try:
        document = json.loads(policy, object_pairs_hook=_Pairs)
    except json.JSONDecodeError:
        logger.info("resource policy is not valid JSON, falling back to pattern matching")
        return _parse_patterns(policy)
    return _parse_structured(document)


def parse_managed_policies(policies: str) -> List[str]:
    """
    Expand a comma separated list of managed policies to ARNs.

    Given the AWS managed policy ``AmazonS3ReadOnlyAccess`` it may be specified as
    either its full ARN or its bare name; bare names are placed under
    ``arn:aws:iam::aws:policy/``.
    """
    if not policies:
        return []
    cleaned = _remove_quotes(remove_whitespace(policies))
    return expand_managed_policies(p for p in cleaned.split(",") if p)


def expand_managed_policies(policy_arns: Iterable[str]) -> List[str]:
    expanded = []
    for arn in policy_arns:
        if arn.startswith("arn:"):
            expanded.append(arn)
        else:
            expanded.append(MANAGED_POLICY_PREFIX + arn)
    return expanded


def parse_inline_policy(policy: str) -> str:
    """Check an inline policy is JSON and return it with whitespace removed.

    This only catches obvious mistakes; IAM still validates the grammar.
    """
    if policy == "":
        raise EmptyInlinePolicy()
    try:
        json.loads(policy)
    except json.JSONDecodeError as e:
        raise InvalidInlinePolicy(f"parsing failure for inline policy: {e}") from e
    return remove_whitespace(policy)


__all__ = [
    "parse_resource_policy",
    "parse_managed_policies",
    "expand_managed_policies",
    "parse_inline_policy",
    "remove_whitespace",
]
