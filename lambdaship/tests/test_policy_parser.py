import pytest

from lambdaship.errors import EmptyInlinePolicy, InvalidInlinePolicy, MissingPrincipal
from lambdaship.models.function import ResourcePermission
from lambdaship.services.policy_parser import (
    expand_managed_policies,
    parse_inline_policy,
    parse_managed_policies,
    parse_resource_policy,
)


SERVICE_POLICY = """{
    "Version": "2012-10-17",
    "Id": "default",
    "Statement": [
        {
            "Sid": "lambda-allow-s3-my-function",
            "Effect": "Allow",
            "Principal": {
              "Service": "s3.amazonaws.com"
            },
            "Action": "lambda:InvokeFunction",
            "Resource":  "arn:aws:lambda:us-east-2:123456789012:function:my-function",
            "Condition": {
              "StringEquals": {
                "AWS:SourceAccount": "123456789012"
              },
              "ArnLike": {
                "AWS:SourceArn": "arn:aws:s3:::DOC-EXAMPLE-BUCKET"
              },
\t            "StringEquals": {
                "aws:PrincipalOrgID": "o-a1b2c3d4e5f"
              }
            }
        }
     ]
}"""

ACCOUNT_POLICY = """{
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {
              "AWS": [
 \t\t\t\t "123456789012",
  \t\t\t "555555555555"
  \t\t\t]
            },
            "Action": "lambda:InvokeFunction",
            "Condition": {
\t\t\t\t\t"ArnLike": {
                "AWS:SourceArn": "arn:aws:s3:::DOC-EXAMPLE-BUCKET"
              },
\t            "StringEquals": {
                "aws:PrincipalOrgID": "o-a1b2c3d4e5f"
              }
            }
        }
     ]
}"""

# trailing comma: not JSON, so the pattern fallback handles it
MISSING_PRINCIPAL = """{
    "Version": "2012-10-17",
    "Statement": [
        {
            "Sid": "lambda-allow-s3-my-function",
            "Effect": "Allow",
            "Action": "lambda:InvokeFunction",
            "Resource":  "arn:aws:lambda:us-east-2:123456789012:function:my-function",
        }
     ]
}"""


def test_service_principal_with_all_conditions():
    got = parse_resource_policy(SERVICE_POLICY)
    assert got == ResourcePermission(
        principal="{Service:s3.amazonaws.com}",
        source_account="123456789012",
        source_arn="arn:aws:s3:::DOC-EXAMPLE-BUCKET",
        principal_org_id="o-a1b2c3d4e5f",
    )


def test_account_principals_keep_order_and_duplicates():
    got = parse_resource_policy(ACCOUNT_POLICY)
    assert got.principal == '{AWS:["123456789012","555555555555"]}'
    assert got.source_arn == "arn:aws:s3:::DOC-EXAMPLE-BUCKET"
    assert got.principal_org_id == "o-a1b2c3d4e5f"
    assert got.source_account is None

    dup = parse_resource_policy('{"Principal":{"AWS":["1","1","0"]}}')
    assert dup.principal == '{AWS:["1","1","0"]}'


def test_non_ascii_principal_is_kept_verbatim():
    structured = parse_resource_policy('{"Principal":{"AWS":["café"]}}')
    fallback = parse_resource_policy('{"Principal":{"AWS":["café"]},}')
    assert structured.principal == '{AWS:["café"]}'
    assert fallback.principal == structured.principal


def test_missing_principal_raises():
    with pytest.raises(MissingPrincipal):
        parse_resource_policy(MISSING_PRINCIPAL)
    with pytest.raises(MissingPrincipal):
        parse_resource_policy('{"Statement":[{"Effect":"Allow"}]}')


@pytest.mark.parametrize("conditions,expected", [
    ({}, {}),
    ({"ArnLike": '"ArnLike":{"AWS:SourceArn":"arn:aws:sns:us-east-1:1:t"}'},
     {"source_arn": "arn:aws:sns:us-east-1:1:t"}),
    ({"Account": '"StringEquals":{"AWS:SourceAccount":"111122223333"}'},
     {"source_account": "111122223333"}),
    ({"Org": '"StringEquals":{"aws:PrincipalOrgID":"o-xyz"}',
      "Account": '"StringEquals":{"AWS:SourceAccount":"111122223333"}'},
     {"source_account": "111122223333", "principal_org_id": "o-xyz"}),
])
def test_conditions_are_independent(conditions, expected):
    condition = ",".join(conditions.values())
    body = '{"Statement":[{"Principal":{"Service":"sns.amazonaws.com"},"Condition":{%s}}]}' % condition
    got = parse_resource_policy(body)
    assert got.principal == "{Service:sns.amazonaws.com}"
    assert got.source_arn == expected.get("source_arn")
    assert got.source_account == expected.get("source_account")
    assert got.principal_org_id == expected.get("principal_org_id")

    # same answer from the pattern fallback
    broken = body[:-2] + ",}]}"
    assert parse_resource_policy(broken) == got


def test_principals_for_add_permission():
    assert parse_resource_policy(SERVICE_POLICY).principals() == ["s3.amazonaws.com"]
    assert parse_resource_policy(ACCOUNT_POLICY).principals() == ["123456789012", "555555555555"]
    assert ResourcePermission().principals() == []
    assert ResourcePermission(principal="s3.amazonaws.com").principals() == ["s3.amazonaws.com"]


def test_managed_policies_mixed_input():
    got = parse_managed_policies("S3FullAccess, arn:aws:iam::aws:policy/AmazonDynamoDBFullAccess")
    assert got == [
        "arn:aws:iam::aws:policy/S3FullAccess",
        "arn:aws:iam::aws:policy/AmazonDynamoDBFullAccess",
    ]


def test_managed_policies_empty_and_quoted():
    assert parse_managed_policies("") == []
    assert parse_managed_policies('"AWSLambdaExecute"') == ["arn:aws:iam::aws:policy/AWSLambdaExecute"]


@pytest.mark.parametrize("policies", [
    ["AmazonS3ReadOnlyAccess"],
    ["arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole", "ReadOnlyAccess"],
    [],
])
def test_expand_is_idempotent(policies):
    once = expand_managed_policies(policies)
    assert expand_managed_policies(once) == once


def test_inline_policy():
    assert parse_inline_policy('{ "Version": "2012-10-17" }') == '{"Version":"2012-10-17"}'
    with pytest.raises(EmptyInlinePolicy):
        parse_inline_policy("")
    with pytest.raises(InvalidInlinePolicy) as exc:
        parse_inline_policy("{not json")
    assert exc.value.__cause__ is not None
