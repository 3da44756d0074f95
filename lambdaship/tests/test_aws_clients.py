import json
from unittest.mock import Mock

import boto3
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws

from lambdaship.errors import ProviderError, ResourceNotFound, RoleNotAssumable
from lambdaship.models.actions import execute
from lambdaship.models.function import BASIC_EXECUTION_POLICY_ARN, DEFAULT_ASSUME_ROLE_POLICY, ExecutionRole
from lambdaship.services.aws_clients import AccountResolver, IAMService, LambdaService
from lambdaship.services.role_provisioner import prepare_role_action
from lambdaship.tests.fakes import fixed_token

ROLE = "lambdaship_exec_role_test"


def _client_error(code, message="", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def iam_client(monkeypatch):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("MOTO_IAM_LOAD_MANAGED_POLICIES", "true")
    with mock_aws():
        yield boto3.client("iam", region_name="us-east-1")


def test_get_missing_role_is_not_found(iam_client):
    with pytest.raises(ResourceNotFound):
        IAMService(iam_client).get_role("nope")


def test_role_action_against_moto(iam_client):
    iam = IAMService(iam_client)
    role = ExecutionRole(
        name=ROLE,
        arn=f"arn:aws:iam::123456789012:role/{ROLE}",
        inline_policy=json.dumps({
            "Version": "2012-10-17",
            "Statement": [{"Effect": "Allow", "Action": "s3:GetObject", "Resource": "*"}],
        }),
    )
    execute(prepare_role_action(role, iam, fixed_token()))

    assert iam.get_role(ROLE)["RoleName"] == ROLE
    assert iam.list_attached_policies(ROLE) == [BASIC_EXECUTION_POLICY_ARN]
    assert iam.list_inline_policies(ROLE) == ["lambdaship_inline_policy_abcd1234"]

    # running it again only re-attaches
    action = prepare_role_action(role, iam, fixed_token("00000000"))
    assert action.create_role is None
    execute(action)


def test_role_teardown_against_moto(iam_client):
    iam = IAMService(iam_client)
    iam.create_role(ROLE, DEFAULT_ASSUME_ROLE_POLICY)
    iam.attach_managed_policy(ROLE, BASIC_EXECUTION_POLICY_ARN)
    iam.put_inline_policy(ROLE, "inline", json.dumps({
        "Version": "2012-10-17",
        "Statement": [{"Effect": "Allow", "Action": "logs:PutLogEvents", "Resource": "*"}],
    }))

    for arn in iam.list_attached_policies(ROLE):
        iam.detach_managed_policy(ROLE, arn)
    for name in iam.list_inline_policies(ROLE):
        iam.delete_inline_policy(ROLE, name)
    iam.delete_role(ROLE)

    with pytest.raises(ResourceNotFound):
        iam.get_role(ROLE)


def test_lambda_not_found_translation():
    client = Mock()
    client.get_function.side_effect = _client_error("ResourceNotFoundException", "Function not found")
    with pytest.raises(ResourceNotFound) as exc:
        LambdaService(client).get_function("test")
    assert exc.value.code == "ResourceNotFoundException"


def test_role_not_assumable_translation():
    client = Mock()
    client.create_function.side_effect = _client_error(
        "InvalidParameterValueException",
        "The role defined for the function cannot be assumed by Lambda.",
    )
    with pytest.raises(RoleNotAssumable):
        LambdaService(client).create_function("test", "arn:role", b"zip")


def test_other_invalid_parameter_errors_are_plain_provider_errors():
    client = Mock()
    client.create_function.side_effect = _client_error("InvalidParameterValueException", "Unzipped size too large")
    with pytest.raises(ProviderError) as exc:
        LambdaService(client).create_function("test", "arn:role", b"zip")
    assert not isinstance(exc.value, RoleNotAssumable)


def test_botocore_errors_become_provider_errors():
    client = Mock()
    client.publish_version.side_effect = EndpointConnectionError(endpoint_url="https://lambda")
    with pytest.raises(ProviderError):
        LambdaService(client).publish_version("test")


def test_create_function_request_shape():
    client = Mock()
    client.create_function.return_value = {"FunctionName": "test"}
    LambdaService(client).create_function("test", "arn:role", b"zip")

    client.create_function.assert_called_once_with(
        FunctionName="test",
        Role="arn:role",
        Handler="bootstrap",
        Runtime="provided.al2023",
        Architectures=["arm64"],
        Code={"ZipFile": b"zip"},
    )


def test_add_permission_drops_unset_conditions():
    client = Mock()
    LambdaService(client).add_permission({
        "FunctionName": "test",
        "StatementId": "sid",
        "Action": "lambda:InvokeFunction",
        "Principal": "s3.amazonaws.com",
        "SourceArn": None,
        "SourceAccount": "123456789012",
        "PrincipalOrgID": None,
    })
    client.add_permission.assert_called_once_with(
        FunctionName="test",
        StatementId="sid",
        Action="lambda:InvokeFunction",
        Principal="s3.amazonaws.com",
        SourceAccount="123456789012",
    )


def test_publish_and_invoke():
    client = Mock()
    client.publish_version.return_value = {"Version": "7"}
    client.invoke.return_value = {"StatusCode": 204}
    service = LambdaService(client)

    assert service.publish_version("test") == "7"
    assert service.invoke("test", "7")["StatusCode"] == 204
    client.invoke.assert_called_once_with(FunctionName="test", Qualifier="7", InvocationType="DryRun")


def test_account_resolver():
    client = Mock()
    client.get_caller_identity.return_value = {"Account": "123456789012"}
    assert AccountResolver(client).account_id() == "123456789012"
