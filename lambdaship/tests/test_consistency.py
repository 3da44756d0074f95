import pytest

from lambdaship.config import RetryPolicy
from lambdaship.errors import ConsistencyTimeout, InvocationValidationError, ProviderError
from lambdaship.services.consistency import validate_invocation, wait_for_consistency
from lambdaship.tests.fakes import FakeLambdaService, RecordingSleep


@pytest.mark.parametrize("failures", [0, 1, 9])
def test_returns_version_after_failures(failures):
    sleep = RecordingSleep()
    service = FakeLambdaService(inconsistent=failures)

    version = wait_for_consistency(service, "test", RetryPolicy(10, 3.0), sleep)

    assert version == "1"
    assert service.count("publish_version") == failures + 1
    assert sleep.delays == [3.0] * failures


def test_times_out_with_last_error():
    sleep = RecordingSleep()
    service = FakeLambdaService(inconsistent=None)

    with pytest.raises(ConsistencyTimeout) as exc:
        wait_for_consistency(service, "test", RetryPolicy(10, 3.0), sleep)

    assert service.count("publish_version") == 10
    assert exc.value.attempts == 10
    assert isinstance(exc.value.last_error, ProviderError)
    assert "never becomes consistent" in str(exc.value)


def test_dry_run_invocation_uses_published_version():
    service = FakeLambdaService()
    response = validate_invocation(service, "test", "3")

    assert response["StatusCode"] == 204
    assert service.calls == [("invoke", ("test", "3", "DryRun"))]


def test_dry_run_failures_are_surfaced():
    service = FakeLambdaService(invoke_error=ProviderError("denied", "AccessDeniedException"))
    with pytest.raises(InvocationValidationError):
        validate_invocation(service, "test", "1")

    service = FakeLambdaService(invoke_response={"StatusCode": 200, "FunctionError": "Unhandled"})
    with pytest.raises(InvocationValidationError):
        validate_invocation(service, "test", "1")
