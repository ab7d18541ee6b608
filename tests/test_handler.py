import traceback
import pytest

from botocore.exceptions import ProfileNotFound

from core_stack.executor import ReconcileExecutor
from core_stack.handler import handler, result_to_response
from core_stack.errors import StackOperationError
from core_stack.models import Failure, StackOperation, Success

from .aws_fixtures import *
from .fake_provider import SpyProvider


@pytest.fixture(autouse=True)
def fast_polling(monkeypatch):
    monkeypatch.setenv("CORE_STACK_POLL_INTERVAL", "0")
    monkeypatch.setenv("CORE_STACK_TIMEOUT", "30")


@pytest.fixture
def event():
    return {
        "StackName": STACK_NAME,
        "TemplateBody": '{"Resources": {}}',
        "Params": ["Env=prod", "Build=ver1.0"],
        "KeepParams": ["Region"],
        "Tags": {"App": "My application"},
    }


def test_handler_creates_stack(event):

    try:
        provider = SpyProvider(exists=False, outputs={"Url": "https://x"})

        response = handler(event, None, provider=provider)

        assert response == {
            "Status": "success",
            "StackName": STACK_NAME,
            "Operation": "CREATE",
            "Outputs": {"Url": "https://x"},
        }

        creates = provider.calls_to("create_stack")
        assert len(creates) == 1
        assert [p.key for p in creates[0]["parameters"]] == ["Env", "Build"]
        assert creates[0]["tags"] == {"App": "My application"}

    except Exception as e:
        print(traceback.format_exc())
        assert False, str(e)


def test_handler_builds_boto_client(event, mock_session, mock_client):

    mock_client.describe_stacks.return_value = describe_response("UPDATE_COMPLETE", outputs={"Url": "https://y"})

    response = handler(dict(event, Region="ap-southeast-1"))

    assert response["Status"] == "success"
    assert response["Operation"] == "UPDATE"
    assert response["Outputs"] == {"Url": "https://y"}
    mock_session.session_class.assert_called_once()
    assert mock_session.session_class.call_args.kwargs["region_name"] == "ap-southeast-1"

    parameters = mock_client.update_stack.call_args.kwargs["Parameters"]
    assert parameters[-1] == {"ParameterKey": "Region", "UsePreviousValue": True}


def test_handler_stack_failure(event):

    provider = SpyProvider(
        exists=True,
        statuses=["UPDATE_ROLLBACK_COMPLETE"],
        status_reason="Resource update cancelled",
    )

    response = handler(event, provider=provider)

    assert response["Status"] == "failure"
    assert response["Message"] == "Resource update cancelled"
    assert response["ErrorType"] == "StackOperationError"


def test_handler_validation_error():

    response = handler({"StackName": STACK_NAME}, provider=SpyProvider())

    assert response["Status"] == "failure"
    assert response["ErrorType"] == "ValidationError"
    assert any(error["loc"] == ("TemplateBody",) for error in response["ValidationErrors"])


def test_handler_malformed_param(event):

    provider = SpyProvider()

    response = handler(dict(event, Params=["Env"]), provider=provider)

    assert response["Status"] == "failure"
    assert response["Message"] == "Missing = in param Env"
    assert response["ErrorType"] == "MalformedParameterError"
    assert provider.calls == []


def test_handler_non_mapping_event():

    provider = SpyProvider()

    response = handler(["not", "a", "dict"], provider=provider)

    assert response["Status"] == "failure"
    assert response["StackName"] is None
    assert response["ErrorType"] == "ValidationError"
    assert provider.calls == []


def test_handler_bad_environment(event, monkeypatch):

    monkeypatch.setenv("CORE_STACK_POLL_INTERVAL", "fast")
    provider = SpyProvider()

    response = handler(event, provider=provider)

    assert response["Status"] == "failure"
    assert response["StackName"] == STACK_NAME
    assert response["ErrorType"] == "ValueError"
    assert "fast" in response["Message"]
    assert provider.calls == []


def test_handler_client_construction_error(event, mock_session):

    mock_session.session_class.side_effect = ProfileNotFound(profile="deploy")

    response = handler(dict(event, Region="ap-southeast-1"))

    assert response["Status"] == "failure"
    assert response["ErrorType"] == "ProfileNotFound"
    assert "deploy" in response["Message"]


@pytest.mark.parametrize(
    "timeout,expected",
    [
        ({}, 30.0),
        ({"Timeout": 120}, 120.0),
        ({"Timeout": None}, None),
    ],
)
def test_handler_timeout(event, monkeypatch, timeout, expected):

    settings = []

    class RecordingExecutor(ReconcileExecutor):
        def __init__(self, provider, reconciler_settings=None):
            settings.append(reconciler_settings)
            super().__init__(provider, reconciler_settings)

    monkeypatch.setattr("core_stack.handler.ReconcileExecutor", RecordingExecutor)

    response = handler(dict(event, **timeout), provider=SpyProvider())

    assert response["Status"] == "success"
    assert settings[0].timeout == expected
    assert settings[0].max_workers == 1


def test_result_to_response():

    assert result_to_response(
        Success(stack_name=STACK_NAME, operation=StackOperation.UPDATE, outputs={"Url": "https://x"})
    ) == {
        "Status": "success",
        "StackName": STACK_NAME,
        "Operation": "UPDATE",
        "Outputs": {"Url": "https://x"},
    }

    assert result_to_response(Failure(stack_name=STACK_NAME, error=StackOperationError("failed"))) == {
        "Status": "failure",
        "StackName": STACK_NAME,
        "Message": "failed",
        "ErrorType": "StackOperationError",
    }
