import pytest

from core_stack.errors import ProviderCommunicationError
from core_stack.inspector import StackInspector
from core_stack.models import StackState
from core_stack.provider import CloudFormationProvider

from .aws_fixtures import *


@pytest.fixture
def inspector(mock_client):
    return StackInspector(CloudFormationProvider(mock_client))


def test_absent_stack(inspector, mock_client):

    mock_client.describe_stacks.side_effect = not_found_error()

    assert inspector.exists(STACK_NAME) is False
    assert inspector.state(STACK_NAME) == StackState.ABSENT

    description = inspector.describe(STACK_NAME)
    assert description.name == STACK_NAME
    assert description.status is None
    assert description.outputs == {}


def test_existing_stack(inspector, mock_client):

    mock_client.describe_stacks.return_value = describe_response(
        "UPDATE_ROLLBACK_COMPLETE",
        outputs={"Url": "https://x"},
        reason="Resource update cancelled",
    )

    description = inspector.describe(STACK_NAME)

    assert inspector.exists(STACK_NAME) is True
    assert description.stack_id == STACK_ID
    assert description.status == "UPDATE_ROLLBACK_COMPLETE"
    assert description.status_reason == "Resource update cancelled"
    assert description.state == StackState.FAILED
    assert description.outputs == {"Url": "https://x"}


def test_in_progress_stack(inspector, mock_client):

    mock_client.describe_stacks.return_value = describe_response("CREATE_IN_PROGRESS")

    assert inspector.state(STACK_NAME) == StackState.CREATE_IN_PROGRESS


def test_provider_errors_propagate(inspector, mock_client):

    mock_client.describe_stacks.side_effect = client_error("ExpiredToken", "The security token has expired")

    with pytest.raises(ProviderCommunicationError):
        inspector.exists(STACK_NAME)

    assert mock_client.describe_stacks.call_count == 1
