"""Cloud provider operations consumed by the inspector and the reconciler."""

from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from . import log
from . import aws
from .errors import (
    THROTTLING_ERROR_CODES,
    NoUpdatesError,
    ProviderCommunicationError,
    StackOperationError,
)
from .models import StackParameter, StackOutputs

# Codes that mean the request never reached a decision about the stack
COMMUNICATION_ERROR_CODES = [
    "AccessDenied",
    "AccessDeniedException",
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidClientTokenId",
    "UnrecognizedClientException",
    "SignatureDoesNotMatch",
    "RequestExpired",
    "InternalFailure",
    "ServiceUnavailable",
    *THROTTLING_ERROR_CODES,
]


class StackProvider(Protocol):
    """The operations a cloud provider must offer to reconcile a stack."""

    def describe_stack(self, name: str) -> dict[str, Any] | None:
        """Return the raw stack description, or ``None`` if it does not exist."""
        ...

    def stack_exists(self, name: str) -> bool: ...

    def create_stack(
        self,
        name: str,
        template_body: str,
        parameters: list[StackParameter],
        tags: dict[str, str] | None = None,
        capabilities: list[str] | None = None,
    ) -> str: ...

    def update_stack(
        self,
        name: str,
        template_body: str,
        parameters: list[StackParameter],
        tags: dict[str, str] | None = None,
        capabilities: list[str] | None = None,
    ) -> str: ...

    def get_outputs(self, name: str) -> StackOutputs: ...

    def describe_events(self, name: str) -> list[dict[str, Any]]:
        """Return stack events, newest first."""
        ...


def _communication_error(e: Exception, operation: str, name: str) -> ProviderCommunicationError:
    if isinstance(e, ClientError):
        code = aws.error_code(e)
        message = aws.error_message(e)
    else:
        code = type(e).__name__
        message = str(e)
    return ProviderCommunicationError(
        f"{operation} failed for stack '{name}': {message}",
        code=code,
        operation=operation,
    )


class CloudFormationProvider:
    """
    :class:`StackProvider` backed by a boto3 CloudFormation client.

    The client is passed in and shared by reference.  The provider keeps no
    per-request state, so one instance serves all in-flight reconciliations.

    :param client: A boto3 CloudFormation client, see :func:`core_stack.aws.cfn_client`
    :type client: botocore.client.CloudFormation
    """

    def __init__(self, client: Any):
        self.client = client

    def describe_stack(self, name: str) -> dict[str, Any] | None:
        try:
            response = self.client.describe_stacks(StackName=name)
        except ClientError as e:
            if aws.is_not_found(e):
                log.debug("Stack '{}' does not exist", name)
                return None
            raise _communication_error(e, "DescribeStacks", name) from e
        except BotoCoreError as e:
            raise _communication_error(e, "DescribeStacks", name) from e

        stacks = response.get("Stacks") or []
        if not stacks:
            return None
        return stacks[0]

    def stack_exists(self, name: str) -> bool:
        return self.describe_stack(name) is not None

    def create_stack(
        self,
        name: str,
        template_body: str,
        parameters: list[StackParameter],
        tags: dict[str, str] | None = None,
        capabilities: list[str] | None = None,
    ) -> str:
        args = self.__stack_args(name, template_body, parameters, tags, capabilities)

        log.debug(
            "Creating stack with parameters: StackName={}, ParameterCount={}, TagCount={}",
            name,
            len(parameters),
            len(tags or {}),
        )

        response = self.__submit("CreateStack", self.client.create_stack, name, args)
        return response["StackId"]

    def update_stack(
        self,
        name: str,
        template_body: str,
        parameters: list[StackParameter],
        tags: dict[str, str] | None = None,
        capabilities: list[str] | None = None,
    ) -> str:
        args = self.__stack_args(name, template_body, parameters, tags, capabilities)

        log.debug(
            "Updating stack with parameters: StackName={}, ParameterCount={}, TagCount={}",
            name,
            len(parameters),
            len(tags or {}),
        )

        response = self.__submit("UpdateStack", self.client.update_stack, name, args)
        return response["StackId"]

    def get_outputs(self, name: str) -> StackOutputs:
        stack = self.describe_stack(name)
        if stack is None:
            raise StackOperationError(f"Stack '{name}' does not exist", stack_name=name)
        return aws.transform_outputs(stack.get("Outputs"))

    def describe_events(self, name: str) -> list[dict[str, Any]]:
        try:
            response = self.client.describe_stack_events(StackName=name)
        except (ClientError, BotoCoreError) as e:
            raise _communication_error(e, "DescribeStackEvents", name) from e
        return response.get("StackEvents", [])

    def __stack_args(
        self,
        name: str,
        template_body: str,
        parameters: list[StackParameter],
        tags: dict[str, str] | None,
        capabilities: list[str] | None,
    ) -> dict[str, Any]:
        args: dict[str, Any] = {
            "StackName": name,
            "TemplateBody": template_body,
            "Parameters": aws.transform_stack_parameters(parameters),
        }
        if capabilities:
            args["Capabilities"] = capabilities
        if tags:
            args["Tags"] = aws.transform_tag_hash(tags)
        return args

    def __submit(self, operation: str, call: Any, name: str, args: dict[str, Any]) -> dict[str, Any]:
        try:
            return call(**args)
        except ClientError as e:
            code = aws.error_code(e)
            message = aws.error_message(e)
            if code in COMMUNICATION_ERROR_CODES:
                raise _communication_error(e, operation, name) from e
            if aws.is_no_updates(e):
                raise NoUpdatesError(message, stack_name=name) from e
            log.debug("{} rejected for stack '{}': {} - {}", operation, name, code, message)
            raise StackOperationError(message, stack_name=name) from e
        except BotoCoreError as e:
            raise _communication_error(e, operation, name) from e
