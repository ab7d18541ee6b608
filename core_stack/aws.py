"""boto3 helpers: client construction and CloudFormation wire transforms."""

from typing import Any, Iterable

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from . import config
from .models import StackParameter, StackOutputs

NOT_FOUND_CODE = "ValidationError"
NOT_FOUND_MESSAGE = "does not exist"
NO_UPDATES_MESSAGE = "No updates are to be performed"

# One attempt per API call, the client itself never retries
CLIENT_CONFIG = Config(retries={"max_attempts": 1, "mode": "standard"})


def cfn_client(region: str | None = None, profile: str | None = None, session: Any = None) -> Any:
    """
    Create a CloudFormation client.

    Build one client per process and share it; boto3 clients are safe to use
    from several worker threads.

    :param region: The region, defaults to the configured region
    :type region: str | None
    :param profile: The AWS profile, defaults to ``AWS_PROFILE``
    :type profile: str | None
    :param session: An existing boto3 session to build the client from
    :type session: boto3.session.Session | None
    :return: A boto3 CloudFormation client
    :rtype: botocore.client.CloudFormation
    """
    if session is None:
        session_args = {"region_name": region or config.get_region()}
        profile = profile or config.get_aws_profile()
        if profile:
            session_args["profile_name"] = profile
        session = boto3.session.Session(**session_args)
    return session.client("cloudformation", config=CLIENT_CONFIG)


def transform_stack_parameters(parameters: Iterable[StackParameter]) -> list[dict[str, Any]]:
    return [p.to_cloudformation() for p in parameters]


def transform_tag_hash(tags: dict[str, str] | None) -> list[dict[str, str]]:
    if not tags:
        return []
    return [{"Key": key, "Value": value} for key, value in tags.items()]


def transform_outputs(outputs: list[dict[str, Any]] | None) -> StackOutputs:
    """Flatten a DescribeStacks ``Outputs`` list into a key/value mapping."""
    result: StackOutputs = {}
    for output in outputs or []:
        key = output.get("OutputKey")
        value = output.get("OutputValue")
        if key and value is not None:
            result[key] = value
    return result


def error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "")


def error_message(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Message", str(e))


def is_not_found(e: ClientError) -> bool:
    return error_code(e) == NOT_FOUND_CODE and NOT_FOUND_MESSAGE in error_message(e)


def is_no_updates(e: ClientError) -> bool:
    return NO_UPDATES_MESSAGE in error_message(e)
