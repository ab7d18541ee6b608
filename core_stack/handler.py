"""Synchronous entry point: reconcile one stack described by an event dict."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import log
from . import aws
from . import config
from .errors import MalformedParameterError
from .executor import ReconcileExecutor
from .models import Failure, ReconciliationResult
from .provider import CloudFormationProvider, StackProvider

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"


class UpdateStackEvent(BaseModel):
    """
    The event accepted by :func:`handler`.

    :param stack_name: The stack to create or update (required)
    :type stack_name: str
    :param template_body: The template document (required)
    :type template_body: str
    :param params: ``key=value`` overrides (optional)
    :type params: list[str]
    :param keep_params: Keys whose previous value is kept on update (optional)
    :type keep_params: list[str]
    :param tags: Tags to apply to the stack (optional)
    :type tags: dict[str, str]
    :param region: The region, defaults to the configured region (optional)
    :type region: str | None
    :param timeout: Seconds to wait for a terminal state.  Absent uses
        ``CORE_STACK_TIMEOUT``, ``null`` waits without a deadline (optional)
    :type timeout: float | None
    """

    model_config = ConfigDict(populate_by_name=True)

    stack_name: str = Field(..., alias="StackName", min_length=1)
    template_body: str = Field(..., alias="TemplateBody", min_length=1)
    params: list[str] = Field(default_factory=list, alias="Params")
    keep_params: list[str] = Field(default_factory=list, alias="KeepParams")
    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")
    region: str | None = Field(default=None, alias="Region")
    timeout: float | None = Field(default=None, alias="Timeout")


def result_to_response(result: ReconciliationResult) -> dict[str, Any]:
    if isinstance(result, Failure):
        return {
            "Status": STATUS_FAILURE,
            "StackName": result.stack_name,
            "Message": result.message,
            "ErrorType": type(result.error).__name__,
        }
    return {
        "Status": STATUS_SUCCESS,
        "StackName": result.stack_name,
        "Operation": str(result.operation) if result.operation else None,
        "Outputs": result.outputs,
    }


def handler(event: dict, context: Any | None = None, provider: StackProvider | None = None) -> dict:
    """
    Create or update the stack named in ``event`` and wait for the result.

    :param event: A dict that parses into :class:`UpdateStackEvent`
    :type event: dict
    :param context: Unused, accepted for Lambda compatibility
    :type context: Any | None
    :param provider: Provider to use instead of building a boto3 client
    :type provider: StackProvider | None
    :return: ``{"Status": "success", "Outputs": {...}}`` or ``{"Status": "failure", "Message": ...}``
    :rtype: dict

    Example:
        >>> response = handler({
        ...     "StackName": "my-application-stack",
        ...     "TemplateBody": template,
        ...     "Params": ["Env=prod"],
        ...     "KeepParams": ["Region"],
        ... })
        >>> response["Outputs"]["Url"]
    """
    log.setup(config.get_log_level(), json=config.is_log_json())

    log.trace("Entering core_stack.handler")

    try:
        request = UpdateStackEvent.model_validate(event)

        overrides: dict[str, Any] = {"max_workers": 1}
        if "timeout" in request.model_fields_set:
            overrides["timeout"] = request.timeout
        settings = config.ReconcilerSettings.from_env(**overrides)

        if provider is None:
            provider = CloudFormationProvider(aws.cfn_client(region=request.region))

        with ReconcileExecutor(provider, settings) as executor:
            handle = executor.update(
                request.stack_name,
                request.template_body,
                params=request.params,
                keep_params=request.keep_params,
                tags=request.tags,
            )
            result = handle.result()

        response = result_to_response(result)
        log.debug("Handler result: ", details=response)
        return response

    except ValidationError as e:
        log.error("Validation error parsing event: {}", e)
        validation_errors = [
            {
                "loc": error.get("loc", []),
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in e.errors()
        ]
        return {
            "Status": STATUS_FAILURE,
            "StackName": _stack_name(event),
            "Message": f"Validation error parsing event ({type(e).__name__}): {e.title}",
            "ErrorType": type(e).__name__,
            "ValidationErrors": validation_errors,
        }

    except MalformedParameterError as e:
        log.error("Invalid stack parameters: {}", e.message)
        return {
            "Status": STATUS_FAILURE,
            "StackName": _stack_name(event),
            "Message": e.message,
            "ErrorType": type(e).__name__,
        }

    except Exception as e:
        message = f"Error reconciling stack ({type(e).__name__}): {e}"
        log.error("Error in handler execution", details={"Message": message}, exc_info=e)
        return {
            "Status": STATUS_FAILURE,
            "StackName": _stack_name(event),
            "Message": message,
            "ErrorType": type(e).__name__,
        }


def _stack_name(event: Any) -> str | None:
    if isinstance(event, dict):
        return event.get("StackName")
    return None
