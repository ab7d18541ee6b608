"""Data models for stack reconciliation requests and results."""

from typing import Any, Literal, Union
import enum

from pydantic import BaseModel, ConfigDict, Field, model_validator, field_validator

StackOutputs = dict[str, str]
"""Output key to output value, available once a stack is COMPLETE."""


class StackState(enum.Enum):
    """Live state of a stack, derived from the CloudFormation status.

    ABSENT: The stack does not exist
    CREATE_IN_PROGRESS: A create (or any non-update) operation is running
    UPDATE_IN_PROGRESS: An update operation is running
    COMPLETE: The last operation finished successfully
    FAILED: The last operation failed or was rolled back
    """

    ABSENT = "absent"
    CREATE_IN_PROGRESS = "create_in_progress"
    UPDATE_IN_PROGRESS = "update_in_progress"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (StackState.COMPLETE, StackState.FAILED)

    def __str__(self):
        return self.value


class StackOperation(enum.Enum):
    """The operation submitted for a request."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"

    def __str__(self):
        return self.value


COMPLETE_STATUSES = [
    "CREATE_COMPLETE",
    "UPDATE_COMPLETE",
    "IMPORT_COMPLETE",
]

FAILED_STATUSES = [
    "CREATE_FAILED",
    "UPDATE_FAILED",
    "DELETE_FAILED",
    "ROLLBACK_FAILED",
    "UPDATE_ROLLBACK_FAILED",
    "IMPORT_ROLLBACK_FAILED",
    "ROLLBACK_COMPLETE",
    "UPDATE_ROLLBACK_COMPLETE",
    "IMPORT_ROLLBACK_COMPLETE",
    "DELETE_COMPLETE",
]

UPDATE_IN_PROGRESS_STATUSES = [
    "UPDATE_IN_PROGRESS",
    "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS",
    "UPDATE_ROLLBACK_IN_PROGRESS",
    "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS",
]

CREATE_IN_PROGRESS_STATUSES = [
    "CREATE_IN_PROGRESS",
    "ROLLBACK_IN_PROGRESS",
    "REVIEW_IN_PROGRESS",
    "DELETE_IN_PROGRESS",
    "IMPORT_IN_PROGRESS",
    "IMPORT_ROLLBACK_IN_PROGRESS",
]


def state_from_status(stack_status: str | None) -> StackState:
    """
    Classify a raw CloudFormation stack status.

    A status of ``None`` means the stack was not found.  Statuses this table
    does not know are treated as still in progress so the caller keeps
    waiting rather than reporting a premature result.

    :param stack_status: The ``StackStatus`` value from DescribeStacks
    :type stack_status: str | None
    :return: The derived state
    :rtype: StackState
    """
    if stack_status is None:
        return StackState.ABSENT
    if stack_status in COMPLETE_STATUSES:
        return StackState.COMPLETE
    if stack_status in FAILED_STATUSES:
        return StackState.FAILED
    if stack_status in UPDATE_IN_PROGRESS_STATUSES:
        return StackState.UPDATE_IN_PROGRESS
    if stack_status in CREATE_IN_PROGRESS_STATUSES:
        return StackState.CREATE_IN_PROGRESS
    if stack_status.endswith("_FAILED"):
        return StackState.FAILED
    if stack_status.startswith("UPDATE_"):
        return StackState.UPDATE_IN_PROGRESS
    return StackState.CREATE_IN_PROGRESS


class StackParameter(BaseModel):
    """
    A single stack parameter.

    Exactly one mode is active: an explicit ``value``, or ``reuse_previous``
    which keeps the value currently stored on the stack.

    :param key: The template parameter name
    :type key: str
    :param value: The explicit value (absent when reusing the previous value)
    :type value: str | None
    :param reuse_previous: Keep the stack's current value for this parameter
    :type reuse_previous: bool
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str = Field(..., alias="ParameterKey", min_length=1)
    value: str | None = Field(default=None, alias="ParameterValue")
    reuse_previous: bool = Field(default=False, alias="UsePreviousValue")

    @model_validator(mode="after")
    def validate_mode(self) -> "StackParameter":
        if self.reuse_previous and self.value is not None:
            raise ValueError(f"Parameter '{self.key}' cannot both reuse the previous value and set a value")
        if not self.reuse_previous and self.value is None:
            raise ValueError(f"Parameter '{self.key}' must have a value or reuse the previous value")
        return self

    def to_cloudformation(self) -> dict[str, Any]:
        """Render the parameter in the shape the CloudFormation API expects."""
        if self.reuse_previous:
            return {"ParameterKey": self.key, "UsePreviousValue": True}
        return {"ParameterKey": self.key, "ParameterValue": self.value}

    def __str__(self):
        if self.reuse_previous:
            return f"{self.key} (previous value)"
        return f"{self.key}={self.value}"


class StackRequest(BaseModel):
    """
    A request to create or update one stack.

    Immutable once built.  The request is consumed once by the reconciler.

    :param name: The stack name
    :type name: str
    :param template_body: The template document, already read by the caller
    :type template_body: str
    :param parameters: Explicit and reuse-previous parameters, in order
    :type parameters: list[StackParameter]
    :param tags: Tags to apply to the stack (optional)
    :type tags: dict[str, str]
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., alias="StackName", min_length=1)
    template_body: str = Field(..., alias="TemplateBody", min_length=1)
    parameters: tuple[StackParameter, ...] = Field(default_factory=tuple, alias="Parameters")
    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")

    @field_validator("parameters", mode="before")
    @classmethod
    def validate_parameters(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, list):
            return tuple(value)
        return value

    @model_validator(mode="after")
    def validate_unique_keys(self) -> "StackRequest":
        seen: set[str] = set()
        for parameter in self.parameters:
            if parameter.key in seen:
                raise ValueError(f"Duplicate parameter key '{parameter.key}'")
            seen.add(parameter.key)
        return self

    @property
    def creation_parameters(self) -> list[StackParameter]:
        """Explicit overrides only.  Reuse-previous is undefined for a new stack."""
        return [p for p in self.parameters if not p.reuse_previous]

    @property
    def update_parameters(self) -> list[StackParameter]:
        """Overrides followed by the keep-list."""
        return list(self.parameters)


class StackDescription(BaseModel):
    """Live metadata for one stack as returned by the inspector."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., alias="StackName")
    stack_id: str | None = Field(default=None, alias="StackId")
    status: str | None = Field(default=None, alias="StackStatus")
    status_reason: str | None = Field(default=None, alias="StackStatusReason")
    outputs: StackOutputs = Field(default_factory=dict, alias="Outputs")

    @property
    def state(self) -> StackState:
        return state_from_status(self.status)

    @property
    def exists(self) -> bool:
        return self.state != StackState.ABSENT


class Success(BaseModel):
    """The stack reached COMPLETE; carries its outputs."""

    kind: Literal["success"] = "success"
    stack_name: str
    operation: StackOperation | None = None
    outputs: StackOutputs = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


class Failure(BaseModel):
    """The reconciliation failed; carries the error."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["failure"] = "failure"
    stack_name: str
    error: Exception

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)


ReconciliationResult = Union[Success, Failure]
