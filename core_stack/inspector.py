"""Query whether a stack exists and what state it is in."""

from . import log
from . import aws
from .models import StackDescription, StackState
from .provider import StackProvider


class StackInspector:
    """
    Read-only view of stacks through a :class:`StackProvider`.

    A stack that is not found is reported as ``ABSENT``.  Every other provider
    error propagates unchanged (as a
    :class:`~core_stack.errors.ProviderCommunicationError`); the inspector
    never retries.
    """

    def __init__(self, provider: StackProvider):
        self.provider = provider

    def describe(self, name: str) -> StackDescription:
        stack = self.provider.describe_stack(name)
        if stack is None:
            return StackDescription(name=name)

        description = StackDescription(
            name=stack.get("StackName") or name,
            stack_id=stack.get("StackId"),
            status=stack.get("StackStatus"),
            status_reason=stack.get("StackStatusReason"),
            outputs=aws.transform_outputs(stack.get("Outputs")),
        )
        log.trace("Stack '{}' status is {} ({})", name, description.status, description.state)
        return description

    def state(self, name: str) -> StackState:
        return self.describe(name).state

    def exists(self, name: str) -> bool:
        return self.provider.stack_exists(name)
