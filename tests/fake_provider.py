"""In-memory StackProvider that records every call."""

from typing import Any
import threading

from core_stack.models import StackParameter


class SpyProvider:
    """
    Provider double for the reconciler and executor tests.

    ``statuses`` is consumed one entry per describe after the stack exists;
    the last entry repeats forever.
    """

    def __init__(
        self,
        exists: bool = False,
        statuses: list[str] | None = None,
        outputs: dict[str, str] | None = None,
        status_reason: str | None = None,
        create_error: Exception | None = None,
        update_error: Exception | None = None,
        events: list[dict[str, Any]] | None = None,
    ):
        self.exists = exists
        self.statuses = list(statuses or ["CREATE_COMPLETE"])
        self.outputs = outputs or {}
        self.status_reason = status_reason
        self.create_error = create_error
        self.update_error = update_error
        self.events = events or []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def _record(self, operation: str, **kwargs):
        with self._lock:
            self.calls.append((operation, kwargs))

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for op, kwargs in self.calls if op == operation]

    def describe_stack(self, name: str) -> dict[str, Any] | None:
        self._record("describe_stack", name=name)
        if not self.exists:
            return None
        with self._lock:
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return {
            "StackName": name,
            "StackId": f"arn:aws:cloudformation:us-east-1:123456789012:stack/{name}/1",
            "StackStatus": status,
            "StackStatusReason": self.status_reason,
            "Outputs": [{"OutputKey": k, "OutputValue": v} for k, v in self.outputs.items()],
        }

    def stack_exists(self, name: str) -> bool:
        self._record("stack_exists", name=name)
        return self.exists

    def create_stack(
        self,
        name: str,
        template_body: str,
        parameters: list[StackParameter],
        tags: dict[str, str] | None = None,
        capabilities: list[str] | None = None,
    ) -> str:
        self._record(
            "create_stack",
            name=name,
            template_body=template_body,
            parameters=list(parameters),
            tags=tags,
            capabilities=capabilities,
        )
        if self.create_error is not None:
            raise self.create_error
        self.exists = True
        return f"arn:aws:cloudformation:us-east-1:123456789012:stack/{name}/1"

    def update_stack(
        self,
        name: str,
        template_body: str,
        parameters: list[StackParameter],
        tags: dict[str, str] | None = None,
        capabilities: list[str] | None = None,
    ) -> str:
        self._record(
            "update_stack",
            name=name,
            template_body=template_body,
            parameters=list(parameters),
            tags=tags,
            capabilities=capabilities,
        )
        if self.update_error is not None:
            raise self.update_error
        return f"arn:aws:cloudformation:us-east-1:123456789012:stack/{name}/1"

    def get_outputs(self, name: str) -> dict[str, str]:
        self._record("get_outputs", name=name)
        return dict(self.outputs)

    def describe_events(self, name: str) -> list[dict[str, Any]]:
        self._record("describe_events", name=name)
        return list(self.events)
