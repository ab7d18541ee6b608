"""Create or update a CloudFormation stack and wait for it to finish.

The reconciler is a small state machine per request::

    INIT --exists==false--> CREATING --terminal success--> DONE_OK
    INIT --exists==true---> UPDATING --terminal success--> DONE_OK
    CREATING|UPDATING --terminal failure--> DONE_FAIL

It blocks the calling thread while it polls.  Run it through
:class:`~core_stack.executor.ReconcileExecutor` to keep the caller free.
"""

from typing import Any
from datetime import datetime, timezone
import threading
import time

from . import log
from .config import ReconcilerSettings
from .errors import (
    NoUpdatesError,
    ProviderCommunicationError,
    ReconcileCancelledError,
    ReconcileTimeoutError,
    StackOperationError,
)
from .inspector import StackInspector
from .models import (
    StackDescription,
    StackOperation,
    StackOutputs,
    StackRequest,
    StackState,
    Success,
)
from .provider import StackProvider

MAX_FAILED_EVENTS = 10


class StackReconciler:
    """
    Decide between create and update, submit the change and wait for it.

    One reconciler may serve many requests concurrently: it holds no
    per-request state.  Requests for the same stack name are not coordinated;
    CloudFormation rejects the second concurrent modification itself.

    :param provider: The provider used for every cloud call
    :type provider: StackProvider
    :param settings: Poll interval, deadline, capabilities and the no-update policy
    :type settings: ReconcilerSettings | None
    """

    def __init__(self, provider: StackProvider, settings: ReconcilerSettings | None = None):
        self.provider = provider
        self.inspector = StackInspector(provider)
        self.settings = settings or ReconcilerSettings()

    def reconcile(self, request: StackRequest, cancel_event: threading.Event | None = None) -> StackOutputs:
        """
        Reconcile the stack and return its outputs.

        :param request: The stack to create or update
        :type request: StackRequest
        :param cancel_event: When set, nothing further is submitted and the wait stops with :class:`ReconcileCancelledError`
        :type cancel_event: threading.Event | None
        :return: The stack outputs once the stack is COMPLETE
        :rtype: StackOutputs
        :raises StackOperationError: The operation was rejected or ended in a failed state
        :raises ProviderCommunicationError: The CloudFormation API could not be reached
        :raises ReconcileTimeoutError: No terminal state before the deadline
        :raises ReconcileCancelledError: The caller cancelled the request
        """
        return self.apply(request, cancel_event).outputs

    def apply(self, request: StackRequest, cancel_event: threading.Event | None = None) -> Success:
        """Same as :meth:`reconcile` but also reports which operation ran."""
        name = request.name
        started = datetime.now(timezone.utc)

        _raise_if_cancelled(name, cancel_event)

        exists = self.inspector.exists(name)
        _raise_if_cancelled(name, cancel_event)

        if exists:
            operation = StackOperation.UPDATE
            log.debug("Stack '{}' exists - updating", name)
            try:
                self.__update_stack(request)
            except NoUpdatesError as e:
                if not self.settings.no_update_is_success:
                    raise
                log.info("No updates required for stack '{}' - {}", name, e.reason)
                return Success(stack_name=name, operation=operation, outputs=self.provider.get_outputs(name))
        else:
            operation = StackOperation.CREATE
            log.debug("Stack '{}' does not exist - creating", name)
            self.__create_stack(request)

        description = self.wait_until_terminal(name, cancel_event, since=started)

        if description.state != StackState.COMPLETE:
            failed_events = self._capture_failed_events(name, since=started)
            reason = description.status_reason or f"Stack '{name}' ended in {description.status}"
            raise StackOperationError(
                reason,
                stack_name=name,
                status=description.status,
                failed_events=failed_events,
            )

        outputs = self.provider.get_outputs(name)
        log.info("Stack update complete", stack_status=description.status, outputs=len(outputs))
        return Success(stack_name=name, operation=operation, outputs=outputs)

    def wait_until_terminal(
        self,
        name: str,
        cancel_event: threading.Event | None = None,
        since: datetime | None = None,
    ) -> StackDescription:
        """
        Poll the stack until it is COMPLETE or FAILED.

        A stack that disappears while being waited on (for example a failed
        create that CloudFormation deleted) is reported as FAILED.

        :param name: The stack name
        :type name: str
        :param cancel_event: Stops the wait early when set
        :type cancel_event: threading.Event | None
        :param since: Only log stack events newer than this
        :type since: datetime | None
        :return: The terminal description
        :rtype: StackDescription
        """
        cancel_event = cancel_event or threading.Event()
        timeout = self.settings.timeout
        deadline = time.monotonic() + timeout if timeout else None
        seen_events: set[str] = set()

        while True:
            if cancel_event.is_set():
                raise ReconcileCancelledError(name)

            description = self.inspector.describe(name)
            self.__log_new_events(name, seen_events, since)

            if description.state.terminal:
                log.debug("Stack '{}' reached {}", name, description.status)
                return description

            if description.state == StackState.ABSENT:
                return StackDescription(
                    name=name,
                    status="DELETE_COMPLETE",
                    status_reason=f"Stack '{name}' no longer exists",
                )

            log.debug("Stack status: {} - {}", description.status, description.status_reason or "")

            wait = self.settings.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ReconcileTimeoutError(name, timeout, description.status)
                wait = min(wait, remaining)

            if cancel_event.wait(wait):
                raise ReconcileCancelledError(name)

    def __create_stack(self, request: StackRequest) -> None:
        parameters = request.creation_parameters
        dropped = len(request.parameters) - len(parameters)
        if dropped:
            log.debug("Dropping {} keep parameters on create of stack '{}'", dropped, request.name)

        stack_id = self.provider.create_stack(
            request.name,
            request.template_body,
            parameters,
            tags=request.tags,
            capabilities=self.settings.capabilities,
        )
        log.debug("Stack creation initiated with ID: {}", stack_id)

    def __update_stack(self, request: StackRequest) -> None:
        stack_id = self.provider.update_stack(
            request.name,
            request.template_body,
            request.update_parameters,
            tags=request.tags,
            capabilities=self.settings.capabilities,
        )
        log.debug("Stack update initiated for: {}", stack_id)

    def __log_new_events(self, name: str, seen_events: set[str], since: datetime | None) -> None:
        try:
            events = self.provider.describe_events(name)
        except ProviderCommunicationError as e:
            log.warning("Failed to read stack events for '{}': {}", name, e)
            return

        for event in reversed(events):
            event_id = event.get("EventId")
            if not event_id or event_id in seen_events:
                continue
            seen_events.add(event_id)
            if not _is_newer(event, since):
                continue
            log.info(
                "{} {} {} {}",
                event.get("ResourceType", ""),
                event.get("LogicalResourceId", ""),
                event.get("ResourceStatus", ""),
                event.get("ResourceStatusReason", ""),
            )

    def _capture_failed_events(self, name: str, since: datetime | None = None) -> list[dict[str, Any]]:
        """Collect the most recent failed resource events for diagnosis."""
        try:
            events = self.provider.describe_events(name)
        except ProviderCommunicationError as e:
            log.warning("Failed to capture stack events for '{}': {}", name, e)
            return []

        failed_events = []
        for event in events[:MAX_FAILED_EVENTS]:
            if "FAILED" not in event.get("ResourceStatus", "") or not _is_newer(event, since):
                continue
            failed_events.append(
                {
                    "ResourceType": event.get("ResourceType", ""),
                    "LogicalResourceId": event.get("LogicalResourceId", ""),
                    "ResourceStatus": event.get("ResourceStatus", ""),
                    "ResourceStatusReason": event.get("ResourceStatusReason", ""),
                }
            )
            log.warning(
                "Stack resource failed: {} ({}) - {} - {}",
                event.get("LogicalResourceId"),
                event.get("ResourceType"),
                event.get("ResourceStatus"),
                event.get("ResourceStatusReason", "No reason provided"),
            )
        return failed_events


def _is_newer(event: dict[str, Any], since: datetime | None) -> bool:
    timestamp = event.get("Timestamp")
    if since is None or not isinstance(timestamp, datetime):
        return True
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp >= since


def _raise_if_cancelled(name: str, cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        log.info("Reconciliation of stack '{}' cancelled before submission", name)
        raise ReconcileCancelledError(name)
