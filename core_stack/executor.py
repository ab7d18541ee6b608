"""Run stack reconciliations off the caller's thread.

:class:`ReconcileExecutor` hands each request to a worker pool and returns a
:class:`ReconciliationHandle` at once.  The handle completes exactly once
with a :class:`~core_stack.models.Success` or a
:class:`~core_stack.models.Failure`; the worker never lets an exception
escape.
"""

from typing import Any, Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
import threading

from . import log
from .config import ReconcilerSettings
from .errors import StackError, UnexpectedError
from .models import Failure, ReconciliationResult, StackRequest
from .parameters import resolve
from .provider import StackProvider
from .reconciler import StackReconciler

THREAD_NAME_PREFIX = "cfnUpdate"

ResultCallback = Callable[[ReconciliationResult], Any]


class ReconciliationHandle:
    """
    The eventual result of one submitted request.

    :param request: The request being reconciled
    :type request: StackRequest
    :param future: The future the worker completes
    :type future: Future
    :param cancel_event: Event the worker's wait loop watches
    :type cancel_event: threading.Event
    """

    def __init__(self, request: StackRequest, future: Future, cancel_event: threading.Event):
        self.request = request
        self._future = future
        self._cancel_event = cancel_event

    @property
    def stack_name(self) -> str:
        return self.request.name

    def result(self, timeout: float | None = None) -> ReconciliationResult:
        """Block until the result is delivered.

        Raises :class:`concurrent.futures.TimeoutError` if ``timeout`` elapses first.
        """
        return self._future.result(timeout)

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> None:
        """Stop the request.  Nothing is submitted if the worker has not started it yet.

        The handle still completes, with a Failure.  An operation CloudFormation
        already accepted keeps running on the provider side.
        """
        self._cancel_event.set()

    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def add_done_callback(self, fn: ResultCallback) -> None:
        """
        Call ``fn`` with the result once it is delivered.

        Each registered callback runs exactly once.  If the result is already
        available it runs immediately on the calling thread.
        """
        self._future.add_done_callback(lambda f: _deliver(fn, f.result(), self.stack_name))

    def __repr__(self):
        state = "done" if self.done() else "running"
        return "{}({}, {})".format(type(self).__name__, self.stack_name, state)


def _deliver(fn: ResultCallback, result: ReconciliationResult, stack_name: str) -> None:
    try:
        fn(result)
    except Exception as e:
        log.error("Result callback for stack '{}' raised {}: {}", stack_name, type(e).__name__, e)


class ReconcileExecutor:
    """
    Worker pool that reconciles stacks in the background.

    Build it once with a shared provider and reuse it for every request::

        provider = CloudFormationProvider(aws.cfn_client(region="eu-west-1"))
        with ReconcileExecutor(provider) as executor:
            handle = executor.update("my-stack", template, params=["Env=prod"], keep_params=["Region"])
            result = handle.result()

    :param provider: The provider shared by every worker
    :type provider: StackProvider
    :param settings: Worker count and reconciler settings
    :type settings: ReconcilerSettings | None
    """

    def __init__(self, provider: StackProvider, settings: ReconcilerSettings | None = None):
        self.settings = settings or ReconcilerSettings()
        self.reconciler = StackReconciler(provider, self.settings)
        self._pool = ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix=THREAD_NAME_PREFIX,
        )

    def update(
        self,
        name: str,
        template_body: str,
        params: Iterable[str] | None = None,
        keep_params: Iterable[str] | None = None,
        tags: dict[str, str] | None = None,
        on_complete: ResultCallback | None = None,
    ) -> ReconciliationHandle:
        """
        Create or update ``name`` from raw ``key=value`` overrides and keep keys.

        Parameters are resolved on the calling thread, so a malformed override
        raises :class:`~core_stack.errors.MalformedParameterError` here,
        before anything is submitted.

        :param name: The stack name
        :type name: str
        :param template_body: The template document
        :type template_body: str
        :param params: ``key=value`` overrides
        :type params: Iterable[str] | None
        :param keep_params: Keys whose previous value is kept on update
        :type keep_params: Iterable[str] | None
        :param tags: Tags to apply to the stack
        :type tags: dict[str, str] | None
        :param on_complete: Called once with the result
        :type on_complete: Callable | None
        :return: The handle for the submitted request
        :rtype: ReconciliationHandle
        """
        parameters = resolve(params, keep_params)
        request = StackRequest(
            name=name,
            template_body=template_body,
            parameters=parameters,
            tags=tags or {},
        )

        log.info("Updating/Creating CloudFormation stack {}", name)

        return self.submit(request, on_complete)

    def submit(self, request: StackRequest, on_complete: ResultCallback | None = None) -> ReconciliationHandle:
        """Submit a prepared request.  Returns immediately."""
        cancel_event = threading.Event()
        future = self._pool.submit(self._run, request, cancel_event)
        handle = ReconciliationHandle(request, future, cancel_event)
        if on_complete is not None:
            handle.add_done_callback(on_complete)
        return handle

    def _run(self, request: StackRequest, cancel_event: threading.Event) -> ReconciliationResult:
        """Worker body.  Always returns a result, never raises."""
        try:
            log.set_identity(request.name)

            result: ReconciliationResult = self.reconciler.apply(request, cancel_event)

        except StackError as e:
            log.error("Stack reconciliation failed - {}", e.message, error_type=type(e).__name__, details=e.details)
            result = Failure(stack_name=request.name, error=e)

        except Exception as e:
            error = UnexpectedError.wrap(e)
            log.error("Stack reconciliation failed - {}", error.message, error_type=type(e).__name__, exc_info=e)
            result = Failure(stack_name=request.name, error=error)

        finally:
            log.reset_identity()

        return result

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "ReconcileExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)
