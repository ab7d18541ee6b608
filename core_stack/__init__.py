"""Create or update CloudFormation stacks and wait for them to finish.

Components:

- parameters: resolve ``key=value`` overrides and keep keys
- inspector: stack existence and live state
- reconciler: create-or-update state machine and terminal-state wait
- executor: background worker pool delivering one result per request
"""

__version__ = "0.1.0"

from .config import ReconcilerSettings, load_settings
from .errors import (
    StackError,
    MalformedParameterError,
    ProviderCommunicationError,
    StackOperationError,
    NoUpdatesError,
    ReconcileTimeoutError,
    ReconcileCancelledError,
    UnexpectedError,
)
from .models import (
    StackParameter,
    StackRequest,
    StackState,
    StackOperation,
    StackOutputs,
    StackDescription,
    Success,
    Failure,
    ReconciliationResult,
)
from .parameters import resolve
from .provider import StackProvider, CloudFormationProvider
from .inspector import StackInspector
from .reconciler import StackReconciler
from .executor import ReconcileExecutor, ReconciliationHandle

__all__ = [
    "__version__",
    "ReconcilerSettings",
    "load_settings",
    "StackError",
    "MalformedParameterError",
    "ProviderCommunicationError",
    "StackOperationError",
    "NoUpdatesError",
    "ReconcileTimeoutError",
    "ReconcileCancelledError",
    "UnexpectedError",
    "StackParameter",
    "StackRequest",
    "StackState",
    "StackOperation",
    "StackOutputs",
    "StackDescription",
    "Success",
    "Failure",
    "ReconciliationResult",
    "resolve",
    "StackProvider",
    "CloudFormationProvider",
    "StackInspector",
    "StackReconciler",
    "ReconcileExecutor",
    "ReconciliationHandle",
]
