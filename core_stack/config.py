"""Environment driven configuration for the reconciler and executor."""

from typing import Any
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_REGION = "CORE_STACK_REGION"
ENV_POLL_INTERVAL = "CORE_STACK_POLL_INTERVAL"
ENV_TIMEOUT = "CORE_STACK_TIMEOUT"
ENV_MAX_WORKERS = "CORE_STACK_MAX_WORKERS"
ENV_NO_UPDATE_IS_SUCCESS = "CORE_STACK_NO_UPDATE_IS_SUCCESS"
ENV_LOG_JSON = "CORE_STACK_LOG_JSON"

DEFAULT_REGION = "us-east-1"
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_TIMEOUT = 3600.0
DEFAULT_MAX_WORKERS = 4

CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]


def _is_true(value: str | None) -> bool:
    return value is not None and value.strip().lower() in ["true", "1", "yes", "y"]


def get_region() -> str:
    return os.getenv(ENV_REGION) or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or DEFAULT_REGION


def get_aws_profile() -> str | None:
    return os.getenv("AWS_PROFILE")


def get_poll_interval() -> float:
    value = os.getenv(ENV_POLL_INTERVAL)
    return float(value) if value else DEFAULT_POLL_INTERVAL


def get_timeout() -> float | None:
    """Deadline for the terminal-state wait.  ``0`` or ``none`` disables it."""
    value = os.getenv(ENV_TIMEOUT)
    if not value:
        return DEFAULT_TIMEOUT
    if value.strip().lower() in ["0", "none", "off"]:
        return None
    return float(value)


def get_max_workers() -> int:
    value = os.getenv(ENV_MAX_WORKERS)
    return int(value) if value else DEFAULT_MAX_WORKERS


def get_no_update_is_success() -> bool:
    return _is_true(os.getenv(ENV_NO_UPDATE_IS_SUCCESS))


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO")


def is_log_json() -> bool:
    return _is_true(os.getenv(ENV_LOG_JSON))


class ReconcilerSettings(BaseModel):
    """
    Tunables for the reconciler and the executor.

    :param poll_interval: Seconds between DescribeStacks polls
    :type poll_interval: float
    :param timeout: Seconds to wait for a terminal state, ``None`` waits forever
    :type timeout: float | None
    :param max_workers: Size of the executor's worker pool
    :type max_workers: int
    :param no_update_is_success: Treat "No updates are to be performed." as success
    :type no_update_is_success: bool
    :param capabilities: Capabilities acknowledged on create and update
    :type capabilities: list[str]
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, alias="PollInterval", ge=0)
    timeout: float | None = Field(default=DEFAULT_TIMEOUT, alias="Timeout", gt=0)
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, alias="MaxWorkers", ge=1)
    no_update_is_success: bool = Field(default=False, alias="NoUpdateIsSuccess")
    capabilities: list[str] = Field(default_factory=lambda: list(CAPABILITIES), alias="Capabilities")

    @classmethod
    def from_env(cls, **overrides: Any) -> "ReconcilerSettings":
        """
        Build settings from the environment; explicit keyword values win.

        Only the keywords actually passed override the environment, so
        ``from_env(timeout=None)`` disables the deadline.
        """
        values: dict[str, Any] = {
            "poll_interval": get_poll_interval(),
            "timeout": get_timeout(),
            "max_workers": get_max_workers(),
            "no_update_is_success": get_no_update_is_success(),
        }
        values.update(overrides)
        return cls(**values)


def load_settings(dotenv_path: str | None = None, **overrides: Any) -> ReconcilerSettings:
    """Load a ``.env`` file (if present) into the environment, then read settings."""
    load_dotenv(dotenv_path)
    return ReconcilerSettings.from_env(**overrides)
