"""Turn raw ``key=value`` overrides and keep keys into stack parameters."""

from typing import Iterable

from pydantic import ValidationError

from .errors import MalformedParameterError
from .models import StackParameter


def parse_param(param: str) -> StackParameter:
    """
    Parse one ``key=value`` override.

    The string is split on the first ``=`` only, so values may contain ``=``.

    :param param: The raw override, e.g. ``"Env=prod"``
    :type param: str
    :return: A parameter carrying an explicit value
    :rtype: StackParameter
    :raises MalformedParameterError: If there is no ``=`` or the key is empty
    """
    i = param.find("=")
    if i < 0:
        raise MalformedParameterError(f"Missing = in param {param}", param)

    key = param[:i]
    value = param[i + 1 :]
    if not key.strip():
        raise MalformedParameterError(f"Missing key in param {param}", param)

    return StackParameter(key=key, value=value)


def parse_keep_param(key: str) -> StackParameter:
    """Build a reuse-previous-value parameter for ``key``."""
    if not key or not key.strip():
        raise MalformedParameterError(f"Invalid keep param '{key}'", key)
    return StackParameter(key=key, reuse_previous=True)


def parse_params(params: Iterable[str] | None) -> list[StackParameter]:
    if params is None:
        return []
    return [parse_param(param) for param in params]


def parse_keep_params(keep_params: Iterable[str] | None) -> list[StackParameter]:
    if keep_params is None:
        return []
    return [parse_keep_param(key) for key in keep_params]


def resolve(
    raw_overrides: Iterable[str] | None,
    raw_keep_keys: Iterable[str] | None = None,
) -> list[StackParameter]:
    """
    Resolve overrides and keep keys into one ordered parameter set.

    Overrides come first in input order, followed by the keep entries.  A key
    may appear only once across both inputs.

    Only the update path sends keep entries to CloudFormation; see
    :attr:`StackRequest.creation_parameters`.

    :param raw_overrides: ``key=value`` strings
    :type raw_overrides: Iterable[str] | None
    :param raw_keep_keys: Keys whose current stack value should be kept
    :type raw_keep_keys: Iterable[str] | None
    :return: The resolved parameters
    :rtype: list[StackParameter]
    :raises MalformedParameterError: On a missing separator, an empty key or a duplicate key
    """
    try:
        parameters = parse_params(raw_overrides) + parse_keep_params(raw_keep_keys)
    except ValidationError as e:
        raise MalformedParameterError(f"Invalid parameter: {e}") from e

    seen: set[str] = set()
    for parameter in parameters:
        if parameter.key in seen:
            raise MalformedParameterError(f"Duplicate parameter key '{parameter.key}'", parameter.key)
        seen.add(parameter.key)

    return parameters
