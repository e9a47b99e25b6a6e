"""
Per-call store options.

Effective options are built fresh for every call from three layers:
built-in defaults, the store's instance snapshot, and call-site overrides.
Each layer is an immutable StoreOptions; merging returns a new value.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .exceptions import ConfigurationError
from .operations import ResponseInfo
from .policy import DEFAULT_POLICY, CachePolicy, parse_policy

SuccessCallback = Callable[[Any, ResponseInfo], None]
ErrorCallback = Callable[[Exception, ResponseInfo], None]
CompleteCallback = Callable[[], None]


def _noop(*args: Any) -> None:
    return None


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class StoreOptions:
    """Effective options for one store call.

    Attributes:
        policy: Cache policy for the call
        store: Backend sub-options passed to every backend call
        success: Called with (response, info) on success
        error: Called with (error, info) on failure
        complete: Called once everything, including cache maintenance, settled
    """

    policy: CachePolicy = DEFAULT_POLICY
    store: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))
    success: SuccessCallback = _noop
    error: ErrorCallback = _noop
    complete: CompleteCallback = _noop

    def merge(self, overrides: Mapping[str, Any] | None = None) -> StoreOptions:
        """Return new options with ``overrides`` layered on top of these.

        Missing or None entries keep this layer's value.

        Raises:
            ConfigurationError: For unknown option names or policy values
        """
        if not overrides:
            return self

        unknown = set(overrides) - OPTION_NAMES
        if unknown:
            raise ConfigurationError(
                "options", f"unrecognized option(s): {', '.join(sorted(unknown))}"
            )

        changes: dict[str, Any] = {}
        for name, value in overrides.items():
            if value is None:
                continue
            if name == "policy":
                value = parse_policy(value)
            elif name == "store":
                if not isinstance(value, Mapping):
                    raise ConfigurationError("store", "must be a mapping", value)
                value = _frozen(value)
            elif not callable(value):
                raise ConfigurationError(name, "callback must be callable", value)
            changes[name] = value

        return dataclasses.replace(self, **changes) if changes else self


OPTION_NAMES = frozenset(f.name for f in dataclasses.fields(StoreOptions))

DEFAULT_OPTIONS = StoreOptions()


def merge_options(
    base: StoreOptions | None,
    overrides: Mapping[str, Any] | None = None,
) -> StoreOptions:
    """Merge call-site overrides over a base layer (defaults if None)."""
    return (base or DEFAULT_OPTIONS).merge(overrides)
