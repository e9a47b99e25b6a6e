"""
Cache policies and the predicates derived from them.

A policy decides, for every read, which store is asked first, whether the
other store is asked on failure or also on success, and whether network
responses are written back into the local store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .exceptions import ConfigurationError


class CachePolicy(Enum):
    """Cache policy for a store.

    NO_CACHE: Ignore the cache and only use the network
    CACHE_ONLY: Never use the network
    CACHE_FIRST: Serve from cache, then refresh it from the network
    NETWORK_FIRST: Serve from network, fall back to the cache if unavailable
    BOTH: Serve the cached copy, then serve the network copy as well
    """

    NO_CACHE = "nocache"
    CACHE_ONLY = "cacheonly"
    CACHE_FIRST = "cachefirst"
    NETWORK_FIRST = "networkfirst"
    BOTH = "both"


DEFAULT_POLICY = CachePolicy.NETWORK_FIRST


def parse_policy(value: Any) -> CachePolicy:
    """Coerce a policy member or its string value into a CachePolicy.

    Raises:
        ConfigurationError: If the value names no known policy
    """
    if isinstance(value, CachePolicy):
        return value
    if isinstance(value, str):
        try:
            return CachePolicy(value.strip().lower())
        except ValueError:
            pass
    valid = ", ".join(p.value for p in CachePolicy)
    raise ConfigurationError("policy", f"unknown cache policy (expected one of: {valid})", value)


def should_call_network_first(policy: CachePolicy) -> bool:
    """Whether the remote store is the primary store for reads."""
    return policy in (CachePolicy.NO_CACHE, CachePolicy.NETWORK_FIRST)


def should_call_both(policy: CachePolicy) -> bool:
    """Whether the secondary store is also read after a primary success."""
    return policy in (CachePolicy.CACHE_FIRST, CachePolicy.BOTH)


def should_call_both_callbacks(policy: CachePolicy) -> bool:
    """Whether the secondary success of a dual read reaches the caller."""
    return policy is CachePolicy.BOTH


def should_call_fallback(policy: CachePolicy) -> bool:
    """Whether the secondary store is tried after a primary failure."""
    return should_call_both(policy) or policy is CachePolicy.NETWORK_FIRST


def should_update_cache(policy: CachePolicy) -> bool:
    """Whether network responses are written back into the local store."""
    return policy in (CachePolicy.CACHE_FIRST, CachePolicy.NETWORK_FIRST, CachePolicy.BOTH)


@dataclass(frozen=True)
class PolicyFlags:
    """All predicates for one policy, resolved up front."""

    network_first: bool
    allow_both: bool
    allow_fallback: bool
    allow_cache_update: bool
    deliver_both: bool


def resolve_policy(policy: CachePolicy) -> PolicyFlags:
    """Resolve a policy into its read/write predicates."""
    return PolicyFlags(
        network_first=should_call_network_first(policy),
        allow_both=should_call_both(policy),
        allow_fallback=should_call_fallback(policy),
        allow_cache_update=should_update_cache(policy),
        deliver_both=should_call_both_callbacks(policy),
    )
