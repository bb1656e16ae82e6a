"""Environment flag helpers.

Interprets environment variables as boolean feature flags using the canonical
truthy set {"1","true","yes","on"} (case-insensitive), plus typed getters with
defaults for the settings loader.

Usage examples:
    from cilium_agent.utils.env_flags import is_truthy_env
    if is_truthy_env('CILIUM_JSON_LOGS'):
        ...
"""
from __future__ import annotations

import os

TRUTHY_SET: set[str] = {"1", "true", "yes", "on"}
FALSY_SET: set[str] = {"0", "false", "no", "off"}


def is_truthy(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in TRUTHY_SET


def is_truthy_env(name: str, default: str | None = None) -> bool:
    return is_truthy(os.getenv(name, default or ''))


def get_str(name: str, default: str = "") -> str:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip()


def get_bool(name: str, default: bool = False) -> bool:
    """Return the flag value, or `default` when unset or unrecognized."""
    v = os.getenv(name)
    if v is None:
        return default
    norm = v.strip().lower()
    if norm in TRUTHY_SET:
        return True
    if norm in FALSY_SET:
        return False
    return default


__all__ = [
    'TRUTHY_SET',
    'FALSY_SET',
    'is_truthy',
    'is_truthy_env',
    'get_str',
    'get_bool',
]
