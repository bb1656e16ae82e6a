"""Cilium agent exception hierarchy.

A small exception tree separating configuration mistakes (fatal at startup)
from caller errors on the metric update path.
"""
from __future__ import annotations


class CiliumException(Exception):
    """Base class for all agent exceptions."""


class ConfigError(CiliumException):
    """Configuration-related issues (invalid settings, bad wiring)."""


class MetricsConfigError(ConfigError):
    """Metric catalog or registry misconfiguration; a programming error."""


class DuplicateMetricError(MetricsConfigError):
    """A metric with the same namespace+name is already registered."""


class LabelCardinalityError(MetricsConfigError):
    """Label values do not match the metric's label schema."""


class BindAddressError(MetricsConfigError):
    """Malformed metrics server bind address."""


class InvalidMetricUpdateError(CiliumException, ValueError):
    """Rejected metric update, e.g. a negative counter increment."""


__all__ = [
    "CiliumException",
    "ConfigError",
    "MetricsConfigError",
    "DuplicateMetricError",
    "LabelCardinalityError",
    "BindAddressError",
    "InvalidMetricUpdateError",
]
