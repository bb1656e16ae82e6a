"""Metrics package public interface.

Holds prometheus metric objects for the agent and the HTTP endpoint that
exposes them. It does not hide the exposition model, but callers rarely need
anything beyond `AgentMetrics`.

Stable import surfaces:
    from cilium_agent.metrics import MetricsRegistry, AgentMetrics, enable
    from cilium_agent.metrics import generate_latest, CONTENT_TYPE
"""
from __future__ import annotations

from .agent import AgentMetrics, build_agent_metrics
from .descriptors import (
    NAMESPACE,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
    MetricDescriptor,
    MetricKind,
    agent_descriptors,
)
from .exposition import CONTENT_TYPE, generate_latest, render
from .instances import Counter, Gauge, MetricInstance
from .registry import MetricSnapshot, MetricsRegistry
from .server import METRICS_PATH, MetricsServer, enable, parse_bind_address

__all__ = [
    "NAMESPACE",
    "OUTCOME_SUCCESS",
    "OUTCOME_FAIL",
    "MetricKind",
    "MetricDescriptor",
    "agent_descriptors",
    "MetricInstance",
    "Counter",
    "Gauge",
    "MetricSnapshot",
    "MetricsRegistry",
    "AgentMetrics",
    "build_agent_metrics",
    "CONTENT_TYPE",
    "render",
    "generate_latest",
    "METRICS_PATH",
    "MetricsServer",
    "enable",
    "parse_bind_address",
]
