"""Prometheus text exposition format (version 0.0.4).

Renders a registry snapshot as:

    # HELP cilium_endpoint_count Number of endpoints managed by this agent
    # TYPE cilium_endpoint_count gauge
    cilium_endpoint_count 5

Families are sorted by name; HELP/TYPE appear once per family, followed by
one line per series sorted by label values.
"""
from __future__ import annotations

import math
from collections.abc import Iterable

from .registry import MetricSnapshot, MetricsRegistry

CONTENT_TYPE = 'text/plain; version=0.0.4; charset=utf-8'

__all__ = ["CONTENT_TYPE", "format_value", "render", "generate_latest"]


def _escape_help(text: str) -> str:
    return text.replace('\\', r'\\').replace('\n', r'\n')


def _escape_label_value(text: str) -> str:
    return text.replace('\\', r'\\').replace('\n', r'\n').replace('"', r'\"')


def format_value(value: float) -> str:
    """Integral values print without a fraction (5, not 5.0)."""
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return '+Inf' if value > 0 else '-Inf'
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def _sample_line(name: str, labels: dict[str, str], value: float) -> str:
    if labels:
        pairs = ','.join(f'{k}="{_escape_label_value(str(v))}"' for k, v in labels.items())
        return f'{name}{{{pairs}}} {format_value(value)}\n'
    return f'{name} {format_value(value)}\n'


def render(snapshot: Iterable[MetricSnapshot]) -> str:
    lines: list[str] = []
    for family in sorted(snapshot, key=lambda m: m.name):
        lines.append(f'# HELP {family.name} {_escape_help(family.documentation)}\n')
        kind = 'untyped' if family.kind == 'unknown' else family.kind
        lines.append(f'# TYPE {family.name} {kind}\n')
        samples = sorted(family.samples, key=lambda s: (s.name, tuple(s.labels.values())))
        for s in samples:
            lines.append(_sample_line(s.name, s.labels, s.value))
    return ''.join(lines)


def generate_latest(registry: MetricsRegistry) -> bytes:
    """Render the registry's current snapshot as exposition bytes."""
    return render(registry.snapshot()).encode('utf-8')
