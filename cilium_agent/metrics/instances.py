"""Live metric value containers (the update API).

Each `MetricInstance` is bound to one `MetricDescriptor` and holds one child
value per label-value tuple. Unlabeled metrics own a single child keyed by
`()`, created up front so the series is exposed at 0 from startup. Labeled
metrics create children on first use of a label combination.

Locking:
  - every child guards its own value with a lock, so read-modify-write
    updates never lose increments under concurrent callers;
  - the parent guards the children map, so a new label combination is
    created exactly once even when two callers race on first use.

Instances implement the `prometheus_client` collector protocol (`describe` /
`collect`) and are registered into a `CollectorRegistry` by `MetricsRegistry`.

Usage:
    metrics.endpoint_count.set(3)
    metrics.endpoint_regenerations.labels("success").inc()
    metrics.endpoint_regenerations.labels(outcome="fail").inc()
"""
from __future__ import annotations

import threading
from collections.abc import Iterator

from prometheus_client.core import Metric
from prometheus_client.registry import Collector

from cilium_agent.utils.exceptions import (
    InvalidMetricUpdateError,
    LabelCardinalityError,
    MetricsConfigError,
)

from .descriptors import MetricDescriptor, MetricKind

__all__ = ["MetricInstance", "Gauge", "Counter", "GaugeChild", "CounterChild", "instance_for"]


class _ValueChild:
    __slots__ = ('_lock', '_value')

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0.0

    def get(self) -> float:
        with self._lock:
            return self._value


class GaugeChild(_ValueChild):
    __slots__ = ()

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def add(self, delta: float) -> None:
        with self._lock:
            self._value += float(delta)

    def inc(self, amount: float = 1) -> None:
        self.add(amount)

    def dec(self, amount: float = 1) -> None:
        self.add(-float(amount))


class CounterChild(_ValueChild):
    __slots__ = ()

    def inc(self, amount: float = 1) -> None:
        amount = float(amount)
        if not amount >= 0:
            raise InvalidMetricUpdateError(
                f"counters can only be incremented by non-negative amounts (got {amount})"
            )
        with self._lock:
            self._value += amount


class MetricInstance(Collector):
    """Base for descriptor-bound metric containers."""

    _child_cls: type[_ValueChild] = _ValueChild
    _kind: MetricKind

    def __init__(self, descriptor: MetricDescriptor):
        if descriptor.kind is not self._kind:
            raise MetricsConfigError(
                f"{descriptor.full_name} is a {descriptor.kind.value}, not a {self._kind.value}"
            )
        self.descriptor = descriptor
        self._lock = threading.Lock()
        self._children: dict[tuple[str, ...], _ValueChild] = {}
        if not descriptor.labels:
            self._children[()] = self._child_cls()

    @property
    def name(self) -> str:
        return self.descriptor.full_name

    def _label_key(self, labelvalues: tuple, labelkwargs: dict) -> tuple[str, ...]:
        schema = self.descriptor.labels
        if not schema:
            raise LabelCardinalityError(f"{self.name} has no labels")
        if labelvalues and labelkwargs:
            raise LabelCardinalityError("pass label values either positionally or by name, not both")
        if labelkwargs:
            if set(labelkwargs) != set(schema):
                raise LabelCardinalityError(
                    f"{self.name} expects labels {list(schema)}, got {sorted(labelkwargs)}"
                )
            return tuple(str(labelkwargs[name]) for name in schema)
        if len(labelvalues) != len(schema):
            raise LabelCardinalityError(
                f"{self.name} expects {len(schema)} label value(s) {list(schema)}, got {len(labelvalues)}"
            )
        return tuple(str(v) for v in labelvalues)

    def labels(self, *labelvalues, **labelkwargs):
        """Return the child for a label combination, creating it at zero on first use."""
        key = self._label_key(labelvalues, labelkwargs)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = self._child_cls()
                self._children[key] = child
        return child

    def _unlabeled(self):
        if self.descriptor.labels:
            raise LabelCardinalityError(
                f"{self.name} requires label values {list(self.descriptor.labels)}; use .labels(...)"
            )
        return self._children[()]

    def value(self, *labelvalues, **labelkwargs) -> float:
        """Current value; an unseen label combination reads as 0 without being created."""
        if not self.descriptor.labels:
            return self._unlabeled().get()
        key = self._label_key(labelvalues, labelkwargs)
        with self._lock:
            child = self._children.get(key)
        return child.get() if child is not None else 0.0

    def series(self) -> list[tuple[tuple[str, ...], float]]:
        """(label values, value) per child, sorted by label values."""
        with self._lock:
            items = sorted(self._children.items())
        return [(key, child.get()) for key, child in items]

    def _family(self) -> Metric:
        d = self.descriptor
        return Metric(d.full_name, d.documentation, d.kind.value)

    def describe(self) -> Iterator[Metric]:
        yield self._family()

    def collect(self) -> Iterator[Metric]:
        family = self._family()
        schema = self.descriptor.labels
        for key, value in self.series():
            family.add_sample(self.name, dict(zip(schema, key)), value)
        yield family

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"{type(self).__name__}({self.name!r})"


class Gauge(MetricInstance):
    """Arbitrary current level: set / inc / dec / add."""

    _child_cls = GaugeChild
    _kind = MetricKind.GAUGE

    def set(self, value: float) -> None:
        self._unlabeled().set(value)

    def add(self, delta: float) -> None:
        self._unlabeled().add(delta)

    def inc(self, amount: float = 1) -> None:
        self._unlabeled().inc(amount)

    def dec(self, amount: float = 1) -> None:
        self._unlabeled().dec(amount)


class Counter(MetricInstance):
    """Monotonic cumulative count; negative increments are rejected."""

    _child_cls = CounterChild
    _kind = MetricKind.COUNTER

    def inc(self, amount: float = 1) -> None:
        self._unlabeled().inc(amount)


_TYPE_MAP: dict[MetricKind, type[MetricInstance]] = {
    MetricKind.COUNTER: Counter,
    MetricKind.GAUGE: Gauge,
}


def instance_for(descriptor: MetricDescriptor) -> MetricInstance:
    return _TYPE_MAP[descriptor.kind](descriptor)
