"""Environment-driven settings for the agent metrics subsystem.

| variable                          | default  | meaning                                   |
|-----------------------------------|----------|-------------------------------------------|
| CILIUM_PROMETHEUS_SERVE_ADDR      | (empty)  | bind address for /metrics; empty disables |
| CILIUM_METRICS_NAMESPACE          | cilium   | prefix for every metric name              |
| CILIUM_METRICS_PROCESS_COLLECTOR  | on       | expose <namespace>_process_* metrics      |
| CILIUM_LOG_LEVEL                  | INFO     | root log level                            |
| CILIUM_JSON_LOGS                  | off      | JSON console logs                         |
"""
from __future__ import annotations

from dataclasses import dataclass

from cilium_agent.metrics.descriptors import NAMESPACE
from cilium_agent.utils.env_flags import get_bool, get_str


@dataclass(frozen=True)
class MetricsSettings:
    serve_addr: str = ""
    namespace: str = NAMESPACE
    process_metrics: bool = True
    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> MetricsSettings:
        return cls(
            serve_addr=get_str('CILIUM_PROMETHEUS_SERVE_ADDR', ''),
            namespace=get_str('CILIUM_METRICS_NAMESPACE', NAMESPACE) or NAMESPACE,
            process_metrics=get_bool('CILIUM_METRICS_PROCESS_COLLECTOR', True),
            log_level=(get_str('CILIUM_LOG_LEVEL', 'INFO') or 'INFO').upper(),
            json_logs=get_bool('CILIUM_JSON_LOGS', False),
        )

    @property
    def serving_enabled(self) -> bool:
        return bool(self.serve_addr)


__all__ = ["MetricsSettings"]
