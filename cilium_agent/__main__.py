"""Run the agent metrics endpoint standalone.

    CILIUM_PROMETHEUS_SERVE_ADDR=:9962 python -m cilium_agent
"""
from __future__ import annotations

import logging
import time

from cilium_agent.bootstrap import bootstrap

logger = logging.getLogger("cilium_agent")


def main() -> int:
    ctx = bootstrap(configure_logging=True)
    if ctx.server is None:
        logger.warning("Nothing to serve; set CILIUM_PROMETHEUS_SERVE_ADDR (e.g. ':9962')")
        return 1
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        logger.info("Shutting down metrics server")
        ctx.server.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
