# rightsize_sim/config.py
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def setup_logging() -> None:
    """Configure application-wide logging"""
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    # Reduce noise from the kubernetes client
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)


# =============================================================================
# Headroom
# =============================================================================
# Доля ёмкости ноды, доступная workload'ам. Остаток резервируется под систему.
CPU_HEADROOM_FACTOR: float = float(os.getenv("CPU_HEADROOM_FACTOR", "0.85"))
MEMORY_HEADROOM_FACTOR: float = float(os.getenv("MEMORY_HEADROOM_FACTOR", "0.85"))
POD_HEADROOM_FACTOR: float = float(os.getenv("POD_HEADROOM_FACTOR", "0.95"))


@dataclass(frozen=True)
class Headroom:
    cpu: float = 0.85
    memory: float = 0.85
    pods: float = 0.95

    def max_pods(self, max_pods: int) -> int:
        return int(max_pods * self.pods)


DEFAULT_HEADROOM = Headroom(
    cpu=CPU_HEADROOM_FACTOR,
    memory=MEMORY_HEADROOM_FACTOR,
    pods=POD_HEADROOM_FACTOR,
)


# =============================================================================
# Simulation
# =============================================================================
# "kind"     - DaemonSet -> Deployment -> Job -> StatefulSet -> Pod
# "priority" - сначала pod'ы с жёсткими ограничениями, крупные раньше мелких
REPLAY_ORDER: str = os.getenv("REPLAY_ORDER", "kind").lower()

# Контекст kubeconfig для collector'а, None = текущий
KUBE_CONTEXT: Optional[str] = os.getenv("KUBE_CONTEXT") or None

# JSON-инвентарь, который сервер загружает при старте, None = пустой сервис
INVENTORY_PATH: Optional[str] = os.getenv("INVENTORY_PATH") or None
