# rightsize_sim/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import NewType


# Имена
NodeName = NewType("NodeName", str)
Namespace = NewType("Namespace", str)

# Ресурсы
CpuMillis = NewType("CpuMillis", int)  # milliCPU
Bytes = NewType("Bytes", int)          # байты

GIB = 1024 ** 3


@dataclass(frozen=True)
class WorkloadKey:
    """
    Ключ регистрации workload'а в SchedulingService.
    Повторная регистрация с тем же ключом перезаписывает запись.
    """
    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"
