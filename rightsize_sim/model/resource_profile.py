# rightsize_sim/model/resource_profile.py
from __future__ import annotations

from dataclasses import dataclass

from ..types import CpuMillis, Bytes, GIB
from .entities import PodTemplate


@dataclass(frozen=True)
class ResourceDemand:
    """
    Эффективный запрос pod'а по requests.

    Единицы:
      - CPU: milliCPU
      - RAM: байты
    """
    cpu_m: CpuMillis = CpuMillis(0)
    mem_b: Bytes = Bytes(0)

    @property
    def vcores(self) -> float:
        return self.cpu_m / 1000.0

    @property
    def weight(self) -> float:
        """Вес для упорядочивания: vCPU * 4 + GiB."""
        return self.vcores * 4 + self.mem_b / GIB


def compute_pod_demand(template: PodTemplate) -> ResourceDemand:
    """
    Обычные контейнеры работают одновременно, их requests суммируются.
    Init-контейнеры идут по одному, поэтому берём максимум по ним и
    сравниваем с суммой обычных, по каждому ресурсу отдельно.
    Отсутствующий request считается нулём.
    """
    init_cpu = max((int(c.req_cpu_m or 0) for c in template.init_containers), default=0)
    init_mem = max((int(c.req_mem_b or 0) for c in template.init_containers), default=0)

    cpu = sum(int(c.req_cpu_m or 0) for c in template.containers)
    mem = sum(int(c.req_mem_b or 0) for c in template.containers)

    return ResourceDemand(
        cpu_m=CpuMillis(max(init_cpu, cpu)),
        mem_b=Bytes(max(init_mem, mem)),
    )
