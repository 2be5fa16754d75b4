# rightsize_sim/sim/result.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from ..model.entities import Node
from ..types import WorkloadKey


@dataclass(frozen=True)
class NodeUtilization:
    """Доли занятости ноды по requests (0..1)."""
    cpu: float
    memory: float
    pods: float


@dataclass(frozen=True)
class PlacementFailure:
    """Workload, который не удалось полностью разместить, и почему."""
    workload: WorkloadKey
    reason: str

    def __str__(self) -> str:
        return f"{self.workload} could not be fully scheduled: {self.reason}"


@dataclass
class ReductionSummary:
    node_count: int
    removable_count: int
    removable_vcores: float
    removable_memory_bytes: int

    @classmethod
    def build(cls, nodes: List[Node], removable: List[Node]) -> "ReductionSummary":
        return cls(
            node_count=len(nodes),
            removable_count=len(removable),
            removable_vcores=sum(n.vcores for n in removable),
            removable_memory_bytes=sum(int(n.memory_bytes) for n in removable),
        )


@dataclass
class SimulationResult:
    """
    То, что уходит в отчёт / API.

    utilization и failures относятся к первому проходу, то есть к
    текущему состоянию кластера до удаления нод.
    """
    removable_nodes: List[Node]
    utilization: Dict[str, NodeUtilization]
    failures: List[PlacementFailure] = field(default_factory=list)
    passes: int = 0
    summary: ReductionSummary | None = None


@dataclass
class ReductionComparison:
    """Сравнение: сколько нод освобождается до и после rightsizing."""
    current: SimulationResult
    rightsized: SimulationResult

    @property
    def additional_removable(self) -> int:
        return len(self.rightsized.removable_nodes) - len(self.current.removable_nodes)
