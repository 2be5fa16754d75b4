# rightsize_sim/sim/packing.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import DEFAULT_HEADROOM, Headroom
from ..model.entities import Node, PodDisruptionBudget, PodTemplate
from ..model.resource_profile import ResourceDemand, compute_pod_demand
from ..types import NodeName
from .constraints import CheckResult, Reason, check_pod_on_node
from .errors import NodeNotFoundError
from .eviction import EvictionGate, compile_budgets
from .result import NodeUtilization

log = logging.getLogger(__name__)


def _ratio(used: int, capacity: float) -> float:
    if capacity <= 0:
        return 0.0
    return used / capacity


@dataclass
class NodeAllocation:
    """
    Состояние ноды в рамках одного прохода симуляции.
    Ёмкость берётся из node и не меняется, счётчики растут по мере размещения.
    """
    node: Node
    cpu_m: int = 0
    mem_b: int = 0
    pod_count: int = 0
    pods: List[PodTemplate] = field(default_factory=list)

    @property
    def name(self) -> NodeName:
        return self.node.name

    def allocated_ratio(self) -> float:
        """Насколько нода занята: максимум из долей по cpu и памяти."""
        return max(
            _ratio(self.cpu_m, self.node.cpu_capacity_m),
            _ratio(self.mem_b, int(self.node.memory_bytes)),
        )

    def utilization(self) -> NodeUtilization:
        return NodeUtilization(
            cpu=_ratio(self.cpu_m, self.node.cpu_capacity_m),
            memory=_ratio(self.mem_b, int(self.node.memory_bytes)),
            pods=_ratio(self.pod_count, self.node.max_pods),
        )

    def add(self, pod: PodTemplate, demand: ResourceDemand) -> None:
        self.cpu_m += int(demand.cpu_m)
        self.mem_b += int(demand.mem_b)
        self.pod_count += 1
        self.pods.append(pod)

    def copy(self) -> "NodeAllocation":
        return NodeAllocation(
            node=self.node,
            cpu_m=self.cpu_m,
            mem_b=self.mem_b,
            pod_count=self.pod_count,
            pods=list(self.pods),
        )


def format_reasons(counts: Dict[Reason, int]) -> str:
    """{NOT_ENOUGH_CPU: 2, NOT_TOLERATED: 1} -> "not enough cpu on 2 nodes, not tolerated on 1 node"."""
    parts = []
    for reason, count in counts.items():
        noun = "node" if count == 1 else "nodes"
        parts.append(f"{reason.value} on {count} {noun}")
    return ", ".join(parts)


class Scheduler:
    """
    Упрощённый планировщик поверх набора нод.

    Стратегия размещения: сначала самая загруженная нода, которая
    подходит. Так нагрузка уплотняется и остаётся больше пустых нод,
    которые потом можно удалить.
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        pdbs: Optional[Sequence[PodDisruptionBudget]] = None,
        headroom: Optional[Headroom] = None,
    ):
        self.headroom = headroom or DEFAULT_HEADROOM
        self.allocations: List[NodeAllocation] = [NodeAllocation(node=n) for n in nodes]
        self.pdbs: List[PodDisruptionBudget] = list(pdbs or [])
        # некорректный PDB ломает весь проход, даже если выселять никого не придётся
        self.budgets = compile_budgets(self.pdbs)

    def get(self, node_name: str) -> NodeAllocation:
        for alloc in self.allocations:
            if alloc.name == node_name:
                return alloc
        raise NodeNotFoundError(node_name)

    # ------------------------------------------------------------------
    # Размещение
    # ------------------------------------------------------------------

    def can_schedule_on_node(
        self, pod: PodTemplate, alloc: NodeAllocation, demand: Optional[ResourceDemand] = None
    ) -> CheckResult:
        return check_pod_on_node(pod, alloc, self.allocations, self.headroom, demand)

    def bind(self, pod: PodTemplate, alloc: NodeAllocation, demand: Optional[ResourceDemand] = None) -> None:
        """Записывает pod на ноду без проверок."""
        alloc.add(pod, demand if demand is not None else compute_pod_demand(pod))

    def place(self, pod: PodTemplate) -> Tuple[bool, str]:
        demand = compute_pod_demand(pod)
        # sorted стабилен: при равной загрузке сохраняется исходный порядок нод
        candidates = sorted(self.allocations, key=NodeAllocation.allocated_ratio, reverse=True)

        reason_count: Dict[Reason, int] = {}
        for alloc in candidates:
            ok, reason = self.can_schedule_on_node(pod, alloc, demand)
            if ok:
                self.bind(pod, alloc, demand)
                return True, ""
            reason_count[reason] = reason_count.get(reason, 0) + 1

        if not reason_count:
            return False, "failed to schedule due to: no nodes available"
        return False, f"failed to schedule due to: {format_reasons(reason_count)}"

    # ------------------------------------------------------------------
    # Отчёт и удаление нод
    # ------------------------------------------------------------------

    def node_utilization(self) -> Dict[str, NodeUtilization]:
        return {alloc.name: alloc.utilization() for alloc in self.allocations}

    def _without(self, node_name: str) -> "Scheduler":
        trial = Scheduler([], None, self.headroom)
        trial.pdbs, trial.budgets = self.pdbs, self.budgets
        trial.allocations = [a.copy() for a in self.allocations if a.name != node_name]
        return trial

    def can_remove_node(self, node_name: str) -> bool:
        """
        Можно ли освободить ноду: каждый её pod должен разрешать выселение
        по PDB и вставать на оставшиеся ноды.
        """
        target = self.get(node_name)
        if not target.pods:
            return True

        trial = self._without(node_name)
        gate = EvictionGate(self.budgets, self.allocations)

        for pod in target.pods:
            if not gate.can_evict(pod):
                log.debug("node %s: pod %s is protected by a disruption budget", node_name, pod.name)
                return False
            ok, reason = trial.place(pod)
            if not ok:
                log.debug("node %s: pod %s cannot be rescheduled: %s", node_name, pod.name, reason)
                return False

        return True
