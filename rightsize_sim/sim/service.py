# rightsize_sim/sim/service.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .. import config
from ..config import Headroom
from ..model.entities import REPLAY_KIND_ORDER, Node, PodDisruptionBudget, Workload, WorkloadKind
from ..types import WorkloadKey
from .errors import ConfigurationError
from .operations import replay
from .packing import Scheduler
from .result import NodeUtilization, ReductionComparison, SimulationResult
from .simulate import run_reduction

log = logging.getLogger(__name__)


@dataclass
class Registrations:
    """Копия всего, что зарегистрировано в сервисе, на момент snapshot()."""
    nodes: List[Node] = field(default_factory=list)
    workloads: List[Workload] = field(default_factory=list)
    pdbs: List[PodDisruptionBudget] = field(default_factory=list)


class SchedulingService:
    """
    Накапливает ноды, workloads и PDB между вызовами.

    Workloads находят несколько discovery-пайплайнов параллельно (по одному
    на вид), поэтому все таблицы под одним lock'ом. Регистрация с тем же
    (kind, namespace, name) перезаписывает предыдущую.
    """

    def __init__(
        self,
        nodes: Optional[List[Node]] = None,
        headroom: Optional[Headroom] = None,
        mode: Optional[str] = None,
    ):
        self._lock = threading.Lock()
        self._nodes: Dict[str, Node] = {}
        self._workloads: Dict[WorkloadKind, Dict[WorkloadKey, Workload]] = {
            kind: {} for kind in REPLAY_KIND_ORDER
        }
        self._pdbs: Dict[Tuple[str, str], PodDisruptionBudget] = {}
        self.headroom = headroom
        self.mode = mode or config.REPLAY_ORDER
        if nodes:
            self.set_nodes(nodes)

    # ------------------------------------------------------------------
    # Регистрация
    # ------------------------------------------------------------------

    def set_nodes(self, nodes: List[Node]) -> None:
        with self._lock:
            self._nodes = {str(n.name): n for n in nodes}

    def add_node(self, node: Node) -> None:
        with self._lock:
            self._nodes[str(node.name)] = node

    def add_pod_disruption_budget(self, pdb: PodDisruptionBudget) -> None:
        with self._lock:
            self._pdbs[(str(pdb.namespace), pdb.name)] = pdb

    def add_workload(self, workload: Workload) -> None:
        with self._lock:
            self._workloads[workload.kind][workload.key] = workload

    def _add_kind(self, workload: Workload, kind: WorkloadKind) -> None:
        if workload.kind != kind:
            raise ConfigurationError(f"expected a {kind.value}, got {workload.kind.value} {workload.name}")
        self.add_workload(workload)

    def add_daemon_set(self, workload: Workload) -> None:
        self._add_kind(workload, WorkloadKind.DAEMON_SET)

    def add_deployment(self, workload: Workload) -> None:
        self._add_kind(workload, WorkloadKind.DEPLOYMENT)

    def add_job(self, workload: Workload) -> None:
        self._add_kind(workload, WorkloadKind.JOB)

    def add_stateful_set(self, workload: Workload) -> None:
        self._add_kind(workload, WorkloadKind.STATEFUL_SET)

    def add_pod(self, workload: Workload) -> None:
        self._add_kind(workload, WorkloadKind.POD)

    def remove_workload(self, key: WorkloadKey) -> bool:
        with self._lock:
            for table in self._workloads.values():
                if table.pop(key, None) is not None:
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            for table in self._workloads.values():
                table.clear()
            self._pdbs.clear()

    def snapshot(self) -> Registrations:
        """
        Согласованная копия регистраций. Внутри вида workloads отсортированы
        по (namespace, name), чтобы результат не зависел от порядка discovery.
        """
        with self._lock:
            workloads: List[Workload] = []
            for kind in REPLAY_KIND_ORDER:
                table = self._workloads[kind]
                for key in sorted(table, key=lambda k: (k.namespace, k.name)):
                    workloads.append(table[key])
            return Registrations(
                nodes=list(self._nodes.values()),
                workloads=workloads,
                pdbs=[self._pdbs[k] for k in sorted(self._pdbs)],
            )

    # ------------------------------------------------------------------
    # Симуляция
    # ------------------------------------------------------------------

    def run(self) -> SimulationResult:
        regs = self.snapshot()
        log.info(
            "simulating %d nodes, %d workloads, %d pdbs",
            len(regs.nodes), len(regs.workloads), len(regs.pdbs),
        )
        return run_reduction(regs.nodes, regs.workloads, regs.pdbs, self.headroom, self.mode)

    def simulate(self) -> List[Node]:
        """Ноды, которые можно удалить. Пустой список - нормальный результат."""
        return self.run().removable_nodes

    def _baseline(self) -> Scheduler:
        regs = self.snapshot()
        scheduler = Scheduler(regs.nodes, regs.pdbs, self.headroom)
        replay(scheduler, regs.workloads, self.mode)
        return scheduler

    def utilization(self) -> Dict[str, NodeUtilization]:
        return self._baseline().node_utilization()

    def can_remove_node(self, node_name: str) -> bool:
        return self._baseline().can_remove_node(node_name)


def compare_reductions(current: SchedulingService, rightsized: SchedulingService) -> ReductionComparison:
    return ReductionComparison(current=current.run(), rightsized=rightsized.run())
