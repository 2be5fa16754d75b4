# rightsize_sim/sim/simulate.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .. import config
from ..config import Headroom
from ..model.entities import Node, PodDisruptionBudget, Workload
from .constraints import validate_template
from .eviction import compile_budgets
from .operations import replay
from .packing import Scheduler
from .result import NodeUtilization, PlacementFailure, ReductionSummary, SimulationResult

log = logging.getLogger(__name__)


def _reduction_pass(
    nodes: List[Node],
    workloads: Sequence[Workload],
    pdbs: Sequence[PodDisruptionBudget],
    headroom: Optional[Headroom],
    mode: str,
) -> Tuple[Scheduler, List[PlacementFailure], Optional[Node]]:
    """
    Один проход: проигрываем все workloads с нуля на `nodes`, затем ищем
    первую (в исходном порядке) ноду, которую можно освободить.
    За проход удаляется не больше одной ноды: после удаления состояние
    уже другое, и остальные кандидаты проверяются в следующем проходе.
    """
    scheduler = Scheduler(nodes, pdbs, headroom)
    failures = replay(scheduler, workloads, mode)

    for node in nodes:
        if scheduler.can_remove_node(node.name):
            return scheduler, failures, node
    return scheduler, failures, None


def run_reduction(
    nodes: Sequence[Node],
    workloads: Sequence[Workload],
    pdbs: Sequence[PodDisruptionBudget] = (),
    headroom: Optional[Headroom] = None,
    mode: Optional[str] = None,
) -> SimulationResult:
    """
    Жадно удаляет ноды по одной, пока это возможно.

    Каждый проход строит новое состояние аллокаций поверх оставшихся нод,
    ёмкость/labels/taints нод не меняются. Кластер из одной ноды
    (или пустой) не сокращается.

    ConfigurationError / NodeNotFoundError пробрасываются наружу,
    частичный результат не возвращается.
    """
    nodes = list(nodes)
    mode = mode or config.REPLAY_ORDER

    # проверка до первого прохода: при пустом кластере проходов нет вовсе
    compile_budgets(pdbs)
    for workload in workloads:
        validate_template(workload.template)

    removed: List[Node] = []
    remaining: List[Node] = list(nodes)
    utilization: Dict[str, NodeUtilization] = {}
    failures: List[PlacementFailure] = []
    passes = 0

    if len(nodes) == 1:
        # удалять нечего, но утилизацию показать можно
        scheduler = Scheduler(nodes, pdbs, headroom)
        failures = replay(scheduler, workloads, mode)
        utilization = scheduler.node_utilization()

    while len(remaining) > 1:
        passes += 1
        scheduler, pass_failures, candidate = _reduction_pass(remaining, workloads, pdbs, headroom, mode)

        if passes == 1:
            utilization = scheduler.node_utilization()
            failures = pass_failures

        if candidate is None:
            log.info("pass %d: none of %d nodes can be removed", passes, len(remaining))
            break

        log.info("pass %d: node %s can be removed (%d nodes left)", passes, candidate.name, len(remaining) - 1)
        removed.append(candidate)
        remaining = [n for n in remaining if n.name != candidate.name]

    for failure in failures:
        log.warning("%s", failure)

    return SimulationResult(
        removable_nodes=removed,
        utilization=utilization,
        failures=failures,
        passes=passes,
        summary=ReductionSummary.build(nodes, removed),
    )


def find_removable_nodes(
    nodes: Sequence[Node],
    workloads: Sequence[Workload],
    pdbs: Sequence[PodDisruptionBudget] = (),
    headroom: Optional[Headroom] = None,
    mode: Optional[str] = None,
) -> List[Node]:
    return run_reduction(nodes, workloads, pdbs, headroom, mode).removable_nodes
