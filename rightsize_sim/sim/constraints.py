# rightsize_sim/sim/constraints.py
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import Headroom
from ..model.entities import (
    NodeSelectorTerm, PodAffinityTerm, PodTemplate, SelectorRequirement, Taint, Toleration,
)
from ..model.resource_profile import ResourceDemand, compute_pod_demand
from .selector import any_matching, compile_selector, validate_node_requirement


class Reason(str, Enum):
    """Причина, по которой pod не встаёт на ноду."""
    NOT_ENOUGH_CPU = "not enough cpu"
    NOT_ENOUGH_MEMORY = "not enough memory"
    NOT_ENOUGH_PODS = "not enough pods"
    NOT_TOLERATED = "not tolerated"
    NODE_AFFINITY_UNSATISFIED = "node affinity not satisfied"
    AFFINITY_UNSATISFIED = "affinity not satisfied"
    NODE_SELECTOR_KEY_MISSING = "node selector label not exists"
    NODE_SELECTOR_VALUE_MISMATCH = "node selector label mismatch"


CheckResult = Tuple[bool, Optional[Reason]]


# ---------------------------------------------------------------------------
# Ресурсы
# ---------------------------------------------------------------------------


def _check_resources(demand: ResourceDemand, alloc, headroom: Headroom) -> Optional[Reason]:
    node = alloc.node
    if alloc.cpu_m + demand.cpu_m > node.cpu_capacity_m * headroom.cpu:
        return Reason.NOT_ENOUGH_CPU
    if alloc.mem_b + demand.mem_b > int(node.memory_bytes) * headroom.memory:
        return Reason.NOT_ENOUGH_MEMORY
    if alloc.pod_count + 1 > headroom.max_pods(node.max_pods):
        return Reason.NOT_ENOUGH_PODS
    return None


# ---------------------------------------------------------------------------
# Taints / tolerations
# ---------------------------------------------------------------------------


def toleration_matches(tol: Toleration, taint: Taint) -> bool:
    """
    Модель соответствия toleration -> taint:
      - effect совпадает или в toleration не задан;
      - пустой key в toleration матчит любой taint;
      - оператор Exists: достаточно совпадения key;
      - оператор Equal (дефолт): key и value совпадают.
    """
    if tol.effect and tol.effect != taint.effect:
        return False
    if not tol.key:
        return True
    if tol.key != taint.key:
        return False
    if (tol.operator or "Equal") == "Exists":
        return True
    return (tol.value or "") == (taint.value or "")


def tolerates(tolerations: Sequence[Toleration], taints: Sequence[Taint]) -> bool:
    for taint in taints:
        if not any(toleration_matches(tol, taint) for tol in tolerations):
            return False
    return True


# ---------------------------------------------------------------------------
# nodeAffinity.requiredDuringSchedulingIgnoredDuringExecution
# ---------------------------------------------------------------------------


def _match_node_selector_expression(expr: SelectorRequirement, labels: Dict[str, str]) -> bool:
    op = expr.operator
    val = labels.get(expr.key)

    if op == "In":
        return val is not None and val in expr.values
    if op == "NotIn":
        return val is None or val not in expr.values
    if op == "Exists":
        return expr.key in labels
    if op == "DoesNotExist":
        return expr.key not in labels

    # Gt / Lt, значение уже проверено в validate_node_affinity
    bound = int(expr.values[0])
    try:
        v_int = int(val) if val is not None else None
    except ValueError:
        return False
    if v_int is None:
        return False
    return v_int > bound if op == "Gt" else v_int < bound


def _match_node_selector_term(term: NodeSelectorTerm, labels: Dict[str, str]) -> bool:
    for expr in term.match_expressions:
        if not _match_node_selector_expression(expr, labels):
            return False
    return True


def validate_node_affinity(terms: Optional[List[NodeSelectorTerm]]) -> None:
    for term in terms or []:
        for expr in term.match_expressions:
            validate_node_requirement(expr)


def satisfies_node_affinity(terms: Optional[List[NodeSelectorTerm]], labels: Dict[str, str]) -> bool:
    if terms is None:
        return True
    # все термы, а не только до первого совпавшего
    validate_node_affinity(terms)
    return any(_match_node_selector_term(term, labels) for term in terms)


# ---------------------------------------------------------------------------
# podAffinity / podAntiAffinity
# ---------------------------------------------------------------------------


def _topology_domain(term: PodAffinityTerm, alloc, allocations):
    """Ноды с тем же значением topologyKey, что и у кандидата."""
    if not term.topology_key:
        return [alloc]
    value = alloc.node.labels.get(term.topology_key)
    if value is None:
        return []
    return [a for a in allocations if a.node.labels.get(term.topology_key) == value]


def _term_has_match(term: PodAffinityTerm, alloc, allocations) -> bool:
    selector = compile_selector(term.label_selector)
    for other in _topology_domain(term, alloc, allocations):
        if any_matching(selector, (p.labels for p in other.pods)):
            return True
    return False


def satisfies_pod_affinity(pod: PodTemplate, alloc, allocations) -> bool:
    affinity = pod.affinity
    if affinity is None:
        return True
    for term in affinity.pod_affinity:
        if not _term_has_match(term, alloc, allocations):
            return False
    for term in affinity.pod_anti_affinity:
        if _term_has_match(term, alloc, allocations):
            return False
    return True


def validate_template(pod: PodTemplate) -> None:
    """
    Проверяет affinity шаблона целиком: все термы nodeAffinity и селекторы
    podAffinity / podAntiAffinity. Некорректные -> ConfigurationError.
    """
    affinity = pod.affinity
    if affinity is None:
        return
    validate_node_affinity(affinity.node_affinity)
    for term in affinity.pod_affinity + affinity.pod_anti_affinity:
        compile_selector(term.label_selector)


# ---------------------------------------------------------------------------
# nodeSelector
# ---------------------------------------------------------------------------


def _check_node_selector(selector: Dict[str, str], labels: Dict[str, str]) -> Optional[Reason]:
    for key, expected in selector.items():
        if key not in labels:
            return Reason.NODE_SELECTOR_KEY_MISSING
        if labels[key] != expected:
            return Reason.NODE_SELECTOR_VALUE_MISMATCH
    return None


# ---------------------------------------------------------------------------
# Основная проверка pod -> node
# ---------------------------------------------------------------------------


def check_pod_on_node(
    pod: PodTemplate,
    alloc,
    allocations,
    headroom: Headroom,
    demand: Optional[ResourceDemand] = None,
) -> CheckResult:
    """
    Можно ли поставить pod на ноду `alloc` (NodeAllocation) при текущем
    состоянии `allocations`. Проверки идут в фиксированном порядке и
    останавливаются на первой неудаче:
      1. ресурсы (cpu, memory, pods) с учётом headroom
      2. taints / tolerations
      3. required nodeAffinity
      4. required podAffinity / podAntiAffinity
      5. nodeSelector

    Состояние не меняется.
    """
    if demand is None:
        demand = compute_pod_demand(pod)

    reason = _check_resources(demand, alloc, headroom)
    if reason is not None:
        return False, reason

    if not tolerates(pod.tolerations, alloc.node.taints):
        return False, Reason.NOT_TOLERATED

    node_affinity = pod.affinity.node_affinity if pod.affinity is not None else None
    if not satisfies_node_affinity(node_affinity, alloc.node.labels):
        return False, Reason.NODE_AFFINITY_UNSATISFIED

    if not satisfies_pod_affinity(pod, alloc, allocations):
        return False, Reason.AFFINITY_UNSATISFIED

    reason = _check_node_selector(pod.node_selector, alloc.node.labels)
    if reason is not None:
        return False, reason

    return True, None
