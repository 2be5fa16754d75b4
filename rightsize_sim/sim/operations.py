# rightsize_sim/sim/operations.py
from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..model.entities import REPLAY_KIND_ORDER, PodTemplate, Workload, WorkloadKind
from ..model.resource_profile import compute_pod_demand
from ..types import Bytes, CpuMillis
from .constraints import Reason, validate_template
from .packing import Scheduler, format_reasons
from .result import PlacementFailure

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Развёртывание workload'ов в размещения pod'ов
# ---------------------------------------------------------------------------


def add_daemon_set(scheduler: Scheduler, template: PodTemplate) -> Tuple[bool, str]:
    """
    По одному pod'у на каждую подходящую ноду, без сортировки по загрузке.
    Неподходящие ноды пропускаются; сам DaemonSet отклонить нельзя,
    поэтому результат всегда True, а причины пропусков идут в reason.
    """
    demand = compute_pod_demand(template)
    reason_count: Dict[Reason, int] = {}
    for alloc in scheduler.allocations:
        ok, reason = scheduler.can_schedule_on_node(template, alloc, demand)
        if ok:
            scheduler.bind(template, alloc, demand)
        else:
            reason_count[reason] = reason_count.get(reason, 0) + 1

    if not reason_count:
        return True, ""
    return True, f"failed to schedule due to: {format_reasons(reason_count)}"


def add_replicas(scheduler: Scheduler, template: PodTemplate, count: int) -> Tuple[bool, str]:
    """
    Размещает `count` копий шаблона по очереди. На первой неудаче
    останавливается; уже размещённые копии не откатываются.
    """
    for _ in range(count):
        ok, reason = scheduler.place(template)
        if not ok:
            return False, reason
    return True, ""


def expand_workload(scheduler: Scheduler, workload: Workload) -> Tuple[bool, str]:
    if workload.kind == WorkloadKind.DAEMON_SET:
        return add_daemon_set(scheduler, workload.template)
    if workload.kind == WorkloadKind.POD:
        return scheduler.place(workload.template)
    return add_replicas(scheduler, workload.template, workload.placement_count or 0)


# ---------------------------------------------------------------------------
# Порядок проигрывания
# ---------------------------------------------------------------------------

_PRIORITY_POD_AFFINITY = 0
_PRIORITY_NODE_AFFINITY = 1
_PRIORITY_TOLERATION = 2
_PRIORITY_NODE_SELECTOR = 3
_PRIORITY_NONE = 4


def resource_priority(template: PodTemplate) -> Tuple[int, float]:
    """
    Меньше = раньше. Pod'ы с самыми жёсткими ограничениями идут первыми,
    внутри группы крупные раньше мелких.
    """
    weight = compute_pod_demand(template).weight
    affinity = template.affinity
    if affinity is not None and (affinity.pod_affinity or affinity.pod_anti_affinity):
        band = _PRIORITY_POD_AFFINITY
    elif affinity is not None and affinity.node_affinity is not None:
        band = _PRIORITY_NODE_AFFINITY
    elif template.tolerations:
        band = _PRIORITY_TOLERATION
    elif template.node_selector:
        band = _PRIORITY_NODE_SELECTOR
    else:
        band = _PRIORITY_NONE
    return band, -weight


def replay_order(workloads: Sequence[Workload], mode: str = "kind") -> List[Workload]:
    """
    mode="kind": DaemonSet -> Deployment -> Job -> StatefulSet -> Pod,
    внутри вида порядок сохраняется.
    mode="priority": по resource_priority, при равенстве тоже стабильно.
    """
    if mode == "kind":
        rank = {kind: i for i, kind in enumerate(REPLAY_KIND_ORDER)}
        return sorted(workloads, key=lambda w: rank[w.kind])
    if mode == "priority":
        return sorted(workloads, key=lambda w: resource_priority(w.template))
    raise ValueError(f"unknown replay order {mode!r}, expected 'kind' or 'priority'")


def replay(scheduler: Scheduler, workloads: Sequence[Workload], mode: str = "kind") -> List[PlacementFailure]:
    """Проигрывает все workloads на scheduler. Неразмещённые - это данные, не ошибка."""
    failures: List[PlacementFailure] = []
    for workload in workloads:
        validate_template(workload.template)
    for workload in replay_order(workloads, mode):
        ok, reason = expand_workload(scheduler, workload)
        if not ok:
            failures.append(PlacementFailure(workload=workload.key, reason=reason))
        elif reason:
            log.debug("%s skipped nodes: %s", workload.key, reason)
    return failures


# ---------------------------------------------------------------------------
# Rightsizing
# ---------------------------------------------------------------------------


@dataclass
class ContainerRecommendation:
    """Рекомендованные requests/limits для одного контейнера."""
    req_cpu_m: Optional[int] = None
    req_mem_b: Optional[int] = None
    limit_cpu_m: Optional[int] = None
    limit_mem_b: Optional[int] = None


def apply_rightsizing(workload: Workload, recommendations: Dict[str, ContainerRecommendation]) -> Workload:
    """
    Возвращает копию workload'а, где у контейнеров и init-контейнеров из
    `recommendations` (по имени) заменены заданные requests/limits. Исходный объект не меняется.
    """
    result = deepcopy(workload)
    template = result.template
    for container in template.containers + template.init_containers:
        rec = recommendations.get(container.name)
        if rec is None:
            continue
        if rec.req_cpu_m is not None:
            container.req_cpu_m = CpuMillis(rec.req_cpu_m)
        if rec.req_mem_b is not None:
            container.req_mem_b = Bytes(rec.req_mem_b)
        if rec.limit_cpu_m is not None:
            container.limit_cpu_m = CpuMillis(rec.limit_cpu_m)
        if rec.limit_mem_b is not None:
            container.limit_mem_b = Bytes(rec.limit_mem_b)
    return result
