# rightsize_sim/model/entities.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from ..types import NodeName, Namespace, CpuMillis, Bytes, WorkloadKey


@dataclass(frozen=True)
class Taint:
    key: str
    value: str = ""
    effect: str = "NoSchedule"


@dataclass(frozen=True)
class Toleration:
    # пустой key = wildcard по всем taint'ам
    key: str = ""
    operator: str = "Equal"
    value: str = ""
    # пустой effect = подходит к любому effect
    effect: str = ""


@dataclass
class Node:
    """Рабочая нода кластера. Только статика: ёмкость, labels, taints."""
    name: NodeName
    vcores: float
    memory_bytes: Bytes
    max_pods: int = 110
    taints: List[Taint] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def cpu_capacity_m(self) -> CpuMillis:
        return CpuMillis(int(round(self.vcores * 1000)))


# ---------------------------------------------------------------------------
# Селекторы и affinity
# ---------------------------------------------------------------------------


@dataclass
class SelectorRequirement:
    """Одно выражение matchExpressions (и для label selector, и для nodeSelectorTerm)."""
    key: str
    operator: str = "In"
    values: List[str] = field(default_factory=list)


@dataclass
class LabelSelector:
    match_labels: Dict[str, str] = field(default_factory=dict)
    match_expressions: List[SelectorRequirement] = field(default_factory=list)


@dataclass
class NodeSelectorTerm:
    """Выражения внутри терма объединяются по AND, термы между собой по OR."""
    match_expressions: List[SelectorRequirement] = field(default_factory=list)


@dataclass
class PodAffinityTerm:
    # None = селектор не задан, не матчит ни один pod
    label_selector: Optional[LabelSelector] = None
    topology_key: str = ""


@dataclass
class Affinity:
    # None = нет required nodeAffinity, ограничение считается выполненным
    node_affinity: Optional[List[NodeSelectorTerm]] = None
    pod_affinity: List[PodAffinityTerm] = field(default_factory=list)
    pod_anti_affinity: List[PodAffinityTerm] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pod template
# ---------------------------------------------------------------------------


@dataclass
class Container:
    name: str
    req_cpu_m: CpuMillis = CpuMillis(0)
    req_mem_b: Bytes = Bytes(0)
    limit_cpu_m: Optional[CpuMillis] = None
    limit_mem_b: Optional[Bytes] = None


@dataclass
class PodTemplate:
    """
    Шаблон pod'а, из которого строятся размещения.
    labels нужны для PDB и podAffinity других pod'ов.
    """
    name: str = ""
    namespace: Namespace = Namespace("default")
    labels: Dict[str, str] = field(default_factory=dict)
    containers: List[Container] = field(default_factory=list)
    init_containers: List[Container] = field(default_factory=list)
    tolerations: List[Toleration] = field(default_factory=list)
    node_selector: Dict[str, str] = field(default_factory=dict)
    affinity: Optional[Affinity] = None


# ---------------------------------------------------------------------------
# Workloads и PDB
# ---------------------------------------------------------------------------


class WorkloadKind(str, Enum):
    DAEMON_SET = "DaemonSet"
    DEPLOYMENT = "Deployment"
    JOB = "Job"
    STATEFUL_SET = "StatefulSet"
    POD = "Pod"


# Порядок, в котором workloads проигрываются в каждом проходе симуляции
REPLAY_KIND_ORDER: List[WorkloadKind] = [
    WorkloadKind.DAEMON_SET,
    WorkloadKind.DEPLOYMENT,
    WorkloadKind.JOB,
    WorkloadKind.STATEFUL_SET,
    WorkloadKind.POD,
]


@dataclass
class Workload:
    kind: WorkloadKind
    name: str
    namespace: Namespace
    template: PodTemplate
    replicas: int = 1
    completions: int = 1

    @property
    def key(self) -> WorkloadKey:
        return WorkloadKey(self.kind.value, str(self.namespace), self.name)

    @property
    def placement_count(self) -> Optional[int]:
        """Сколько раз размещать шаблон. None для DaemonSet (по одному на ноду)."""
        if self.kind == WorkloadKind.DAEMON_SET:
            return None
        if self.kind in (WorkloadKind.DEPLOYMENT, WorkloadKind.STATEFUL_SET):
            return self.replicas
        if self.kind == WorkloadKind.JOB:
            return self.completions
        return 1


IntOrPercent = Union[int, str]


@dataclass
class PodDisruptionBudget:
    name: str
    namespace: Namespace = Namespace("default")
    # None = селектор не задан
    selector: Optional[LabelSelector] = None
    min_available: Optional[IntOrPercent] = None
    max_unavailable: Optional[IntOrPercent] = None
