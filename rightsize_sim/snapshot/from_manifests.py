# rightsize_sim/snapshot/from_manifests.py
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from ..model.entities import (
    Affinity, Container, LabelSelector, Node, NodeSelectorTerm, PodAffinityTerm,
    PodDisruptionBudget, PodTemplate, SelectorRequirement, Taint, Toleration, Workload, WorkloadKind,
)
from ..sim.errors import ConfigurationError
from ..types import Bytes, CpuMillis, Namespace, NodeName


# ---------------------------------------------------------------------------
# Quantities
# ---------------------------------------------------------------------------

_MEMORY_MULTIPLIERS = {
    "Ki": 1024, "Mi": 1024 ** 2, "Gi": 1024 ** 3, "Ti": 1024 ** 4, "Pi": 1024 ** 5, "Ei": 1024 ** 6,
    "K": 1000, "k": 1000, "M": 1000 ** 2, "G": 1000 ** 3, "T": 1000 ** 4, "P": 1000 ** 5, "E": 1000 ** 6,
    "m": 0.001,
}


def parse_cpu(quantity: Any) -> CpuMillis:
    """"250m" -> 250, "2" -> 2000, "1500000n" -> 1."""
    if quantity is None or quantity == "":
        return CpuMillis(0)
    if isinstance(quantity, (int, float)):
        return CpuMillis(int(round(quantity * 1000)))
    quantity = str(quantity).strip()
    try:
        if quantity.endswith("m"):
            return CpuMillis(int(float(quantity[:-1])))
        if quantity.endswith("u"):
            return CpuMillis(int(float(quantity[:-1]) / 1000))
        if quantity.endswith("n"):
            return CpuMillis(int(float(quantity[:-1]) / 1_000_000))
        return CpuMillis(int(round(float(quantity) * 1000)))
    except ValueError:
        raise ConfigurationError(f"invalid cpu quantity {quantity!r}") from None


def parse_memory(quantity: Any) -> Bytes:
    """"512Mi" -> 536870912, "1G" -> 1000000000, "1e3" -> 1000."""
    if quantity is None or quantity == "":
        return Bytes(0)
    if isinstance(quantity, (int, float)):
        return Bytes(int(quantity))
    quantity = str(quantity).strip()
    suffix_match = re.search(r"(Ki|Mi|Gi|Ti|Pi|Ei|[kKMGTPEm])$", quantity)
    try:
        if suffix_match:
            suffix = suffix_match.group(0)
            number_part = quantity[:-len(suffix)]
            return Bytes(int(float(number_part) * _MEMORY_MULTIPLIERS[suffix]))
        return Bytes(int(float(quantity)))
    except ValueError:
        raise ConfigurationError(f"invalid memory quantity {quantity!r}") from None


def _parse_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"invalid integer {value!r}") from None


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


def _taints(raw: Optional[List[Dict[str, Any]]]) -> List[Taint]:
    return [
        Taint(key=t.get("key") or "", value=t.get("value") or "", effect=t.get("effect") or "NoSchedule")
        for t in (raw or [])
    ]


def node_from_manifest(data: Dict[str, Any]) -> Node:
    """
    Kubernetes Node (metadata/spec/status) или упрощённая запись
    {name, vcores, memory_bytes, max_pods, taints, labels}.
    """
    if "metadata" not in data:
        return Node(
            name=NodeName(data["name"]),
            vcores=float(data.get("vcores", 0)),
            memory_bytes=Bytes(int(data.get("memory_bytes", 0))),
            max_pods=_parse_int(data.get("max_pods"), 110),
            taints=_taints(data.get("taints")),
            labels=dict(data.get("labels") or {}),
        )

    meta = data.get("metadata") or {}
    spec = data.get("spec") or {}
    status = data.get("status") or {}
    capacity = status.get("capacity") or status.get("allocatable") or {}

    return Node(
        name=NodeName(meta.get("name")),
        vcores=parse_cpu(capacity.get("cpu")) / 1000.0,
        memory_bytes=parse_memory(capacity.get("memory")),
        max_pods=_parse_int(capacity.get("pods"), 110),
        taints=_taints(spec.get("taints")),
        labels=dict(meta.get("labels") or {}),
    )


# ---------------------------------------------------------------------------
# Pod templates
# ---------------------------------------------------------------------------


def _requirements(raw: Optional[List[Dict[str, Any]]]) -> List[SelectorRequirement]:
    return [
        SelectorRequirement(
            key=e.get("key") or "",
            operator=e.get("operator") or "In",
            values=list(e.get("values") or []),
        )
        for e in (raw or [])
    ]


def label_selector_from_manifest(raw: Optional[Dict[str, Any]]) -> Optional[LabelSelector]:
    if raw is None:
        return None
    return LabelSelector(
        match_labels=dict(raw.get("matchLabels") or {}),
        match_expressions=_requirements(raw.get("matchExpressions")),
    )


def _pod_affinity_terms(raw: Optional[Dict[str, Any]]) -> List[PodAffinityTerm]:
    terms = (raw or {}).get("requiredDuringSchedulingIgnoredDuringExecution") or []
    return [
        PodAffinityTerm(
            label_selector=label_selector_from_manifest(t.get("labelSelector")),
            topology_key=t.get("topologyKey") or "",
        )
        for t in terms
    ]


def _affinity(raw: Optional[Dict[str, Any]]) -> Optional[Affinity]:
    if not raw:
        return None
    node_terms = None
    required = (raw.get("nodeAffinity") or {}).get("requiredDuringSchedulingIgnoredDuringExecution")
    if required is not None:
        node_terms = [
            NodeSelectorTerm(match_expressions=_requirements(t.get("matchExpressions")))
            for t in required.get("nodeSelectorTerms") or []
        ]
    return Affinity(
        node_affinity=node_terms,
        pod_affinity=_pod_affinity_terms(raw.get("podAffinity")),
        pod_anti_affinity=_pod_affinity_terms(raw.get("podAntiAffinity")),
    )


def _container(raw: Dict[str, Any]) -> Container:
    resources = raw.get("resources") or {}
    requests = resources.get("requests") or {}
    limits = resources.get("limits") or {}
    return Container(
        name=raw.get("name") or "",
        req_cpu_m=parse_cpu(requests.get("cpu")),
        req_mem_b=parse_memory(requests.get("memory")),
        limit_cpu_m=parse_cpu(limits["cpu"]) if "cpu" in limits else None,
        limit_mem_b=parse_memory(limits["memory"]) if "memory" in limits else None,
    )


def pod_template_from_manifest(meta: Dict[str, Any], spec: Dict[str, Any], namespace: str) -> PodTemplate:
    return PodTemplate(
        name=meta.get("name") or "",
        namespace=Namespace(meta.get("namespace") or namespace),
        labels=dict(meta.get("labels") or {}),
        containers=[_container(c) for c in spec.get("containers") or []],
        init_containers=[_container(c) for c in spec.get("initContainers") or []],
        tolerations=[
            Toleration(
                key=t.get("key") or "",
                operator=t.get("operator") or "Equal",
                value=t.get("value") or "",
                effect=t.get("effect") or "",
            )
            for t in spec.get("tolerations") or []
        ],
        node_selector=dict(spec.get("nodeSelector") or {}),
        affinity=_affinity(spec.get("affinity")),
    )


# ---------------------------------------------------------------------------
# Workloads / PDB
# ---------------------------------------------------------------------------


def workload_from_manifest(data: Dict[str, Any]) -> Workload:
    kind_name = data.get("kind")
    try:
        kind = WorkloadKind(kind_name)
    except ValueError:
        raise ConfigurationError(f"unsupported workload kind {kind_name!r}") from None

    meta = data.get("metadata") or {}
    spec = data.get("spec") or {}
    name = meta.get("name") or ""
    namespace = meta.get("namespace") or "default"

    if kind == WorkloadKind.POD:
        template = pod_template_from_manifest(meta, spec, namespace)
    else:
        raw_template = spec.get("template") or {}
        template_meta = dict(raw_template.get("metadata") or {})
        template_meta.setdefault("name", name)
        template = pod_template_from_manifest(template_meta, raw_template.get("spec") or {}, namespace)

    return Workload(
        kind=kind,
        name=name,
        namespace=Namespace(namespace),
        template=template,
        replicas=_parse_int(spec.get("replicas"), 1),
        completions=_parse_int(spec.get("completions"), 1),
    )


def pdb_from_manifest(data: Dict[str, Any]) -> PodDisruptionBudget:
    meta = data.get("metadata") or {}
    spec = data.get("spec") or {}
    return PodDisruptionBudget(
        name=meta.get("name") or "",
        namespace=Namespace(meta.get("namespace") or "default"),
        selector=label_selector_from_manifest(spec.get("selector")),
        min_available=spec.get("minAvailable"),
        max_unavailable=spec.get("maxUnavailable"),
    )
