# rightsize_sim/snapshot/io.py
from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..model.entities import (
    Affinity, Container, LabelSelector, Node, PodAffinityTerm, PodDisruptionBudget, PodTemplate, Workload,
    WorkloadKind,
)
from ..sim.service import Registrations, SchedulingService
from .from_manifests import node_from_manifest, pdb_from_manifest, workload_from_manifest


# Формат файла инвентаря:
# {
#   "nodes":     [{name, vcores, memory_bytes, max_pods, taints, labels}, ...],
#   "workloads": [k8s-манифесты DaemonSet/Deployment/Job/StatefulSet/Pod],
#   "pdbs":      [k8s-манифесты PodDisruptionBudget]
# }


def node_to_dict(node: Node) -> Dict[str, Any]:
    return {
        "name": node.name,
        "vcores": float(node.vcores),
        "memory_bytes": int(node.memory_bytes),
        "max_pods": int(node.max_pods),
        "taints": [asdict(t) for t in node.taints],
        "labels": dict(node.labels),
    }


def _selector_to_manifest(selector: Optional[LabelSelector]) -> Optional[Dict[str, Any]]:
    if selector is None:
        return None
    return {
        "matchLabels": dict(selector.match_labels),
        "matchExpressions": [
            {"key": e.key, "operator": e.operator, "values": list(e.values)}
            for e in selector.match_expressions
        ],
    }


def _pod_terms_to_manifest(terms: List[PodAffinityTerm]) -> Dict[str, Any]:
    return {
        "requiredDuringSchedulingIgnoredDuringExecution": [
            {"labelSelector": _selector_to_manifest(t.label_selector), "topologyKey": t.topology_key}
            for t in terms
        ]
    }


def _affinity_to_manifest(affinity: Affinity) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if affinity.node_affinity is not None:
        out["nodeAffinity"] = {
            "requiredDuringSchedulingIgnoredDuringExecution": {
                "nodeSelectorTerms": [
                    {
                        "matchExpressions": [
                            {"key": e.key, "operator": e.operator, "values": list(e.values)}
                            for e in term.match_expressions
                        ]
                    }
                    for term in affinity.node_affinity
                ]
            }
        }
    if affinity.pod_affinity:
        out["podAffinity"] = _pod_terms_to_manifest(affinity.pod_affinity)
    if affinity.pod_anti_affinity:
        out["podAntiAffinity"] = _pod_terms_to_manifest(affinity.pod_anti_affinity)
    return out


def _container_to_manifest(c: Container) -> Dict[str, Any]:
    limits: Dict[str, str] = {}
    if c.limit_cpu_m is not None:
        limits["cpu"] = f"{int(c.limit_cpu_m)}m"
    if c.limit_mem_b is not None:
        limits["memory"] = str(int(c.limit_mem_b))
    return {
        "name": c.name,
        "resources": {
            "requests": {"cpu": f"{int(c.req_cpu_m)}m", "memory": str(int(c.req_mem_b))},
            "limits": limits,
        },
    }


def _template_spec(t: PodTemplate) -> Dict[str, Any]:
    spec: Dict[str, Any] = {
        "containers": [_container_to_manifest(c) for c in t.containers],
        "initContainers": [_container_to_manifest(c) for c in t.init_containers],
        "tolerations": [
            {"key": tol.key, "operator": tol.operator, "value": tol.value, "effect": tol.effect}
            for tol in t.tolerations
        ],
        "nodeSelector": dict(t.node_selector),
    }
    if t.affinity is not None:
        spec["affinity"] = _affinity_to_manifest(t.affinity)
    return spec


def workload_to_manifest(w: Workload) -> Dict[str, Any]:
    template = w.template
    meta = {"name": w.name, "namespace": str(w.namespace)}
    if w.kind == WorkloadKind.POD:
        meta["labels"] = dict(template.labels)
        return {"kind": w.kind.value, "metadata": meta, "spec": _template_spec(template)}

    spec: Dict[str, Any] = {
        "template": {
            "metadata": {"name": template.name, "namespace": str(template.namespace), "labels": dict(template.labels)},
            "spec": _template_spec(template),
        }
    }
    if w.kind in (WorkloadKind.DEPLOYMENT, WorkloadKind.STATEFUL_SET):
        spec["replicas"] = int(w.replicas)
    elif w.kind == WorkloadKind.JOB:
        spec["completions"] = int(w.completions)
    return {"kind": w.kind.value, "metadata": meta, "spec": spec}


def pdb_to_manifest(pdb: PodDisruptionBudget) -> Dict[str, Any]:
    spec: Dict[str, Any] = {"selector": _selector_to_manifest(pdb.selector)}
    if pdb.min_available is not None:
        spec["minAvailable"] = pdb.min_available
    if pdb.max_unavailable is not None:
        spec["maxUnavailable"] = pdb.max_unavailable
    return {
        "kind": "PodDisruptionBudget",
        "metadata": {"name": pdb.name, "namespace": str(pdb.namespace)},
        "spec": spec,
    }


def inventory_to_dict(regs: Registrations) -> Dict[str, Any]:
    return {
        "nodes": [node_to_dict(n) for n in regs.nodes],
        "workloads": [workload_to_manifest(w) for w in regs.workloads],
        "pdbs": [pdb_to_manifest(p) for p in regs.pdbs],
    }


def inventory_from_dict(data: Dict[str, Any]) -> Registrations:
    return Registrations(
        nodes=[node_from_manifest(n) for n in data.get("nodes") or []],
        workloads=[workload_from_manifest(w) for w in data.get("workloads") or []],
        pdbs=[pdb_from_manifest(p) for p in data.get("pdbs") or []],
    )


def register(service: SchedulingService, regs: Registrations) -> None:
    """Добавляет всё из regs в сервис. Ноды заменяют текущий список целиком."""
    if regs.nodes:
        service.set_nodes(regs.nodes)
    for w in regs.workloads:
        service.add_workload(w)
    for pdb in regs.pdbs:
        service.add_pod_disruption_budget(pdb)


def save_inventory_file(service: SchedulingService, path: Path) -> None:
    data = inventory_to_dict(service.snapshot())
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)


def load_inventory_file(path: Path, service: Optional[SchedulingService] = None) -> SchedulingService:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    service = service or SchedulingService()
    register(service, inventory_from_dict(data))
    return service
