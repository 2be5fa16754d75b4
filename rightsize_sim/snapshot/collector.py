# rightsize_sim/snapshot/collector.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client, config

from .. import config as app_config
from ..model.entities import Node, PodDisruptionBudget, Workload
from ..sim.service import Registrations, SchedulingService
from .from_manifests import node_from_manifest, pdb_from_manifest, workload_from_manifest
from .io import register

log = logging.getLogger(__name__)


def _load_client_config(context: Optional[str]) -> None:
    try:
        config.load_incluster_config()
        log.info("Using in-cluster kubernetes config")
    except config.ConfigException:
        config.load_kube_config(context=context)
        log.info("Using kubeconfig (context=%s)", context or "<current>")


def _to_dicts(items: List[Any], kind: str) -> List[Dict[str, Any]]:
    # модели клиента -> camelCase dict, как в kubectl -o json
    api = client.ApiClient()
    out = []
    for item in items:
        data = api.sanitize_for_serialization(item)
        data["kind"] = kind
        out.append(data)
    return out


def _is_bare_pod(pod: Dict[str, Any]) -> bool:
    return not (pod.get("metadata") or {}).get("ownerReferences")


def collect_inventory(k8s_context: Optional[str] = None) -> Registrations:
    """
    Снимает ноды, workloads и PDB из кластера.
    Pod'ы берутся только "голые" (без ownerReferences), остальные
    уже представлены своими контроллерами.
    """
    context = k8s_context or app_config.KUBE_CONTEXT
    _load_client_config(context)

    core = client.CoreV1Api()
    apps = client.AppsV1Api()
    batch = client.BatchV1Api()
    policy = client.PolicyV1Api()

    log.info("Fetching nodes...")
    nodes: List[Node] = [node_from_manifest(n) for n in _to_dicts(core.list_node().items, "Node")]

    workloads: List[Workload] = []
    sources = [
        ("DaemonSet", apps.list_daemon_set_for_all_namespaces),
        ("Deployment", apps.list_deployment_for_all_namespaces),
        ("Job", batch.list_job_for_all_namespaces),
        ("StatefulSet", apps.list_stateful_set_for_all_namespaces),
    ]
    for kind, list_fn in sources:
        log.info("Fetching %ss...", kind)
        workloads.extend(workload_from_manifest(d) for d in _to_dicts(list_fn().items, kind))

    log.info("Fetching bare pods...")
    pods = _to_dicts(core.list_pod_for_all_namespaces().items, "Pod")
    workloads.extend(workload_from_manifest(p) for p in pods if _is_bare_pod(p))

    log.info("Fetching pod disruption budgets...")
    pdbs: List[PodDisruptionBudget] = [
        pdb_from_manifest(p)
        for p in _to_dicts(policy.list_pod_disruption_budget_for_all_namespaces().items, "PodDisruptionBudget")
    ]

    log.info("Collected %d nodes, %d workloads, %d pdbs", len(nodes), len(workloads), len(pdbs))
    return Registrations(nodes=nodes, workloads=workloads, pdbs=pdbs)


def collect_into_service(service: SchedulingService, k8s_context: Optional[str] = None) -> SchedulingService:
    register(service, collect_inventory(k8s_context))
    return service
