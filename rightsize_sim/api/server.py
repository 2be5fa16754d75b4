# rightsize_sim/api/server.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .. import config
from ..model.entities import Node, Taint
from ..sim.constraints import validate_template
from ..sim.errors import ConfigurationError, NodeNotFoundError
from ..sim.eviction import compile_budgets
from ..sim.operations import ContainerRecommendation, apply_rightsizing
from ..sim.result import SimulationResult
from ..sim.service import SchedulingService, compare_reductions
from ..snapshot.from_manifests import pdb_from_manifest, workload_from_manifest
from ..snapshot.io import load_inventory_file
from ..types import Bytes, NodeName, WorkloadKey
from .schema import (
    ComparisonResponse, ManifestList, NodeModel, PlacementFailureModel, ReductionSummaryModel,
    RegisteredResponse, RemovableResponse, RightsizeRequest, SimulationResponse, UtilizationModel,
)

app = FastAPI(title="rightsize-sim")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

log = logging.getLogger("uvicorn")

# --- STATE ---
service = SchedulingService()


# --- Helpers ---

def _node_from_model(m: NodeModel) -> Node:
    return Node(
        name=NodeName(m.name),
        vcores=m.vcores,
        memory_bytes=Bytes(m.memory_bytes),
        max_pods=m.max_pods,
        taints=[Taint(key=t.key, value=t.value, effect=t.effect) for t in m.taints],
        labels=dict(m.labels),
    )


def to_simulation_response(result: SimulationResult) -> SimulationResponse:
    summary = None
    if result.summary is not None:
        s = result.summary
        summary = ReductionSummaryModel(
            node_count=s.node_count,
            removable_count=s.removable_count,
            removable_vcores=s.removable_vcores,
            removable_memory_bytes=s.removable_memory_bytes,
        )
    return SimulationResponse(
        removable_nodes=[str(n.name) for n in result.removable_nodes],
        passes=result.passes,
        utilization={
            name: UtilizationModel(cpu=u.cpu, memory=u.memory, pods=u.pods)
            for name, u in result.utilization.items()
        },
        failures=[PlacementFailureModel(workload=str(f.workload), reason=f.reason) for f in result.failures],
        summary=summary,
    )


# --- Lifecycle ---

@app.on_event("startup")
def load_initial_inventory():
    if not config.INVENTORY_PATH:
        log.info("No inventory configured, starting with an empty service")
        return
    path = Path(config.INVENTORY_PATH)
    load_inventory_file(path, service)
    log.info(f"Loaded inventory from {path}")


# --- Registration ---

@app.post("/nodes", response_model=RegisteredResponse)
def register_nodes(nodes: List[NodeModel]):
    for m in nodes:
        service.add_node(_node_from_model(m))
    return RegisteredResponse(registered=len(nodes))


@app.post("/workloads", response_model=RegisteredResponse)
def register_workloads(req: ManifestList):
    try:
        workloads = [workload_from_manifest(item) for item in req.items]
        for w in workloads:
            validate_template(w.template)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    for w in workloads:
        service.add_workload(w)
    return RegisteredResponse(registered=len(workloads))


@app.post("/pdbs", response_model=RegisteredResponse)
def register_pdbs(req: ManifestList):
    pdbs = [pdb_from_manifest(item) for item in req.items]
    try:
        compile_budgets(pdbs)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    for pdb in pdbs:
        service.add_pod_disruption_budget(pdb)
    return RegisteredResponse(registered=len(pdbs))


@app.delete("/registrations")
def clear_registrations():
    service.clear()
    return {"status": "ok"}


# --- Simulation ---

@app.get("/simulate", response_model=SimulationResponse)
def simulate():
    try:
        result = service.run()
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return to_simulation_response(result)


@app.get("/utilization", response_model=Dict[str, UtilizationModel])
def utilization():
    try:
        util = service.utilization()
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {name: UtilizationModel(cpu=u.cpu, memory=u.memory, pods=u.pods) for name, u in util.items()}


@app.post("/nodes/{node_name}/removable", response_model=RemovableResponse)
def node_removable(node_name: str):
    try:
        removable = service.can_remove_node(node_name)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return RemovableResponse(node=node_name, removable=removable)


@app.post("/rightsize", response_model=ComparisonResponse)
def rightsize(req: RightsizeRequest):
    """
    Применяет рекомендации к копиям workload'ов и сравнивает, сколько нод
    освобождается сейчас и после rightsizing. Текущие регистрации не меняются.
    """
    regs = service.snapshot()
    by_key = {w.key: w for w in regs.workloads}

    replacements = {}
    for rec in req.workloads:
        key = WorkloadKey(rec.kind, rec.namespace, rec.name)
        workload = by_key.get(key)
        if workload is None:
            raise HTTPException(status_code=404, detail=f"workload {key} not found")
        recommendations = {
            name: ContainerRecommendation(
                req_cpu_m=c.req_cpu_m,
                req_mem_b=c.req_mem_b,
                limit_cpu_m=c.limit_cpu_m,
                limit_mem_b=c.limit_mem_b,
            )
            for name, c in rec.containers.items()
        }
        replacements[key] = apply_rightsizing(workload, recommendations)

    rightsized = SchedulingService(regs.nodes, service.headroom, service.mode)
    for w in regs.workloads:
        rightsized.add_workload(replacements.get(w.key, w))
    for pdb in regs.pdbs:
        rightsized.add_pod_disruption_budget(pdb)

    try:
        comparison = compare_reductions(service, rightsized)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ComparisonResponse(
        current=to_simulation_response(comparison.current),
        rightsized=to_simulation_response(comparison.rightsized),
        additional_removable=comparison.additional_removable,
    )
