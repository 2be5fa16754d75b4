# rightsize_sim/api/schema.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class TaintModel(BaseModel):
    key: str
    value: str = ""
    effect: str = "NoSchedule"


class NodeModel(BaseModel):
    name: str
    vcores: float
    memory_bytes: int
    max_pods: int = 110
    taints: List[TaintModel] = []
    labels: Dict[str, str] = {}


class ManifestList(BaseModel):
    """Kubernetes-манифесты как есть (camelCase, kind/metadata/spec)."""
    items: List[Dict[str, Any]]


class RegisteredResponse(BaseModel):
    registered: int


# --- Rightsizing ---

class ContainerRecommendationModel(BaseModel):
    req_cpu_m: Optional[int] = None
    req_mem_b: Optional[int] = None
    limit_cpu_m: Optional[int] = None
    limit_mem_b: Optional[int] = None


class WorkloadRecommendationModel(BaseModel):
    kind: str
    namespace: str = "default"
    name: str
    # имя контейнера -> рекомендация
    containers: Dict[str, ContainerRecommendationModel]


class RightsizeRequest(BaseModel):
    workloads: List[WorkloadRecommendationModel]


# --- Результаты ---

class UtilizationModel(BaseModel):
    cpu: float
    memory: float
    pods: float


class PlacementFailureModel(BaseModel):
    workload: str
    reason: str


class ReductionSummaryModel(BaseModel):
    node_count: int
    removable_count: int
    removable_vcores: float
    removable_memory_bytes: int


class SimulationResponse(BaseModel):
    removable_nodes: List[str]
    passes: int
    utilization: Dict[str, UtilizationModel]
    failures: List[PlacementFailureModel]
    summary: Optional[ReductionSummaryModel] = None


class ComparisonResponse(BaseModel):
    current: SimulationResponse
    rightsized: SimulationResponse
    additional_removable: int


class RemovableResponse(BaseModel):
    node: str
    removable: bool
