"""
Shared builders for scheduler tests
"""
import pytest

from rightsize_sim.model.entities import Container, Node, PodTemplate, Workload, WorkloadKind
from rightsize_sim.types import GIB, Bytes, CpuMillis, Namespace, NodeName


def _make_node(name, vcores=4, memory_gib=16, max_pods=110, labels=None, taints=None):
    return Node(
        name=NodeName(name),
        vcores=vcores,
        memory_bytes=Bytes(int(memory_gib * GIB)),
        max_pods=max_pods,
        taints=list(taints or []),
        labels=dict(labels or {}),
    )


def _make_pod(
    name="pod",
    cpu_m=0,
    mem_b=0,
    labels=None,
    namespace="default",
    tolerations=None,
    node_selector=None,
    affinity=None,
):
    return PodTemplate(
        name=name,
        namespace=Namespace(namespace),
        labels=dict(labels or {}),
        containers=[Container(name="app", req_cpu_m=CpuMillis(cpu_m), req_mem_b=Bytes(mem_b))],
        tolerations=list(tolerations or []),
        node_selector=dict(node_selector or {}),
        affinity=affinity,
    )


def _make_workload(kind, name, template, replicas=1, completions=1, namespace="default"):
    return Workload(
        kind=WorkloadKind(kind),
        name=name,
        namespace=Namespace(namespace),
        template=template,
        replicas=replicas,
        completions=completions,
    )


@pytest.fixture
def make_node():
    """Node(name, vcores=4, memory_gib=16, ...)"""
    return _make_node


@pytest.fixture
def make_pod():
    """PodTemplate with a single "app" container"""
    return _make_pod


@pytest.fixture
def make_workload():
    return _make_workload


@pytest.fixture
def two_nodes():
    return [_make_node("n1"), _make_node("n2")]
