"""
Tests for SchedulingService registration and simulation
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from rightsize_sim.sim.errors import ConfigurationError, NodeNotFoundError
from rightsize_sim.sim.operations import ContainerRecommendation, apply_rightsizing
from rightsize_sim.sim.service import SchedulingService, compare_reductions
from rightsize_sim.types import WorkloadKey


@pytest.fixture
def small_nodes(make_node):
    # 2 vcores -> 1700m usable per node
    return [make_node("n1", vcores=2), make_node("n2", vcores=2)]


class TestRegistration:
    def test_same_key_overwrites(self, make_pod, make_workload):
        svc = SchedulingService()
        svc.add_deployment(make_workload("Deployment", "web", make_pod(), replicas=1))
        svc.add_deployment(make_workload("Deployment", "web", make_pod(), replicas=3))
        regs = svc.snapshot()
        assert len(regs.workloads) == 1
        assert regs.workloads[0].replicas == 3

    def test_kind_mismatch(self, make_pod, make_workload):
        with pytest.raises(ConfigurationError):
            SchedulingService().add_daemon_set(make_workload("Deployment", "web", make_pod()))

    def test_snapshot_order(self, make_pod, make_workload):
        svc = SchedulingService()
        svc.add_deployment(make_workload("Deployment", "b", make_pod()))
        svc.add_pod(make_workload("Pod", "p", make_pod()))
        svc.add_deployment(make_workload("Deployment", "a", make_pod()))
        svc.add_daemon_set(make_workload("DaemonSet", "z", make_pod()))
        assert [w.name for w in svc.snapshot().workloads] == ["z", "a", "b", "p"]

    def test_remove_workload(self, make_pod, make_workload):
        svc = SchedulingService()
        svc.add_job(make_workload("Job", "j", make_pod()))
        assert svc.remove_workload(WorkloadKey("Job", "default", "j"))
        assert not svc.remove_workload(WorkloadKey("Job", "default", "j"))

    def test_clear_keeps_nodes(self, small_nodes, make_pod, make_workload):
        svc = SchedulingService(small_nodes)
        svc.add_stateful_set(make_workload("StatefulSet", "db", make_pod()))
        svc.clear()
        regs = svc.snapshot()
        assert regs.workloads == []
        assert len(regs.nodes) == 2

    def test_concurrent_registration(self, make_pod, make_workload):
        svc = SchedulingService()

        def register(prefix):
            for i in range(50):
                svc.add_deployment(make_workload("Deployment", f"{prefix}-{i}", make_pod()))

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(register, ["a", "b", "c", "d"]))

        assert len(svc.snapshot().workloads) == 200


class TestSimulation:
    def test_second_deployment_fills_cluster(self, small_nodes, make_pod, make_workload):
        svc = SchedulingService(small_nodes)
        svc.add_daemon_set(make_workload("DaemonSet", "agent", make_pod(cpu_m=200)))
        svc.add_deployment(make_workload("Deployment", "web", make_pod(cpu_m=500), replicas=2))
        assert len(svc.simulate()) == 1

        svc.add_deployment(make_workload("Deployment", "api", make_pod(cpu_m=500), replicas=2))
        assert svc.simulate() == []

    def test_registration_order_does_not_matter(self, small_nodes, make_pod, make_workload):
        ws = [
            make_workload("Deployment", "web", make_pod(cpu_m=500), replicas=2),
            make_workload("Deployment", "api", make_pod(cpu_m=700)),
            make_workload("DaemonSet", "agent", make_pod(cpu_m=200)),
        ]
        forward, backward = SchedulingService(small_nodes), SchedulingService(small_nodes)
        for w in ws:
            forward.add_workload(w)
        for w in reversed(ws):
            backward.add_workload(w)
        assert [n.name for n in forward.simulate()] == [n.name for n in backward.simulate()]

    def test_utilization_and_unknown_node(self, small_nodes, make_pod, make_workload):
        svc = SchedulingService(small_nodes)
        svc.add_deployment(make_workload("Deployment", "web", make_pod(cpu_m=500)))
        assert svc.utilization()["n1"].cpu == pytest.approx(0.25)
        assert svc.can_remove_node("n1")
        with pytest.raises(NodeNotFoundError):
            svc.can_remove_node("n9")

    def test_compare_reductions(self, small_nodes, make_pod, make_workload):
        web = make_workload("Deployment", "web", make_pod(cpu_m=1200), replicas=2)
        current = SchedulingService(small_nodes)
        current.add_deployment(web)
        rightsized = SchedulingService(small_nodes)
        rightsized.add_deployment(apply_rightsizing(web, {"app": ContainerRecommendation(req_cpu_m=400)}))

        comparison = compare_reductions(current, rightsized)
        assert comparison.current.removable_nodes == []
        assert len(comparison.rightsized.removable_nodes) == 1
        assert comparison.additional_removable == 1
